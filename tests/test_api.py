"""HTTP scenarios over the in-memory backend."""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from core.config import Settings
from core.errors import (
    BodyTooLargeError,
    CompressionError,
    InvalidTTLError,
    NonAuthorizedError,
    RecordExpiredError,
    StorageTimeoutError,
)
from main import create_app, status_for
from models.apikey import APIKey
from routers.paste import parse_duration


def key_from(response) -> str:
    return response.text.rstrip("/").rsplit("/", 1)[-1]


@pytest_asyncio.fixture
async def privileged_key(app):
    apikey = APIKey(key="c" * 32, public_id=uuid.uuid4())
    repo = app.state.container.apikey_repository()
    await repo.set_by_id(apikey.key, apikey)
    return apikey.key


# =============================================================================
# SCENARIOS
# =============================================================================

async def test_basic_cache_and_retrieve(client):
    response = await client.post("/", content=b"hello")
    assert response.status_code == 201
    assert response.text.startswith("http://paste.test/")
    key = key_from(response)
    assert len(key) == 14

    response = await client.get(f"/{key}/")
    assert response.status_code == 200
    assert response.content == b"hello"

    response = await client.get(f"/{key}/clicks/")
    assert response.status_code == 200
    assert response.text == "1"


async def test_disposable_record(client):
    key = key_from(await client.post("/?disposable=3", content=b"secret"))

    for _ in range(3):
        assert (await client.get(f"/{key}/")).status_code == 200
    assert (await client.get(f"/{key}/")).status_code == 404


async def test_url_record_redirects(client):
    key = key_from(await client.post("/?url=true", content=b"https://example.com/page"))

    response = await client.get(f"/{key}/")
    assert response.status_code == 303
    assert response.headers["location"] == "https://example.com/page"


async def test_url_redirect_percent_encodes_non_ascii(client):
    response = await client.post("/?url=true", content="https://example.com/日本".encode())
    assert response.status_code == 201

    response = await client.get(f"/{key_from(response)}/")
    assert response.status_code == 303
    assert response.headers["location"] == "https://example.com/%E6%97%A5%E6%9C%AC"


async def test_body_with_gzip_magic_is_returned_verbatim(client):
    body = b"\x1f\x8bnot gzip"
    key = key_from(await client.post("/", content=body))

    response = await client.get(f"/{key}/")
    assert response.status_code == 200
    assert response.content == body


async def test_url_flag_requires_absolute_url(client):
    response = await client.post("/?url=true", content=b"not a url")
    assert response.status_code == 422


async def test_quota_exhaustion():
    app = create_app(Settings(_env_file=None, redis_enabled=False, quota=50))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://paste.test") as client:
        for _ in range(50):
            assert (await client.post("/", content=b"x")).status_code == 201
        response = await client.post("/", content=b"x")
        assert response.status_code == 429

        # A different source address has its own allowance
        response = await client.post("/", content=b"x", headers={"X-Forwarded-For": "10.9.9.9, 10.0.0.1"})
        assert response.status_code == 201


async def test_unprivileged_requested_key_rejected(client, app):
    response = await client.post("/?key=mykey123", content=b"hello")
    assert response.status_code == 401

    records = app.state.container.record_repository()
    assert not await records.exists("mykey123")


async def test_privileged_requested_key(client, privileged_key):
    response = await client.post(f"/?key=mykey&apikey={privileged_key}&ttl=0", content=b"hello")
    assert response.status_code == 201
    assert response.text == "http://paste.test/mykey/"

    response = await client.post(f"/?key=mykey&apikey={privileged_key}", content=b"again")
    assert response.status_code == 409


async def test_invalid_apikey(client):
    response = await client.post("/?apikey=unknown", content=b"hello")
    assert response.status_code == 401


@pytest.mark.parametrize("query", ["ttl=forever", "ttl=0", "ttl=500ms", "len=abc", "len=7", "disposable=256", "url=maybe"])
async def test_bad_parameters(client, query):
    response = await client.post(f"/?{query}", content=b"hello")
    assert response.status_code == 422


async def test_body_too_large(client):
    response = await client.post("/", content=b"x" * (1048576 + 1))
    assert response.status_code == 413


async def test_missing_record(client):
    assert (await client.get("/nope12345/")).status_code == 404
    assert (await client.get("/nope12345/clicks/")).status_code == 404


async def test_forwarded_proto(client):
    response = await client.post("/", content=b"hello", headers={"X-Forwarded-Proto": "https"})
    assert response.text.startswith("https://paste.test/")


async def test_health(client):
    response = await client.get("/health/")
    assert response.status_code == 200
    body = response.json()
    assert body["availability"] is True
    assert body["version"] == "built-from-source"


async def test_request_id_header(client):
    response = await client.get("/nope12345/", headers={"X-Request-ID": "req-1"})
    assert response.headers["x-request-id"] == "req-1"


# =============================================================================
# HELPERS
# =============================================================================

@pytest.mark.parametrize("text,seconds", [
    ("0", 0),
    ("45s", 45),
    ("1h30m", 5400),
    ("1.5h", 5400),
    ("300ms", 0.3),
    ("-2s", -2),
])
def test_parse_duration(text, seconds):
    assert parse_duration(text).total_seconds() == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["", "10", "1d", "h", "1h 30m"])
def test_parse_duration_rejects(text):
    with pytest.raises(InvalidTTLError):
        parse_duration(text)


@pytest.mark.parametrize("error,code", [
    (BodyTooLargeError(), 413),
    (NonAuthorizedError(), 401),
    (InvalidTTLError(), 422),
    (RecordExpiredError(), 404),
    (StorageTimeoutError(), 504),
    (CompressionError(), 500),
])
def test_status_for(error, code):
    assert status_for(error) == code
