"""Shared fixtures: settings, in-memory repositories and an HTTP client."""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from core.config import Settings
from main import create_app
from models.apikey import APIKey
from services.events import MemoryUsageSink, UsagePublisher
from services.storage import MemoryAPIKeyRepository, MemoryQuotaRepository, MemoryRecordRepository


@pytest.fixture
def settings():
    return Settings(_env_file=None, redis_enabled=False, health_enabled=True, log_level="WARNING")


@pytest.fixture
def records(settings):
    return MemoryRecordRepository(settings)


@pytest.fixture
def quotas(settings):
    return MemoryQuotaRepository(settings)


@pytest.fixture
def apikeys():
    return MemoryAPIKeyRepository()


@pytest_asyncio.fixture
async def valid_apikey(apikeys):
    apikey = APIKey(key="a" * 32, public_id=uuid.uuid4())
    await apikeys.set_by_id(apikey.key, apikey)
    return apikey


@pytest_asyncio.fixture
async def revoked_apikey(apikeys):
    apikey = APIKey(key="b" * 32, public_id=uuid.uuid4(), valid=False)
    await apikeys.set_by_id(apikey.key, apikey)
    return apikey


@pytest.fixture
def usage_sink():
    return MemoryUsageSink()


@pytest_asyncio.fixture
async def publisher(usage_sink):
    publisher = UsagePublisher(usage_sink, queue_size=16)
    await publisher.start()
    yield publisher
    await publisher.stop()


@pytest_asyncio.fixture
async def app(settings):
    app = create_app(settings)
    publisher = app.state.container.usage_publisher()
    await publisher.start()
    yield app
    await publisher.stop()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://paste.test") as client:
        yield client
