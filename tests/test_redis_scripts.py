"""Redis repositories against an in-process fake server running the Lua scripts."""

from datetime import timedelta

import fakeredis
import pytest
import pytest_asyncio

from core.errors import RecordCounterExhaustedError, RecordNotFoundError
from models.quota import Quota
from models.record import Record
from services.storage import RedisQuotaRepository, RedisRecordRepository


@pytest_asyncio.fixture
async def redis_server():
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())
    yield client
    await client.aclose()


# =============================================================================
# RECORDS
# =============================================================================

async def test_disposable_record_read_once(redis_server, settings):
    repo = RedisRecordRepository(redis_server, settings)
    await repo.set_by_key("k1", Record.create("k1", b"hello", timedelta(hours=1), 1))

    assert await repo.register_read("k1", None) == 1
    with pytest.raises(RecordCounterExhaustedError):
        await repo.register_read("k1", None)

    assert await redis_server.hget("k1", "countdown") == b"0"
    assert await redis_server.hget("k1", "clicks") == b"1"


async def test_eternal_record_never_exhausts(redis_server, settings):
    repo = RedisRecordRepository(redis_server, settings)
    await repo.set_by_key("k1", Record.create("k1", b"hello", timedelta(hours=1), 0))

    clicks = [await repo.register_read("k1", None) for _ in range(10)]

    assert clicks == list(range(1, 11))
    assert await redis_server.hget("k1", "countdown") == b"0"


async def test_register_read_missing_key(redis_server, settings):
    repo = RedisRecordRepository(redis_server, settings)

    with pytest.raises(RecordNotFoundError):
        await repo.register_read("nope", None)


async def test_record_round_trip(redis_server, settings):
    repo = RedisRecordRepository(redis_server, settings)
    body = b"a" * (settings.compress_threshold_bytes + 1)
    await repo.set_by_key("k1", Record.create("k1", body, timedelta(hours=1), 3))
    await repo.register_read("k1", None)

    record = await repo.get_by_key("k1")

    assert record.raw_body() == body
    assert record.countdown == 2
    assert record.click_count == 1
    assert timedelta(minutes=59) < record.ttl() <= timedelta(hours=1)
    assert 0 < await redis_server.pttl("k1") <= 3600 * 1000


async def test_eternal_expiration_has_no_ttl(redis_server, settings):
    repo = RedisRecordRepository(redis_server, settings)
    await repo.set_by_key("k1", Record.create("k1", b"hello", timedelta(0), 0))

    assert await redis_server.ttl("k1") == -1
    assert (await repo.get_by_key("k1")).expiration_date.eternal


# =============================================================================
# QUOTAS
# =============================================================================

async def test_quota_acquire_counts_down(redis_server, settings):
    repo = RedisQuotaRepository(redis_server, settings)

    assert (await repo.acquire("10.0.0.1")).value == 50
    assert (await repo.acquire("10.0.0.1")).value == 49
    assert (await repo.get_by_id("10.0.0.1")).value == 48

    ttl = await redis_server.ttl("10.0.0.1")
    assert 0 < ttl <= 86400


async def test_quota_exhausts_after_allowance(redis_server, settings):
    repo = RedisQuotaRepository(redis_server, settings)

    for _ in range(settings.quota):
        assert not (await repo.acquire("10.0.0.1")).exhausted()
    assert (await repo.acquire("10.0.0.1")).exhausted()


async def test_quota_set_keeps_existing_ttl(redis_server, settings):
    repo = RedisQuotaRepository(redis_server, settings)
    await repo.acquire("10.0.0.1")
    await redis_server.expire("10.0.0.1", 120)

    await repo.set_by_id("10.0.0.1", Quota("10.0.0.1", 50, value=7))

    assert (await repo.get_by_id("10.0.0.1")).value == 7
    assert 0 < await redis_server.ttl("10.0.0.1") <= 120


async def test_quota_set_adds_ttl_to_new_key(redis_server, settings):
    repo = RedisQuotaRepository(redis_server, settings)

    await repo.set_by_id("10.0.0.2", Quota("10.0.0.2", 50, value=3))

    assert 0 < await redis_server.ttl("10.0.0.2") <= 86400
