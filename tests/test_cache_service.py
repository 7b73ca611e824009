"""Cache orchestrator pipeline against in-memory repositories."""

import asyncio
from datetime import timedelta

import pytest

from core.config import Settings
from core.errors import (
    APIKeyInvalidError,
    NonAuthorizedError,
    QuotaExhaustedError,
    RequestedKeyExistsError,
    StorageTimeoutError,
)
from models.request import CacheRequestParams, UsageReason
from services.cache_service import CacheService
from services.events import NullUsagePublisher
from services.storage import MemoryQuotaRepository, MemoryRecordRepository


def params(**overrides):
    values = {"body": b"hello", "ttl": timedelta(hours=1), "source_ip": "10.0.0.1"}
    values.update(overrides)
    return CacheRequestParams(**values)


@pytest.fixture
def service(records, quotas, apikeys, publisher, settings):
    return CacheService(records, quotas, apikeys, publisher, settings)


async def drain(publisher):
    await publisher._queue.join()


async def test_unprivileged_serve_stores_record(service, records, quotas, settings):
    key = await service.serve(params())

    assert len(key) == settings.default_key_length
    record = await records.get_by_key(key)
    assert record.raw_body() == b"hello"
    assert record.eternal
    assert (await quotas.get_by_id("10.0.0.1")).value == settings.quota - 1


async def test_requested_key_length_honoured(service):
    key = await service.serve(params(requested_key_length=10))
    assert len(key) == 10


async def test_unprivileged_requested_key_writes_nothing(service, records, quotas):
    with pytest.raises(NonAuthorizedError):
        await service.serve(params(requested_key="mykey123"))

    assert not await records.exists("mykey123")
    assert records._records == {}
    assert quotas._quotas == {}


async def test_unknown_apikey_rejected(service, records):
    with pytest.raises(APIKeyInvalidError):
        await service.serve(params(api_key="nope"))
    assert records._records == {}


async def test_revoked_apikey_rejected(service, revoked_apikey):
    with pytest.raises(APIKeyInvalidError):
        await service.serve(params(api_key=revoked_apikey.key))


async def test_privileged_requested_key(service, records, valid_apikey, usage_sink, publisher):
    key = await service.serve(params(api_key=valid_apikey.key, requested_key="mine"))

    assert key == "mine"
    assert (await records.get_by_key("mine")).raw_body() == b"hello"

    await drain(publisher)
    assert [e.reason for e in usage_sink.events] == [UsageReason.CUSTOMKEY]
    assert usage_sink.events[0].api_key_id == str(valid_apikey.public_id)
    assert usage_sink.events[0].source_ip == "10.0.0.1"


async def test_privileged_requested_key_taken(service, valid_apikey):
    await service.serve(params(api_key=valid_apikey.key, requested_key="mine1234"))
    with pytest.raises(RequestedKeyExistsError):
        await service.serve(params(api_key=valid_apikey.key, requested_key="mine1234"))


async def test_privileged_eternal_record(service, records, valid_apikey, usage_sink, publisher):
    key = await service.serve(params(api_key=valid_apikey.key, ttl=timedelta(0)))

    record = await records.get_by_key(key)
    assert record.expiration_date.eternal

    await drain(publisher)
    assert [e.reason for e in usage_sink.events] == [UsageReason.PERSISTKEY]


async def test_privileged_plain_request_emits_nothing(service, quotas, valid_apikey, usage_sink, publisher):
    await service.serve(params(api_key=valid_apikey.key))

    await drain(publisher)
    assert usage_sink.events == []
    # Privileged writes never touch the quota
    assert quotas._quotas == {}


async def test_quota_exhaustion_keeps_record(records, apikeys):
    settings = Settings(_env_file=None, quota=2)
    quotas = MemoryQuotaRepository(settings)
    service = CacheService(records, quotas, apikeys, NullUsagePublisher(), settings)

    await service.serve(params())
    await service.serve(params())
    with pytest.raises(QuotaExhaustedError):
        await service.serve(params())

    # Write-then-check: the third record exists and the counter went negative
    assert len(records._records) == 3
    assert (await quotas.get_by_id("10.0.0.1")).value == -1


async def test_quota_is_per_source_ip(records, apikeys):
    settings = Settings(_env_file=None, quota=1)
    service = CacheService(records, MemoryQuotaRepository(settings), apikeys, NullUsagePublisher(), settings)

    await service.serve(params(source_ip="10.0.0.1"))
    await service.serve(params(source_ip="10.0.0.2"))
    with pytest.raises(QuotaExhaustedError):
        await service.serve(params(source_ip="10.0.0.1"))


async def test_serve_times_out(quotas, apikeys):
    settings = Settings(_env_file=None, operation_timeout=0.05)

    class SlowRecords(MemoryRecordRepository):
        async def set_by_key(self, key, record):
            await asyncio.sleep(1)

    service = CacheService(SlowRecords(settings), quotas, apikeys, NullUsagePublisher(), settings)
    with pytest.raises(StorageTimeoutError):
        await service.serve(params())
