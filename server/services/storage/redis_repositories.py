"""Redis-backed repositories.

Key schema (per logical database, see core.store):
    {record_key}  -> HASH {body, ttl, clicks, countdown, eternal, url}   db 0
    {api_key}     -> HASH {id, valid}                                   db 1
    {source_ip}   -> HASH {value}                                       db 2

Record expiration is carried by the store-native key expiry; reads rebuild
it from PTTL. Counter mutations run as Lua scripts so that concurrent
requests never read-modify-write the same hash from the application side.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from constants import (
    APIKEY_FIELD_ID,
    APIKEY_FIELD_VALID,
    QUOTA_FIELD_VALUE,
    RECORD_FIELD_BODY,
    RECORD_FIELD_CLICKS,
    RECORD_FIELD_COUNTDOWN,
    RECORD_FIELD_ETERNAL,
    RECORD_FIELD_TTL,
    RECORD_FIELD_URL,
)
from core.config import Settings
from core.errors import (
    APIKeyNotFoundError,
    QuotaNotFoundError,
    RecordCounterExhaustedError,
    RecordNotFoundError,
    StorageError,
    StorageTimeoutError,
)
from core.logging import get_logger, log_store_operation
from models.apikey import APIKey
from models.quota import Quota
from models.record import ClicksCounter, DisposableCounter, ExpirationDate, Record, utcnow
from services.storage.compression import compress, decompress, is_compressed
from services.storage.keys import generate_unique_key

logger = get_logger(__name__)

# PTTL replies for keys without expiry / missing keys
_PTTL_NO_EXPIRY = -1
_PTTL_MISSING = -2

# Sentinels returned by the read script
_READ_MISSING = -1
_READ_EXHAUSTED = -2

REGISTER_READ_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return -1
end
if redis.call('HGET', KEYS[1], 'eternal') ~= '1' then
    local countdown = tonumber(redis.call('HGET', KEYS[1], 'countdown') or '0')
    if countdown < 1 then
        return -2
    end
    redis.call('HINCRBY', KEYS[1], 'countdown', -1)
end
return redis.call('HINCRBY', KEYS[1], 'clicks', 1)
"""

QUOTA_ACQUIRE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    redis.call('HSET', KEYS[1], 'value', ARGV[1])
    redis.call('EXPIRE', KEYS[1], ARGV[2])
end
local before = tonumber(redis.call('HGET', KEYS[1], 'value'))
redis.call('HINCRBY', KEYS[1], 'value', -1)
return before
"""

QUOTA_SET_SCRIPT = """
redis.call('HSET', KEYS[1], 'value', ARGV[1])
if redis.call('TTL', KEYS[1]) < 0 then
    redis.call('EXPIRE', KEYS[1], ARGV[2])
end
return 1
"""


@asynccontextmanager
async def store_errors(operation: str, key: str):
    """Translate redis-py failures into the service hierarchy."""
    try:
        yield
    except RedisTimeoutError as e:
        logger.error("Store timeout", operation=operation, store_key=key, error=str(e))
        raise StorageTimeoutError(f"{operation} '{key}': {e}") from e
    except RedisError as e:
        logger.error("Store failure", operation=operation, store_key=key, error=str(e))
        raise StorageError(f"{operation} '{key}': {e}") from e


def _to_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _to_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    return int(_to_str(value))


def _to_bool(value: Any) -> bool:
    return _to_str(value) in ("1", "true", "True") if value is not None else False


def _field(data: Dict[Any, Any], name: str) -> Any:
    """Hash fields come back as bytes keys from a binary client."""
    if name.encode() in data:
        return data[name.encode()]
    return data.get(name)


# =============================================================================
# RECORDS
# =============================================================================

class RedisRecordRepository:
    """Records as Redis hashes with transparent body compression."""

    def __init__(self, client: redis.Redis, settings: Settings):
        self.client = client
        self.settings = settings
        self._register_read = client.register_script(REGISTER_READ_SCRIPT)

    async def exists(self, key: str) -> bool:
        async with store_errors("exists", key):
            return await self.client.exists(key) > 0

    async def get_by_key(self, key: str) -> Record:
        async with store_errors("get", key):
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.hgetall(key)
                pipe.pttl(key)
                data, pttl = await pipe.execute()

        if not data or pttl == _PTTL_MISSING:
            log_store_operation(logger, "get", key, hit=False)
            raise RecordNotFoundError()
        log_store_operation(logger, "get", key, hit=True)

        body = _field(data, RECORD_FIELD_BODY) or b""
        if is_compressed(body):
            body = decompress(body, self.settings.privileged_max_body_size)

        if pttl == _PTTL_NO_EXPIRY:
            expiration = ExpirationDate(at=utcnow(), eternal=True)
        else:
            expiration = ExpirationDate(at=utcnow() + timedelta(milliseconds=pttl))

        return Record(
            key=key,
            body=body,
            expiration_date=expiration,
            disposable_counter=DisposableCounter(
                _to_int(_field(data, RECORD_FIELD_COUNTDOWN)),
                eternal=_to_bool(_field(data, RECORD_FIELD_ETERNAL)),
            ),
            clicks=ClicksCounter(_to_int(_field(data, RECORD_FIELD_CLICKS))),
            url=_to_bool(_field(data, RECORD_FIELD_URL)),
        )

    async def set_by_key(self, key: str, record: Record) -> None:
        body = record.raw_body()
        # A stored value starting with the gzip magic is always our own output
        if len(body) > self.settings.compress_threshold_bytes or is_compressed(body):
            body = compress(body)

        ttl = record.ttl()
        mapping = {
            RECORD_FIELD_BODY: body,
            RECORD_FIELD_TTL: int(ttl.total_seconds()),
            RECORD_FIELD_CLICKS: record.click_count,
            RECORD_FIELD_COUNTDOWN: record.countdown,
            RECORD_FIELD_ETERNAL: int(record.eternal),
            RECORD_FIELD_URL: int(record.url),
        }

        async with store_errors("set", key):
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping=mapping)
                if record.expiration_date.eternal:
                    pipe.persist(key)
                else:
                    # Sub-millisecond leftovers would make PEXPIRE 0 delete the key
                    pipe.pexpire(key, max(int(ttl.total_seconds() * 1000), 1))
                await pipe.execute()

        log_store_operation(logger, "set", key, ttl=int(ttl.total_seconds()),
                            compressed=body is not record.raw_body())

    async def register_read(self, key: str, record: Record) -> int:
        async with store_errors("register_read", key):
            result = await self._register_read(keys=[key])

        result = int(result)
        if result == _READ_MISSING:
            raise RecordNotFoundError()
        if result == _READ_EXHAUSTED:
            raise RecordCounterExhaustedError()
        return result

    async def delete(self, key: str) -> None:
        async with store_errors("delete", key):
            await self.client.delete(key)
        log_store_operation(logger, "delete", key)

    async def generate_unique_key(self, min_length: int, max_length: int) -> str:
        return await generate_unique_key(
            self.exists,
            min_length,
            max_length,
            self.settings.keys_charset,
            self.settings.attempts_to_increase_key_length,
        )


# =============================================================================
# QUOTAS
# =============================================================================

class RedisQuotaRepository:
    """Quotas as Redis hashes expiring after the reset period."""

    def __init__(self, client: redis.Redis, settings: Settings):
        self.client = client
        self.settings = settings
        self._acquire = client.register_script(QUOTA_ACQUIRE_SCRIPT)
        self._set = client.register_script(QUOTA_SET_SCRIPT)

    @property
    def _period_seconds(self) -> int:
        return int(self.settings.quota_reset_period.total_seconds())

    async def get_by_id(self, source_ip: str) -> Quota:
        async with store_errors("quota_get", source_ip):
            value = await self.client.hget(source_ip, QUOTA_FIELD_VALUE)
        if value is None:
            raise QuotaNotFoundError()
        return Quota(source_ip, self.settings.quota, value=_to_int(value))

    async def set_by_id(self, source_ip: str, quota: Quota) -> None:
        async with store_errors("quota_set", source_ip):
            await self._set(keys=[source_ip], args=[quota.value, self._period_seconds])

    async def acquire(self, source_ip: str) -> Quota:
        async with store_errors("quota_acquire", source_ip):
            before = await self._acquire(keys=[source_ip], args=[self.settings.quota, self._period_seconds])
        return Quota(source_ip, self.settings.quota, value=int(before))


# =============================================================================
# API KEYS
# =============================================================================

class RedisAPIKeyRepository:
    """API keys as Redis hashes keyed by the secret token."""

    def __init__(self, client: redis.Redis):
        self.client = client

    async def exists(self, key: str) -> bool:
        async with store_errors("apikey_exists", key[:6]):
            return await self.client.exists(key) > 0

    async def get_by_id(self, key: str) -> APIKey:
        # Only a prefix of the secret ever reaches the logs
        async with store_errors("apikey_get", key[:6]):
            data = await self.client.hgetall(key)
        if not data:
            raise APIKeyNotFoundError()
        return self._from_hash(key, data)

    async def set_by_id(self, key: str, apikey: APIKey) -> None:
        mapping = {
            APIKEY_FIELD_ID: str(apikey.public_id),
            APIKEY_FIELD_VALID: int(apikey.valid),
        }
        async with store_errors("apikey_set", key[:6]):
            await self.client.hset(key, mapping=mapping)

    async def remove_by_id(self, key: str) -> None:
        async with store_errors("apikey_remove", key[:6]):
            removed = await self.client.delete(key)
        if not removed:
            raise APIKeyNotFoundError()

    async def get_all(self) -> List[APIKey]:
        apikeys: List[APIKey] = []
        async with store_errors("apikey_scan", "*"):
            async for raw_key in self.client.scan_iter(count=100):
                data = await self.client.hgetall(raw_key)
                if data:
                    apikeys.append(self._from_hash(_to_str(raw_key), data))
        return apikeys

    @staticmethod
    def _from_hash(key: str, data: Dict[Any, Any]) -> APIKey:
        public_id: Optional[Any] = _field(data, APIKEY_FIELD_ID)
        try:
            parsed = uuid.UUID(_to_str(public_id))
        except (TypeError, ValueError) as e:
            raise StorageError(f"fail to parse apikey record id: {e}") from e
        return APIKey(key=key, public_id=parsed, valid=_to_bool(_field(data, APIKEY_FIELD_VALID)))
