"""In-memory repositories with the same semantics as the Redis ones.

Used when Redis is disabled (single process development) and by the test
suite. An asyncio lock per repository stands in for Redis' single-threaded
script execution.
"""

import asyncio
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from core.config import Settings
from core.errors import (
    APIKeyNotFoundError,
    QuotaNotFoundError,
    RecordCounterExhaustedError,
    RecordNotFoundError,
)
from core.logging import get_logger, log_store_operation
from models.apikey import APIKey
from models.quota import Quota
from models.record import ClicksCounter, DisposableCounter, ExpirationDate, Record, utcnow
from services.storage.compression import compress, decompress, is_compressed
from services.storage.keys import generate_unique_key

logger = get_logger(__name__)


def _clone(record: Record) -> Record:
    """Detach the stored copy from the caller's counters."""
    return Record(
        key=record.key,
        body=record.raw_body(),
        expiration_date=record.expiration_date,
        disposable_counter=DisposableCounter(record.countdown, eternal=record.eternal),
        clicks=ClicksCounter(record.click_count),
        url=record.url,
    )


class MemoryRecordRepository:
    """Records kept as (stored body, record) pairs with lazy expiry."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._records: Dict[str, Tuple[bytes, Record]] = {}
        self._lock = asyncio.Lock()

    def _live(self, key: str) -> Optional[Tuple[bytes, Record]]:
        entry = self._records.get(key)
        if entry is None:
            return None
        if entry[1].expired():
            # Store-level expiry
            del self._records[key]
            return None
        return entry

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None

    async def get_by_key(self, key: str) -> Record:
        entry = self._live(key)
        if entry is None:
            log_store_operation(logger, "get", key, hit=False)
            raise RecordNotFoundError()
        log_store_operation(logger, "get", key, hit=True)

        stored_body, stored = entry
        body = stored_body
        if is_compressed(body):
            body = decompress(body, self.settings.privileged_max_body_size)
        return Record(
            key=key,
            body=body,
            expiration_date=stored.expiration_date,
            disposable_counter=DisposableCounter(stored.countdown, eternal=stored.eternal),
            clicks=ClicksCounter(stored.click_count),
            url=stored.url,
        )

    async def set_by_key(self, key: str, record: Record) -> None:
        body = record.raw_body()
        # A stored value starting with the gzip magic is always our own output
        if len(body) > self.settings.compress_threshold_bytes or is_compressed(body):
            body = compress(body)
        async with self._lock:
            self._records[key] = (body, _clone(record))
        log_store_operation(logger, "set", key, ttl=int(record.ttl().total_seconds()))

    async def register_read(self, key: str, record: Record) -> int:
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                raise RecordNotFoundError()
            stored = entry[1]
            if stored.counter_exhausted():
                raise RecordCounterExhaustedError()
            stored.disposable_counter.sub()
            stored.clicks.increase()
            return stored.click_count

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._records.pop(key, None)
        log_store_operation(logger, "delete", key)

    async def generate_unique_key(self, min_length: int, max_length: int) -> str:
        return await generate_unique_key(
            self.exists,
            min_length,
            max_length,
            self.settings.keys_charset,
            self.settings.attempts_to_increase_key_length,
        )

    def stored_body(self, key: str) -> bytes:
        """Body exactly as persisted (possibly compressed)."""
        return self._records[key][0]


class MemoryQuotaRepository:
    """Quotas with a reset deadline per source IP."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._quotas: Dict[str, Tuple[Quota, ExpirationDate]] = {}
        self._lock = asyncio.Lock()

    def _live(self, source_ip: str) -> Optional[Quota]:
        entry = self._quotas.get(source_ip)
        if entry is None:
            return None
        quota, resets_at = entry
        if resets_at.expired():
            del self._quotas[source_ip]
            return None
        return quota

    def _deadline(self) -> ExpirationDate:
        return ExpirationDate(at=utcnow() + self.settings.quota_reset_period)

    async def get_by_id(self, source_ip: str) -> Quota:
        quota = self._live(source_ip)
        if quota is None:
            raise QuotaNotFoundError()
        return Quota(source_ip, quota.default, value=quota.value)

    async def set_by_id(self, source_ip: str, quota: Quota) -> None:
        async with self._lock:
            existing = self._quotas.get(source_ip)
            deadline = existing[1] if existing and not existing[1].expired() else self._deadline()
            self._quotas[source_ip] = (Quota(source_ip, quota.default, value=quota.value), deadline)

    async def acquire(self, source_ip: str) -> Quota:
        async with self._lock:
            quota = self._live(source_ip)
            if quota is None:
                quota = Quota(source_ip, self.settings.quota)
                self._quotas[source_ip] = (quota, self._deadline())
            before = Quota(source_ip, quota.default, value=quota.value)
            quota.sub()
            return before

    def expire_now(self, source_ip: str) -> None:
        """Force the reset period to elapse for ``source_ip``."""
        entry = self._quotas.get(source_ip)
        if entry is not None:
            self._quotas[source_ip] = (entry[0], ExpirationDate(at=utcnow() - timedelta(seconds=1)))


class MemoryAPIKeyRepository:
    """API keys keyed by secret."""

    def __init__(self):
        self._apikeys: Dict[str, APIKey] = {}

    async def exists(self, key: str) -> bool:
        return key in self._apikeys

    async def get_by_id(self, key: str) -> APIKey:
        apikey = self._apikeys.get(key)
        if apikey is None:
            raise APIKeyNotFoundError()
        return APIKey(key=apikey.key, public_id=apikey.public_id, valid=apikey.valid)

    async def set_by_id(self, key: str, apikey: APIKey) -> None:
        self._apikeys[key] = APIKey(key=key, public_id=apikey.public_id, valid=apikey.valid)

    async def remove_by_id(self, key: str) -> None:
        if self._apikeys.pop(key, None) is None:
            raise APIKeyNotFoundError()

    async def get_all(self) -> List[APIKey]:
        return [APIKey(key=a.key, public_id=a.public_id, valid=a.valid) for a in self._apikeys.values()]
