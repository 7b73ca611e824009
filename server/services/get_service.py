"""Retrieval orchestrator for record bodies and click counts."""

import asyncio
from dataclasses import dataclass

from core.config import Settings
from core.errors import RecordCounterExhaustedError, RecordExpiredError, StorageTimeoutError
from core.logging import get_logger
from services.storage import RecordRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class GetBodyAnswer:
    body: bytes
    is_url: bool


class GetService:
    """Read records through their domain checks."""

    def __init__(self, record_repository: RecordRepository, settings: Settings):
        self.records = record_repository
        self.settings = settings

    async def get_body(self, key: str) -> GetBodyAnswer:
        """Consume one read of ``key``.

        Raises:
            RecordNotFoundError: key absent
            RecordCounterExhaustedError: no reads left
            RecordExpiredError: past expiration
            StorageTimeoutError: deadline exceeded
        """
        return await self._bounded(self._get_body(key))

    async def get_clicks(self, key: str) -> int:
        """Successful read count; reading it does not count as a read."""
        return await self._bounded(self._get_clicks(key))

    async def _bounded(self, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.settings.operation_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Retrieval timed out", timeout=self.settings.operation_timeout)
            raise StorageTimeoutError() from e

    async def _get_body(self, key: str) -> GetBodyAnswer:
        record = await self.records.get_by_key(key)
        try:
            body = record.get_body()
            # Store-side counterpart of the in-memory mutation above
            clicks = await self.records.register_read(key, record)
        except (RecordCounterExhaustedError, RecordExpiredError) as e:
            logger.info("Record no longer readable, deleting", key=key, reason=e.message)
            await self.records.delete(key)
            raise

        logger.debug("Record read", key=key, clicks=clicks, remaining=record.countdown)
        return GetBodyAnswer(body=body, is_url=record.url)

    async def _get_clicks(self, key: str) -> int:
        record = await self.records.get_by_key(key)
        return record.click_count
