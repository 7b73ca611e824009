"""Capability protocols consumed by the orchestrators.

Each component depends on the smallest operation set it needs, so the
core runs unchanged against Redis or the in-memory repositories.
"""

from typing import List, Protocol

from models.apikey import APIKey
from models.quota import Quota
from models.record import Record


class RecordRepository(Protocol):
    """Persists and retrieves records."""

    async def exists(self, key: str) -> bool:
        ...

    async def get_by_key(self, key: str) -> Record:
        """Raises RecordNotFoundError when absent."""
        ...

    async def set_by_key(self, key: str, record: Record) -> None:
        ...

    async def register_read(self, key: str, record: Record) -> int:
        """Atomically apply one successful read to the stored counters.

        Decrements the disposable countdown (unless eternal) and increments
        clicks in a single store-side step. Returns the stored click count.

        Raises:
            RecordCounterExhaustedError: another reader took the last read
            RecordNotFoundError: the record vanished meanwhile
        """
        ...

    async def delete(self, key: str) -> None:
        ...

    async def generate_unique_key(self, min_length: int, max_length: int) -> str:
        ...


class QuotaRepository(Protocol):
    """Per source IP allowance storage."""

    async def get_by_id(self, source_ip: str) -> Quota:
        """Raises QuotaNotFoundError when absent."""
        ...

    async def set_by_id(self, source_ip: str, quota: Quota) -> None:
        ...

    async def acquire(self, source_ip: str) -> Quota:
        """Atomically take one unit, creating the quota lazily.

        Returns the quota as it stood before this unit was taken.
        """
        ...


class APIKeyReader(Protocol):
    """Read-only API key lookup."""

    async def get_by_id(self, key: str) -> APIKey:
        """Raises APIKeyNotFoundError when absent."""
        ...

    async def exists(self, key: str) -> bool:
        ...


class APIKeyWriter(Protocol):
    """Administrative API key mutations."""

    async def set_by_id(self, key: str, apikey: APIKey) -> None:
        ...

    async def remove_by_id(self, key: str) -> None:
        ...

    async def get_all(self) -> List[APIKey]:
        ...
