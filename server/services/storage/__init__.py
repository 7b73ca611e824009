"""Storage adapters for records, quotas and API keys.

Redis repositories for deployment, in-memory ones for single-process
development and tests. Both satisfy the protocols in ``protocols``.
"""

from .protocols import RecordRepository, QuotaRepository, APIKeyReader, APIKeyWriter
from .redis_repositories import (
    RedisRecordRepository,
    RedisQuotaRepository,
    RedisAPIKeyRepository,
)
from .memory import (
    MemoryRecordRepository,
    MemoryQuotaRepository,
    MemoryAPIKeyRepository,
)
from .keys import generate_key, generate_unique_key, reserve_requested_key
from .compression import compress, decompress, is_compressed

__all__ = [
    "RecordRepository",
    "QuotaRepository",
    "APIKeyReader",
    "APIKeyWriter",
    "RedisRecordRepository",
    "RedisQuotaRepository",
    "RedisAPIKeyRepository",
    "MemoryRecordRepository",
    "MemoryQuotaRepository",
    "MemoryAPIKeyRepository",
    "generate_key",
    "generate_unique_key",
    "reserve_requested_key",
    "compress",
    "decompress",
    "is_compressed",
]
