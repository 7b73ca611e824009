"""Redis connection management for the paste service.

Three logical databases share one server:
    db 0 -> records   (HASH per paste key)
    db 1 -> API keys  (HASH per secret token)
    db 2 -> quotas    (HASH per source IP)

Audit events go to a Redis Stream in the records database.
"""

import json
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from core.config import Settings
from core.logging import get_logger

logger = get_logger(__name__)


class StoreService:
    """Owns the long-lived connection pools shared by all requests.

    Bodies are binary, so clients are created with ``decode_responses=False``.
    Retries are configured on the connection, never in business logic.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.records: Optional[redis.Redis] = None
        self.apikeys: Optional[redis.Redis] = None
        self.quotas: Optional[redis.Redis] = None

    def _client(self, db: int) -> redis.Redis:
        retry = Retry(ExponentialBackoff(cap=1.0, base=0.05), self.settings.redis_max_retries)
        return redis.from_url(
            self.settings.redis_url,
            db=db,
            decode_responses=False,
            socket_timeout=self.settings.redis_socket_timeout,
            socket_connect_timeout=self.settings.redis_connect_timeout,
            retry=retry,
            retry_on_error=[RedisConnectionError, RedisTimeoutError],
        )

    async def startup(self):
        """Open connection pools and verify the server answers."""
        self.records = self._client(self.settings.records_db)
        self.apikeys = self._client(self.settings.apikeys_db)
        self.quotas = self._client(self.settings.quota_db)

        await self.records.ping()
        logger.info("Connected to database (records)", db=self.settings.records_db)
        await self.apikeys.ping()
        logger.info("Connected to database (apikeys)", db=self.settings.apikeys_db)
        await self.quotas.ping()
        logger.info("Connected to database (quota)", db=self.settings.quota_db)

    async def shutdown(self):
        """Close connection pools."""
        for client in (self.records, self.apikeys, self.quotas):
            if client is not None:
                await client.aclose()
        self.records = self.apikeys = self.quotas = None
        logger.info("Redis connections closed")

    async def ping(self) -> bool:
        """Check store availability."""
        if self.records is None:
            return False
        try:
            return bool(await self.records.ping())
        except RedisError as e:
            logger.warning("Store ping failed", error=str(e))
            return False

    async def stream_add(self, stream: str, data: Dict[str, Any], maxlen: int = 1000) -> Optional[str]:
        """Append an entry to a Redis Stream.

        Args:
            stream: Stream name
            data: Flat mapping; nested values are JSON encoded
            maxlen: Approximate stream length cap

        Returns:
            Message ID
        """
        serialized = {k: json.dumps(v) if isinstance(v, (dict, list)) else str(v)
                      for k, v in data.items()}
        msg_id = await self.records.xadd(stream, serialized, maxlen=maxlen, approximate=True)
        if isinstance(msg_id, bytes):
            msg_id = msg_id.decode("utf-8")
        logger.debug("Stream add", stream=stream, msg_id=msg_id)
        return msg_id

    def is_connected(self) -> bool:
        return self.records is not None
