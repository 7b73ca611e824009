"""API key administration.

Keys are issued out of band; this service is the programmatic surface for
creating, revoking, restoring and listing them.
"""

import secrets
import uuid
from typing import List

from constants import APIKEY_LENGTH
from core.logging import get_logger
from models.apikey import APIKey
from services.storage import APIKeyReader, APIKeyWriter

logger = get_logger(__name__)


class APIKeysService:
    """Lifecycle operations over the API key store."""

    def __init__(self, reader: APIKeyReader, writer: APIKeyWriter):
        self.reader = reader
        self.writer = writer

    async def generate(self) -> APIKey:
        """Issue a new valid key with a random secret and public id."""
        apikey = APIKey(key=secrets.token_hex(APIKEY_LENGTH // 2), public_id=uuid.uuid4())
        await self.writer.set_by_id(apikey.key, apikey)
        logger.info("API key generated", apikey_id=str(apikey.public_id))
        return apikey

    async def invalidate(self, key: str) -> APIKey:
        apikey = await self.reader.get_by_id(key)
        apikey.invalidate()
        await self.writer.set_by_id(key, apikey)
        logger.info("API key invalidated", apikey_id=str(apikey.public_id))
        return apikey

    async def reauthorize(self, key: str) -> APIKey:
        apikey = await self.reader.get_by_id(key)
        apikey.reauthorize()
        await self.writer.set_by_id(key, apikey)
        logger.info("API key reauthorized", apikey_id=str(apikey.public_id))
        return apikey

    async def remove(self, key: str) -> None:
        await self.writer.remove_by_id(key)
        logger.info("API key removed", apikey_prefix=key[:6])

    async def fetch_all(self) -> List[APIKey]:
        return await self.writer.get_all()
