"""Cache orchestrator: turns one validated request into a stored record."""

import asyncio
from typing import Optional

from core.config import Settings
from core.errors import (
    APIKeyInvalidError,
    APIKeyNotFoundError,
    QuotaExhaustedError,
    StorageTimeoutError,
)
from core.logging import get_logger
from models.apikey import APIKey
from models.record import Record
from models.request import APIKeyUsedEvent, CacheRequestParams
from services.events import UsagePublisherProtocol
from services.storage import APIKeyReader, QuotaRepository, RecordRepository, reserve_requested_key
from services.validation import usage_reason, validate_request

logger = get_logger(__name__)


class CacheService:
    """Serve cache requests.

    Pipeline: API key lookup, validation, key resolution, record write,
    then either a usage event (privileged) or a quota charge (unprivileged).
    """

    def __init__(
        self,
        record_repository: RecordRepository,
        quota_repository: QuotaRepository,
        apikey_reader: APIKeyReader,
        publisher: UsagePublisherProtocol,
        settings: Settings,
    ):
        self.records = record_repository
        self.quotas = quota_repository
        self.apikeys = apikey_reader
        self.publisher = publisher
        self.settings = settings

    async def serve(self, params: CacheRequestParams) -> str:
        """Store the request body and return the key it is reachable under.

        Raises:
            APIKeyInvalidError: API key given but unknown or revoked
            ClientInputError: request rejected by the validator
            QuotaExhaustedError: unprivileged caller out of quota
            StorageTimeoutError: operation exceeded the configured deadline
        """
        try:
            return await asyncio.wait_for(self._serve(params), timeout=self.settings.operation_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Cache request timed out", timeout=self.settings.operation_timeout)
            raise StorageTimeoutError() from e

    async def _serve(self, params: CacheRequestParams) -> str:
        apikey = await self._lookup_apikey(params.api_key)
        privileged = apikey is not None

        validate_request(params, privileged, self.settings)

        if privileged and params.requested_key:
            key = params.requested_key
            await reserve_requested_key(self.records.exists, key)
        else:
            key = await self.records.generate_unique_key(
                params.requested_key_length or self.settings.default_key_length,
                self.settings.max_key_length,
            )

        record = Record.create(key, params.body, params.ttl, params.disposable, url=params.is_url)
        await self.records.set_by_key(key, record)
        logger.info("Record cached", key=key, privileged=privileged,
                    size=params.body_len, ttl=int(params.ttl.total_seconds()),
                    disposable=params.disposable, url=params.is_url)

        if privileged:
            self._publish_usage(apikey, params)
        else:
            await self._charge_quota(params.source_ip)

        return key

    async def _lookup_apikey(self, api_key: str) -> Optional[APIKey]:
        """Missing and revoked keys are reported the same way."""
        if not api_key:
            return None
        try:
            apikey = await self.apikeys.get_by_id(api_key)
        except APIKeyNotFoundError as e:
            logger.warning("Unknown API key", apikey_prefix=api_key[:6])
            raise APIKeyInvalidError() from e
        if not apikey.valid:
            logger.warning("Revoked API key used", apikey_id=str(apikey.public_id))
            raise APIKeyInvalidError()
        return apikey

    def _publish_usage(self, apikey: APIKey, params: CacheRequestParams) -> None:
        reason = usage_reason(params, self.settings)
        if reason is None:
            return
        self.publisher.notify_all(APIKeyUsedEvent(
            api_key_id=str(apikey.public_id),
            reason=reason,
            source_ip=params.source_ip,
        ))

    async def _charge_quota(self, source_ip: str) -> None:
        # The record stays written and the quota stays charged on rejection
        quota = await self.quotas.acquire(source_ip)
        if quota.exhausted():
            logger.warning("Quota exhausted", source_ip=source_ip)
            raise QuotaExhaustedError()
