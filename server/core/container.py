"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from core.store import StoreService
from services.apikeys import APIKeysService
from services.cache_service import CacheService
from services.events import LogUsageSink, RedisStreamUsageSink, create_usage_publisher
from services.get_service import GetService
from services.storage import (
    MemoryAPIKeyRepository,
    MemoryQuotaRepository,
    MemoryRecordRepository,
    RedisAPIKeyRepository,
    RedisQuotaRepository,
    RedisRecordRepository,
)


def _backend_name(settings: Settings) -> str:
    return "redis" if settings.redis_enabled else "memory"


class Container(containers.DeclarativeContainer):
    """Application dependency injection container.

    Built once per application by ``main.create_app``. Repositories are
    selected by ``Settings.redis_enabled``; the Redis clients only exist
    after ``store().startup()`` so repository providers are resolved lazily.
    """

    settings = providers.Singleton(Settings)

    store = providers.Singleton(StoreService, settings=settings)

    backend = providers.Callable(_backend_name, settings)

    record_repository = providers.Selector(
        backend,
        redis=providers.Singleton(
            RedisRecordRepository,
            client=store.provided.records,
            settings=settings,
        ),
        memory=providers.Singleton(MemoryRecordRepository, settings=settings),
    )

    quota_repository = providers.Selector(
        backend,
        redis=providers.Singleton(
            RedisQuotaRepository,
            client=store.provided.quotas,
            settings=settings,
        ),
        memory=providers.Singleton(MemoryQuotaRepository, settings=settings),
    )

    apikey_repository = providers.Selector(
        backend,
        redis=providers.Singleton(RedisAPIKeyRepository, client=store.provided.apikeys),
        memory=providers.Singleton(MemoryAPIKeyRepository),
    )

    usage_sink = providers.Selector(
        backend,
        redis=providers.Singleton(
            RedisStreamUsageSink,
            store=store,
            stream=settings.provided.usage_events_stream,
            maxlen=settings.provided.usage_events_stream_maxlen,
        ),
        memory=providers.Singleton(LogUsageSink),
    )

    usage_publisher = providers.Singleton(
        create_usage_publisher,
        sink=usage_sink,
        enabled=settings.provided.usage_events_enabled,
        queue_size=settings.provided.usage_events_queue_size,
    )

    # Services
    cache_service = providers.Factory(
        CacheService,
        record_repository=record_repository,
        quota_repository=quota_repository,
        apikey_reader=apikey_repository,
        publisher=usage_publisher,
        settings=settings,
    )

    get_service = providers.Factory(
        GetService,
        record_repository=record_repository,
        settings=settings,
    )

    apikeys_service = providers.Factory(
        APIKeysService,
        reader=apikey_repository,
        writer=apikey_repository,
    )
