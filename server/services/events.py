"""API key usage audit trail.

Fire-and-forget publishing over a bounded in-process queue drained by one
background consumer. Publishing never blocks the request and never raises;
a full queue or a failing sink loses the event with a log line.

Usage:
    publisher = create_usage_publisher(sink, enabled=settings.usage_events_enabled)
    await publisher.start()
    publisher.notify_all(APIKeyUsedEvent(api_key_id, reason, source_ip))
    await publisher.stop()
"""

import asyncio
from typing import List, Optional, Protocol

from core.logging import get_logger
from core.store import StoreService
from models.request import APIKeyUsedEvent

logger = get_logger(__name__)


class UsageSink(Protocol):
    """Destination for usage events."""

    async def send(self, event: APIKeyUsedEvent) -> None:
        ...


class UsagePublisherProtocol(Protocol):
    """Protocol for usage publishers (enables duck typing)."""

    def notify_all(self, event: APIKeyUsedEvent) -> None:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...


class RedisStreamUsageSink:
    """Appends usage events to a capped Redis Stream."""

    def __init__(self, store: StoreService, stream: str, maxlen: int):
        self.store = store
        self.stream = stream
        self.maxlen = maxlen

    async def send(self, event: APIKeyUsedEvent) -> None:
        await self.store.stream_add(self.stream, event.to_dict(), maxlen=self.maxlen)


class LogUsageSink:
    """Writes usage events to the log only (no broker available)."""

    async def send(self, event: APIKeyUsedEvent) -> None:
        logger.info("API key used", **event.to_dict())


class MemoryUsageSink:
    """Collects events in a list."""

    def __init__(self):
        self.events: List[APIKeyUsedEvent] = []

    async def send(self, event: APIKeyUsedEvent) -> None:
        self.events.append(event)


class NullUsagePublisher:
    """No-op publisher when auditing is disabled.

    This follows the Null Object pattern - all operations succeed silently.
    """

    def notify_all(self, event: APIKeyUsedEvent) -> None:
        logger.debug("Usage events disabled, dropping event",
                     apikey_id=event.api_key_id, reason=event.reason.value)

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass


class UsagePublisher:
    """Bounded queue plus background consumer."""

    def __init__(self, sink: UsageSink, queue_size: int = 1024):
        self.sink = sink
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._task: Optional[asyncio.Task] = None
        self._running = False

    def notify_all(self, event: APIKeyUsedEvent) -> None:
        """Enqueue without waiting."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Usage event queue full, dropping event",
                           apikey_id=event.api_key_id, reason=event.reason.value)

    async def start(self) -> None:
        if self._running:
            logger.warning("Usage publisher already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._consume_loop())
        logger.info("Usage publisher started")

    async def stop(self) -> None:
        """Deliver what is queued, then stop the consumer."""
        if not self._running:
            return
        await self._queue.join()
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Usage publisher stopped")

    async def _consume_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.sink.send(event)
            except Exception as e:
                # Best-effort audit: a failed delivery must not kill the consumer
                logger.error("Failed to publish usage event",
                             apikey_id=event.api_key_id, reason=event.reason.value, error=str(e))
            finally:
                self._queue.task_done()


def create_usage_publisher(sink: UsageSink, enabled: bool = True,
                           queue_size: int = 1024) -> UsagePublisherProtocol:
    """Factory function to create the appropriate publisher."""
    if enabled:
        return UsagePublisher(sink, queue_size=queue_size)
    logger.debug("Usage events disabled")
    return NullUsagePublisher()
