"""Fire-and-forget event delivery."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional, Protocol

from apiwave.events.models import DomainEvent, event_to_dict

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Receives published events (a message bus client, a webhook, ...)."""

    async def send(self, event: DomainEvent) -> None: ...


class LoggingEventSink:
    """Writes each event to the log as JSON."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    async def send(self, event: DomainEvent) -> None:
        logger.log(self.level, f"Event: {json.dumps(event_to_dict(event))}")


class InMemoryEventSink:
    """Collects events in a list."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    async def send(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list[DomainEvent]:
        return [e for e in self.events if isinstance(e, event_type)]


class EventPublisher:
    """Publishes events without blocking or failing the caller.

    Each event is delivered in its own task. Delivery errors are logged
    and dropped.
    """

    def __init__(self, sink: Optional[EventSink] = None):
        self.sink: EventSink = sink or LoggingEventSink()
        self._pending: set[asyncio.Task] = set()

    def publish(self, event: DomainEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop; dropping {event.TYPE} event")
            return

        task = loop.create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: DomainEvent) -> None:
        try:
            await self.sink.send(event)
        except Exception as e:
            logger.warning(f"Failed to deliver {event.TYPE} event {event.event_id}: {e}")

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
