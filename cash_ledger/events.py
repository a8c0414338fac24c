"""MovementRecorded notifications for cache invalidation and reporting."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Protocol

from cash_ledger.models import Event, Movement
from cash_ledger.sinks.serialization import to_dict

logger = logging.getLogger(__name__)

MOVEMENT_RECORDED = "movement.recorded"


class NotificationSink(Protocol):
    def write_batch(self, entity_type: str, records: list[Any]) -> None: ...


class MovementPublisher:
    """Fan out committed movements to sinks and in-process listeners.

    Publishing happens after the ledger transaction has committed, so a
    failing sink never undoes a recorded movement; the error still
    reaches the caller.
    """

    def __init__(
        self,
        topic: str = "ledger.movements",
        sinks: list[NotificationSink] | None = None,
        source: str = "cash-ledger",
    ) -> None:
        self.topic = topic
        self.source = source
        self._sinks: list[NotificationSink] = list(sinks or [])
        self._listeners: list[Callable[[Event], None]] = []

    def add_sink(self, sink: NotificationSink) -> None:
        self._sinks.append(sink)

    def subscribe(self, listener: Callable[[Event], None]) -> None:
        """Register a callable invoked with every ``movement.recorded`` event."""
        self._listeners.append(listener)

    def publish(self, movements: list[Movement]) -> list[Event]:
        """Emit one ``movement.recorded`` event per movement."""
        if not movements:
            return []

        events = [self._to_event(movement) for movement in movements]
        for event in events:
            for listener in self._listeners:
                listener(event)

        for sink in self._sinks:
            try:
                sink.write_batch(self.topic, events)
            except Exception:
                logger.exception(
                    "Sink %s failed publishing %d movements", type(sink).__name__, len(events)
                )
                raise

        logger.debug("Published %d movement events to %s", len(events), self.topic)
        return events

    def _to_event(self, movement: Movement) -> Event:
        subject = (movement.destination or movement.source).key
        return Event(
            event_id=str(uuid.uuid4()),
            event_type=MOVEMENT_RECORDED,
            event_time=datetime.now(),
            source=self.source,
            subject=subject,
            data=to_dict(movement),
            metadata={
                "accounts": [ref.key for ref in (movement.source, movement.destination) if ref],
                "currency": movement.currency.value,
            },
        )
