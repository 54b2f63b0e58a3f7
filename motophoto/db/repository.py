"""Event repository interface and the in-memory implementation.

Handlers depend on the EventRepository capability only, so the in-memory
demo store and a future database-backed store are interchangeable.
"""

import logging
from typing import Iterable, Protocol, Sequence, Tuple

from ..models.event import Event

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """Raised when no event matches the requested id."""

    def __init__(self, event_id: str):
        super().__init__(f"Event with ID {event_id!r} not found")
        self.event_id = event_id


class EventRepository(Protocol):
    """Read access to events."""

    def list_events(self) -> Sequence[Event]:
        ...

    def get_event(self, event_id: str) -> Event:
        ...


class InMemoryEventRepository:
    """Immutable, process-lifetime event store."""

    def __init__(self, events: Iterable[Event]):
        self._events: Tuple[Event, ...] = tuple(events)

        seen = set()
        for event in self._events:
            if event.id in seen:
                raise ValueError(f"Duplicate event id {event.id}")
            seen.add(event.id)

        logger.debug(f"Loaded {len(self._events)} events into memory")

    def list_events(self) -> Sequence[Event]:
        """All events in insertion order."""
        return self._events

    def get_event(self, event_id: str) -> Event:
        """
        Look up an event by the exact decimal text of its id.

        "02", " 2" or "2.0" do not match event 2.

        Raises:
            NotFoundError: If no event has that id
        """
        for event in self._events:
            if str(event.id) == event_id:
                return event
        raise NotFoundError(event_id)
