"""
Event system for linguasync.

Repositories, the change tracker, and the orchestrator talk through the
event bus: repositories announce item mutations, the tracker flags pending
fields, and the orchestrator announces saved translations so other
collaborators can react.
"""

from __future__ import annotations

import fnmatch
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

# Type for event handlers
EventHandler = Callable[["Event"], Awaitable[list["Event"]]]


# Event types
ITEM_CONTENT_UPDATED = "item.content_updated"
ITEM_FIELD_SET = "item.field_set"
ITEM_FIELD_DELETED = "item.field_deleted"
CONTENT_SAVED = "content.saved"
FIELDS_ROUTED = "fields.routed"
PROVIDER_REGISTERED = "provider.registered"
SYNC_FIELD_FLAGGED = "sync.field_flagged"
SYNC_LANGUAGE_COMPLETED = "sync.language_completed"
SYNC_COMPLETED = "sync.completed"
TRANSLATION_REQUESTED = "translation.requested"
TRANSLATION_COMPLETED = "translation.completed"


@dataclass
class Event:
    """
    An event in the system.

    Events are immutable records of something that happened. They carry
    all the context needed for handlers to process them.
    """

    event_type: str  # e.g., "item.field_set", "sync.completed"
    item_id: str
    payload: dict[str, Any] = field(default_factory=dict)

    # Language the event concerns, if any
    language: str | None = None

    # Tracing
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: str | None = None  # Groups related events
    causation_id: str | None = None  # Event that caused this one

    # Timing
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def caused_by(self, parent: Event) -> Event:
        """Create a child event caused by this one, inheriting correlation."""
        return Event(
            event_type=self.event_type,
            item_id=self.item_id,
            payload=self.payload,
            language=self.language,
            correlation_id=parent.correlation_id or parent.id,
            causation_id=parent.id,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        return {
            "id": self.id,
            "event_type": self.event_type,
            "item_id": self.item_id,
            "language": self.language,
            "payload": self.payload,
            "correlation_id": self.correlation_id,
            "causation_id": self.causation_id,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        """Deserialize event from dictionary."""
        return cls(
            id=data["id"],
            event_type=data["event_type"],
            item_id=data["item_id"],
            language=data.get("language"),
            payload=data.get("payload", {}),
            correlation_id=data.get("correlation_id"),
            causation_id=data.get("causation_id"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class Subscription:
    """A subscription to events matching a pattern."""

    pattern: str  # e.g., "sync.*" or "item.field_set"
    handler: EventHandler
    filter: dict[str, Any] = field(default_factory=dict)  # Additional filters

    def matches(self, event: Event) -> bool:
        """Check if this subscription matches the given event."""
        if not fnmatch.fnmatch(event.event_type, self.pattern):
            return False

        for key, value in self.filter.items():
            if key == "item_id" and event.item_id != value:
                return False
            if key == "language" and event.language != value:
                return False
            if key.startswith("payload."):
                payload_key = key[8:]
                if event.payload.get(payload_key) != value:
                    return False

        return True


class EventBus:
    """
    In-memory event bus implementation.

    Suitable for a single process. A host with several workers can swap it
    for a broker-backed bus with the same interface.
    """

    def __init__(self, max_history: int = 10000):
        self._subscriptions: list[Subscription] = []
        self._event_history: list[Event] = []
        self._max_history = max_history
        self._middlewares: list[Callable[[Event], Event | None]] = []

    def subscribe(
        self,
        pattern: str,
        handler: EventHandler,
        filter: dict[str, Any] | None = None,
    ) -> Subscription:
        """
        Subscribe to events matching a pattern.

        Args:
            pattern: Event type pattern (supports wildcards like "sync.*")
            handler: Async function to handle matching events
            filter: Additional filters (e.g., {"item_id": "item_123"})

        Returns:
            The subscription object (can be used to unsubscribe)
        """
        subscription = Subscription(
            pattern=pattern,
            handler=handler,
            filter=filter or {},
        )
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription."""
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def add_middleware(self, middleware: Callable[[Event], Event | None]) -> None:
        """
        Add middleware that processes events before they're dispatched.

        Middleware can modify events or return None to drop them.
        """
        self._middlewares.append(middleware)

    async def publish(self, event: Event) -> list[Event]:
        """
        Publish an event and return any events produced by handlers.

        Handlers can return new events, which are then also published.
        A failing handler is logged and does not stop the others.
        """
        current_event: Event | None = event
        for middleware in self._middlewares:
            if current_event is None:
                return []
            current_event = middleware(current_event)

        if current_event is None:
            return []

        self._event_history.append(current_event)
        if len(self._event_history) > self._max_history:
            self._event_history = self._event_history[-self._max_history:]

        matching = [s for s in self._subscriptions if s.matches(current_event)]

        all_resulting_events: list[Event] = []

        for subscription in matching:
            try:
                resulting_events = await subscription.handler(current_event)
                all_resulting_events.extend(resulting_events or [])
            except Exception:
                logger.exception(
                    f"Error in event handler for {current_event.event_type} "
                    f"(item {current_event.item_id})"
                )

        for resulting_event in list(all_resulting_events):
            cascade_events = await self.publish(resulting_event)
            all_resulting_events.extend(cascade_events)

        return all_resulting_events

    def get_history(
        self,
        event_type: str | None = None,
        item_id: str | None = None,
        limit: int = 100,
    ) -> list[Event]:
        """Query event history with optional filters."""
        results = self._event_history

        if event_type:
            results = [e for e in results if fnmatch.fnmatch(e.event_type, event_type)]

        if item_id:
            results = [e for e in results if e.item_id == item_id]

        return results[-limit:]


async def publish_if(bus: EventBus | None, event: Event) -> list[Event]:
    """Publish on an optional bus; components run fine without one."""
    if bus is None:
        return []
    return await bus.publish(event)


# Convenience constructors for common event types
def content_saved(item_id: str, language: str, source_item_id: str, created_new: bool) -> Event:
    """Create a content.saved event."""
    return Event(
        event_type=CONTENT_SAVED,
        item_id=item_id,
        language=language,
        payload={
            "source_item_id": source_item_id,
            "created_new": created_new,
        },
    )


def field_flagged(source_item_id: str, field_name: str, languages: list[str], kind: str) -> Event:
    """Create a sync.field_flagged event."""
    return Event(
        event_type=SYNC_FIELD_FLAGGED,
        item_id=source_item_id,
        payload={
            "field": field_name,
            "kind": kind,
            "languages": languages,
        },
    )


def translation_requested(source_item_id: str, languages: list[str]) -> Event:
    """Create a translation.requested event."""
    return Event(
        event_type=TRANSLATION_REQUESTED,
        item_id=source_item_id,
        payload={"languages": languages},
    )
