"""
Base class for all services.

Services react to events on the bus and return the events they produce;
the bus publishes those in turn.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from linguasync.core.events import Event, EventBus, Subscription


class Service(ABC):
    """
    Base class for all services.

    Services are components that:
    1. Subscribe to specific event types
    2. Process those events
    3. Emit new events as a result

    Example:
        class AuditService(Service):
            service_id = "audit"
            subscribes_to = ["content.saved"]

            async def handle(self, event: Event) -> list[Event]:
                logger.info(f"Saved {event.item_id} ({event.language})")
                return []
    """

    @property
    @abstractmethod
    def service_id(self) -> str:
        """Unique identifier for this service."""
        pass

    @property
    @abstractmethod
    def subscribes_to(self) -> list[str]:
        """
        List of event patterns this service handles.

        Supports wildcards like "item.*" or "translation.requested".
        """
        pass

    @abstractmethod
    async def handle(self, event: Event) -> list[Event]:
        """
        Handle an event and return any resulting events.

        Args:
            event: The event to process

        Returns:
            List of events produced by handling this event
            (can be empty if no follow-up events needed)
        """
        pass

    def subscribe_to(self, bus: EventBus) -> list[Subscription]:
        """Subscribe ``handle`` to every pattern in ``subscribes_to``."""
        return [bus.subscribe(pattern, self.handle) for pattern in self.subscribes_to]

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.service_id})>"
