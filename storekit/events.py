"""In-process event bus for store lifecycle and environment signals.

Stores publish lifecycle events (e.g. an imminent bulk discard of pending
objects) and subscribe to environment signals (connectivity restored,
application resumed). The bus is an ordinary object handed to each store,
so tests can pass their own instance and inspect what was published.

Delivery is synchronous: publish() calls every handler registered for the
event name, in subscription order, before it returns.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class StoreEvent(str, Enum):
    """Event names used by the data store."""

    WILL_DISCARD_ALL_UNINSERTED = "store.will_discard_all_uninserted"
    CONNECTIVITY_RESTORED = "environment.connectivity_restored"
    APPLICATION_RESUMED = "environment.application_resumed"


@dataclass(frozen=True)
class BusEvent:
    """A single published event.

    Attributes:
        name: Event name (a StoreEvent value or any other string).
        sender: Object that published the event, if any.
        payload: Extra keyword data supplied by the publisher.
        sent_at: UTC timestamp of publication.
    """

    name: str
    sender: Any = None
    payload: dict[str, Any] = field(default_factory=dict)
    sent_at: datetime = field(default_factory=lambda: datetime.now(UTC))


Handler = Callable[[BusEvent], None]


@dataclass(frozen=True)
class Subscription:
    """Token returned by EventBus.subscribe, used to unsubscribe."""

    id: str
    name: str
    handler: Handler


def _event_name(name: str | StoreEvent) -> str:
    return name.value if isinstance(name, StoreEvent) else name


class EventBus:
    """Typed publish/subscribe registry.

    Handlers are stored per event name. Subscribing and unsubscribing are
    safe from inside a handler: publish() iterates over a snapshot taken
    when the event was published.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Subscription]] = {}
        self._lock = threading.RLock()

    def subscribe(self, name: str | StoreEvent, handler: Handler) -> Subscription:
        """Register handler for events called name.

        Args:
            name: Event name to listen for.
            handler: Callable receiving the BusEvent.

        Returns:
            Subscription token for unsubscribe().
        """
        sub = Subscription(id=uuid.uuid4().hex, name=_event_name(name), handler=handler)
        with self._lock:
            self._handlers.setdefault(sub.name, []).append(sub)
        logger.debug("Subscribed %s to %s", sub.id, sub.name)
        return sub

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a subscription.

        Returns:
            True if the subscription was registered, False if it was
            already removed.
        """
        with self._lock:
            subs = self._handlers.get(subscription.name, [])
            for index, sub in enumerate(subs):
                if sub.id == subscription.id:
                    del subs[index]
                    if not subs:
                        del self._handlers[subscription.name]
                    return True
        return False

    def publish(
        self, name: str | StoreEvent, sender: Any = None, **payload: Any
    ) -> int:
        """Deliver an event to every current subscriber.

        A handler that raises is logged with its traceback and the remaining
        handlers still receive the event.

        Args:
            name: Event name.
            sender: Publishing object, passed through on the BusEvent.
            **payload: Extra data for subscribers.

        Returns:
            Number of handlers the event was delivered to.
        """
        event = BusEvent(name=_event_name(name), sender=sender, payload=payload)
        with self._lock:
            subs = list(self._handlers.get(event.name, []))
        delivered = 0
        for sub in subs:
            try:
                sub.handler(event)
            except Exception:
                logger.exception(
                    "Handler %s failed while handling %s", sub.id, event.name
                )
            delivered += 1
        logger.debug("Published %s to %d handlers", event.name, delivered)
        return delivered

    def subscriber_count(self, name: str | StoreEvent) -> int:
        with self._lock:
            return len(self._handlers.get(_event_name(name), []))
