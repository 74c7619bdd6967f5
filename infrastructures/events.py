"""
Event Bus for pushing session updates to connected clients.

This module provides a lightweight in-memory event bus that supports:
- Publishing events to topics
- Subscribing to topics with async callback handlers
- Concurrent execution of handlers, isolated from one another

Event Types:
- session_state: Fired by the TurnCoordinator on every state transition,
  carrying a SessionSnapshot dict
"""
import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List

logger = logging.getLogger(__name__)

SESSION_STATE_TOPIC = "session_state"


@dataclass
class Event:
    """
    Standard event structure for the message bus.
    """
    type: str
    topic: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> Dict[str, Any]:
        """Wire shape sent to WebSocket clients."""
        return {
            "type": self.type,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


EventHandler = Callable[[Event], Awaitable[None]]


class EventBus:
    """
    In-memory event bus. One process hosts one game session, so nothing
    here needs to cross process boundaries.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[EventHandler]] = defaultdict(list)

    def subscribe(self, topic: str, callback: EventHandler) -> None:
        """
        Subscribe to events on a specific topic.

        Args:
            topic: Event topic to subscribe to (e.g., "session_state")
            callback: Async function to call when event is published
        """
        self._subscribers[topic].append(callback)

    def unsubscribe(self, topic: str, callback: EventHandler) -> None:
        """Remove a subscriber from a topic."""
        if topic in self._subscribers and callback in self._subscribers[topic]:
            self._subscribers[topic].remove(callback)

    async def publish(
        self,
        topic: str,
        event_type: str,
        data: Dict[str, Any],
    ) -> None:
        """
        Publish an event to a topic.

        All subscribers are awaited concurrently. A failing subscriber is
        logged and never affects the publisher or the other subscribers.
        """
        event = Event(type=event_type, topic=topic, data=data)

        handlers = list(self._subscribers.get(topic, []))
        if not handlers:
            return

        results = await asyncio.gather(*(h(event) for h in handlers), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("[EventBus] Handler for %s failed: %s", topic, result)

