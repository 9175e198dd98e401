"""
Tracking Event Bus for real-time SSE notifications.

Fans out tracking notifications (traffic updates, simulated positions,
arrivals, resets) to every connected viewer. Publishing never blocks, so
timer callbacks can publish directly.
"""

from typing import AsyncIterator, Dict, Any, List, Optional
import asyncio
import time


class TrackingEventType:
    """Event types emitted by tracking sessions."""
    TRAFFIC_UPDATE = "TRAFFIC_UPDATE"
    POSITION_UPDATE = "POSITION_UPDATE"
    ARRIVED = "ARRIVED"
    RESET = "RESET"


class TrackingEventBus:
    """
    Simple in-process pub/sub for tracking events.

    Multiple listeners (SSE connections) can subscribe and receive
    events published by tracking sessions.
    """

    def __init__(self, max_recent: int = 100) -> None:
        self._subscribers: List[asyncio.Queue] = []
        self._recent_events: List[Dict[str, Any]] = []
        self._max_recent = max_recent

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self) -> AsyncIterator[Dict[str, Any]]:
        """
        Async generator yielding events. Callers iterate and send as SSE.

        Yields:
            Tracking event dictionaries
        """
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)

        try:
            while True:
                event = await queue.get()
                yield event
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    def publish_nowait(self, event: Dict[str, Any]) -> None:
        """
        Publish an event to all subscribers without awaiting.

        Args:
            event: Tracking event dictionary
        """
        self._recent_events.append(event)
        if len(self._recent_events) > self._max_recent:
            self._recent_events = self._recent_events[-self._max_recent:]

        # Subscriber queues are unbounded
        for queue in list(self._subscribers):
            queue.put_nowait(event)

    async def publish(self, event: Dict[str, Any]) -> None:
        self.publish_nowait(event)

    def get_recent_events(
        self,
        delivery_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        """
        Get recent events, optionally filtered by delivery.

        Args:
            delivery_id: Filter by specific delivery (optional)
            limit: Maximum events to return

        Returns:
            List of recent events
        """
        events = self._recent_events
        if delivery_id:
            events = [
                e for e in events
                if e.get("delivery_id") == delivery_id
            ]
        return events[-limit:]

    def clear(self) -> None:
        self._recent_events = []


# Global singleton
tracking_event_bus = TrackingEventBus()


def make_tracking_event(
    delivery_id: str,
    event_type: str,
    message: str,
    payload: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Create a standardized tracking event dictionary.

    Args:
        delivery_id: UUID string of the delivery
        event_type: One of TrackingEventType
        message: User-facing notification text (toast)
        payload: Optional additional data for the event

    Returns:
        Formatted event dictionary
    """
    return {
        "delivery_id": str(delivery_id),
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "event_type": event_type,
        "message": message,
        "payload": payload or {},
    }
