"""
Automation event notifications.

NotificationSink is the single seam between the automation core and any
transport that shows events to people. The core calls emit() and moves on;
a sink must never block the caller or raise.

BroadcastNotificationSink fans events out to in-process subscriber queues.
The API layer turns each subscription into a Server-Sent Events stream.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import structlog

from reviewpilot.models.schemas import AutomationEvent

logger = structlog.get_logger(__name__)

DEFAULT_QUEUE_SIZE = 100


class NotificationSink(ABC):
    """Fire-and-forget broadcast of automation events."""

    @abstractmethod
    async def emit(self, event: AutomationEvent) -> None:
        """Deliver an event to subscribers. Must not raise."""


class BroadcastNotificationSink(NotificationSink):
    """Fans messages out to subscriber queues.

    A subscriber whose queue is full misses the message rather than
    slowing down the automation worker.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self._queue_size = queue_size
        self._subscribers: dict[str, asyncio.Queue] = {}
        self._stats: dict[str, Any] = {
            "total_sent": 0,
            "last_event": None,
            "dropped": 0,
            "errors": 0,
        }

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, client_id: Optional[str] = None) -> tuple[str, asyncio.Queue]:
        """Register a subscriber and return its id and message queue."""
        client_id = client_id or f"client_{uuid4().hex[:9]}"
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[client_id] = queue
        logger.info("notification_client_connected", client_id=client_id)
        return client_id, queue

    def unsubscribe(self, client_id: str) -> None:
        if self._subscribers.pop(client_id, None) is not None:
            logger.info("notification_client_disconnected", client_id=client_id)

    async def emit(self, event: AutomationEvent) -> None:
        await self.publish(f"automation_{event.kind.value}", event.model_dump(mode="json"))

    async def publish(self, event_type: str, data: dict[str, Any]) -> None:
        """Broadcast an arbitrary message (webhook receipts, tests, etc)."""
        try:
            message = {
                "type": event_type,
                "data": data,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "id": f"notification_{uuid4().hex[:12]}",
            }
            for client_id, queue in list(self._subscribers.items()):
                try:
                    queue.put_nowait(message)
                except asyncio.QueueFull:
                    self._stats["dropped"] += 1
                    logger.warning("notification_dropped", client_id=client_id, event_type=event_type)

            self._stats["total_sent"] += 1
            self._stats["last_event"] = message["timestamp"]
            logger.debug(
                "notification_broadcast",
                event_type=event_type,
                subscribers=len(self._subscribers),
            )
        except Exception as e:
            self._stats["errors"] += 1
            logger.error("notification_broadcast_failed", event_type=event_type, error=str(e))

    def get_stats(self) -> dict[str, Any]:
        return {**self._stats, "subscribers": len(self._subscribers)}
