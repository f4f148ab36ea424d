"""
Notification Hub
Keeps track of connected dashboard WebSockets and broadcasts
toasts, desktop notifications and invalidation hints to them
"""
import asyncio
import logging
from typing import Optional, Set

from fastapi import WebSocket
from pydantic import BaseModel

from app.domain.models.notifications import InvalidateMessage

logger = logging.getLogger(__name__)


class NotificationHub:
    """
    Registry of live dashboard connections.

    Each connection is added once on connect and removed once on
    disconnect; a client whose send fails is dropped.
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()
        self._pending: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)
        logger.info(f"Dashboard client connected ({len(self._connections)} active)")

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self._connections:
            self._connections.discard(websocket)
            logger.info(f"Dashboard client disconnected ({len(self._connections)} active)")

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def broadcast(self, message: BaseModel) -> int:
        """
        Send a message to every connected client.

        Returns:
            Number of clients the message was delivered to
        """
        payload = message.model_dump(mode="json")
        delivered = 0
        for websocket in list(self._connections):
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping dashboard client after send failure: {e}")
                self.disconnect(websocket)
        return delivered

    def schedule_broadcast(self, message: BaseModel) -> Optional[asyncio.Task]:
        """
        Fire-and-forget broadcast from synchronous callbacks.

        Returns None when no event loop is running.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; broadcast skipped")
            return None

        task = loop.create_task(self.broadcast(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def on_invalidate(self, key: str) -> None:
        """InvalidationBus handler: tell clients to refetch key."""
        if self._connections:
            self.schedule_broadcast(InvalidateMessage(key=key))


_hub: Optional[NotificationHub] = None


def get_notification_hub() -> NotificationHub:
    """Process-wide hub, forwarding cache invalidations to clients."""
    global _hub
    if _hub is None:
        from app.domain.services.query_cache import get_invalidation_bus
        _hub = NotificationHub()
        get_invalidation_bus().subscribe(_hub.on_invalidate)
    return _hub
