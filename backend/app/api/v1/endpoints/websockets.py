"""
WebSocket Endpoints
Live lead notifications for the dashboard: toasts, desktop notifications
and cache invalidation hints pushed by the realtime bridge
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from app.api.v1.dependencies import get_supabase, verify_token
from app.core.validation import ConfigurationError
from app.domain.services.notification_hub import NotificationHub, get_notification_hub

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websockets"])


@router.websocket("/ws/leads")
async def lead_notifications(
    websocket: WebSocket,
    token: Optional[str] = None,
    hub: NotificationHub = Depends(get_notification_hub),
):
    """
    WebSocket stream of lead notifications.

    Query Parameters (required):
        token: Supabase access token

    Messages sent:
        - {"type": "toast", "level", "message", "timestamp"}
        - {"type": "notification", "title", "body", "icon", "timestamp"}
        - {"type": "invalidate", "key"}

    The client may send "ping"; the server answers "pong". Anything else
    is ignored. Closes with 1008 on a missing or invalid token and with
    1011 when Supabase is not configured.
    """
    if not token:
        logger.warning("Rejected lead stream connection without token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        supabase = await asyncio.to_thread(get_supabase)
    except ConfigurationError as e:
        logger.error(f"Lead stream unavailable: {e.message}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    try:
        user = await asyncio.to_thread(verify_token, token, supabase)
    except Exception as e:
        logger.warning(f"Lead stream token validation failed: {e}")
        user = None

    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await hub.connect(websocket)
    logger.info(f"Lead stream opened for user {user.id}")

    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info(f"Lead stream closed for user {user.id}")
    finally:
        hub.disconnect(websocket)
