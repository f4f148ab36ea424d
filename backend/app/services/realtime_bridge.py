"""
Realtime Sync Bridge
Subscribes to Supabase postgres_changes on the lead tables and turns each
change into a cache invalidation, plus toast and desktop notifications
for newly inserted leads.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from supabase import AsyncClient, acreate_client

from app.domain.models.lead import SourceTable
from app.domain.models.notifications import (
    ChangeType,
    DesktopNotification,
    LeadChangeEvent,
    ToastLevel,
    ToastMessage,
)
from app.domain.services.lead_normalizer import normalize_lead
from app.domain.services.notification_hub import NotificationHub
from app.domain.services.query_cache import LEAD_KEY, LEADS_KEY, InvalidationBus

logger = logging.getLogger(__name__)

NEW_LEAD_TITLE = "New Lead Arrived!"

_CHANGE_TYPES = {change.value for change in ChangeType}
_LEAD_TABLES = {table.value for table in SourceTable}

ClientFactory = Callable[[str, str], Awaitable[AsyncClient]]


def parse_change_payload(payload: Dict[str, Any]) -> Optional[LeadChangeEvent]:
    """
    Build a LeadChangeEvent from a realtime callback payload.

    Accepts the nested {"data": {...}} shape of the Python realtime client
    as well as the flat {"eventType", "new", "old"} shape. Returns None for
    anything that is not an INSERT, UPDATE or DELETE.
    """
    if not isinstance(payload, dict):
        return None

    data = payload.get("data", payload)
    if not isinstance(data, dict):
        return None

    change_type = data.get("type") or data.get("eventType")
    if change_type not in _CHANGE_TYPES:
        return None

    record = data.get("record")
    if record is None:
        record = data.get("new")
    old_record = data.get("old_record")
    if old_record is None:
        old_record = data.get("old")

    return LeadChangeEvent(
        type=change_type,
        table=data.get("table") or SourceTable.LEADS.value,
        record=record or {},
        old_record=old_record or {},
    )


class RealtimeBridge:
    """
    Owns one realtime channel for the lifetime of the application.

    start() and stop() are idempotent; the channel is released exactly once.
    Change events are handled in order of arrival and never touch the cache
    directly, only the invalidation bus.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        bus: InvalidationBus,
        hub: NotificationHub,
        channel_name: str = "leads-changes",
        tables: Sequence[str] = (SourceTable.LEADS.value,),
        client_factory: ClientFactory = acreate_client,
    ):
        self.supabase_url = supabase_url
        self.supabase_key = supabase_key
        self.bus = bus
        self.hub = hub
        self.channel_name = channel_name
        self.tables = list(tables)
        self._client_factory = client_factory
        self._client: Optional[AsyncClient] = None
        self._channel = None

    @property
    def is_running(self) -> bool:
        return self._channel is not None

    async def start(self) -> None:
        """Open the channel and subscribe to every change on the lead tables."""
        if self._channel is not None:
            return

        if self._client is None:
            self._client = await self._client_factory(self.supabase_url, self.supabase_key)

        channel = self._client.channel(self.channel_name)
        for table in self.tables:
            channel.on_postgres_changes("*", schema="public", table=table, callback=self._on_change)

        await channel.subscribe()
        self._channel = channel
        logger.info(f"Realtime channel '{self.channel_name}' subscribed to {', '.join(self.tables)}")

    async def stop(self) -> None:
        """Release the channel. Safe to call more than once."""
        channel, self._channel = self._channel, None
        if channel is None:
            return

        try:
            await self._client.remove_channel(channel)
            logger.info(f"Realtime channel '{self.channel_name}' removed")
        except Exception as e:
            logger.error(f"Error removing realtime channel: {e}")

    def _on_change(self, payload: Dict[str, Any], *_: Any) -> None:
        event = parse_change_payload(payload)
        if event is None:
            logger.warning(f"Ignoring unrecognised realtime payload: {payload!r}")
            return
        self.handle_change(event)

    def handle_change(self, event: LeadChangeEvent) -> None:
        """
        React to one row change.

        Every change invalidates the lead queries. An INSERT additionally
        raises a toast and a desktop notification for the new lead.
        """
        logger.debug(f"Realtime {event.type} on {event.table}")
        self.bus.publish(LEADS_KEY)
        self.bus.publish(LEAD_KEY)

        if event.type == ChangeType.INSERT.value:
            self._notify_new_lead(event)

    def _notify_new_lead(self, event: LeadChangeEvent) -> None:
        table = event.table if event.table in _LEAD_TABLES else SourceTable.LEADS.value
        lead = normalize_lead(event.record, table)

        self.hub.schedule_broadcast(ToastMessage(
            level=ToastLevel.INFO,
            message=f"New Lead: {lead.name}",
        ))
        self.hub.schedule_broadcast(DesktopNotification(
            title=NEW_LEAD_TITLE,
            body=f"{lead.name} from {lead.source or ''} | {lead.service_required or ''}",
        ))
