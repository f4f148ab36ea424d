"""
Unit tests for the realtime sync bridge
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.domain.models.notifications import DesktopNotification, ToastMessage
from app.domain.services.query_cache import InvalidationBus, QueryCache
from app.services.realtime_bridge import RealtimeBridge, parse_change_payload


def _client():
    client = MagicMock()
    channel = MagicMock()
    channel.subscribe = AsyncMock(return_value=channel)
    client.channel.return_value = channel
    client.remove_channel = AsyncMock()
    return client, channel


def _bridge(client=None, **kwargs):
    bus = kwargs.pop("bus", InvalidationBus())
    hub = kwargs.pop("hub", MagicMock())
    factory = AsyncMock(return_value=client)
    bridge = RealtimeBridge("https://test.supabase.co", "anon-key", bus=bus, hub=hub, client_factory=factory, **kwargs)
    return bridge, factory, bus, hub


class TestParseChangePayload:
    """Tests for payload parsing"""

    def test_nested_data_shape(self):
        event = parse_change_payload({
            "data": {"type": "INSERT", "table": "leads", "record": {"id": 1, "name": "Asha"}, "old_record": None},
            "ids": [1],
        })
        assert event.type == "INSERT"
        assert event.table == "leads"
        assert event.record == {"id": 1, "name": "Asha"}
        assert event.old_record == {}

    def test_flat_event_type_shape(self):
        event = parse_change_payload({"eventType": "DELETE", "table": "leads", "new": {}, "old": {"id": 3}})
        assert event.type == "DELETE"
        assert event.old_record == {"id": 3}

    def test_unknown_payloads_are_ignored(self):
        assert parse_change_payload({"data": {"type": "TRUNCATE"}}) is None
        assert parse_change_payload({}) is None
        assert parse_change_payload("INSERT") is None


class TestLifecycle:
    """Tests for start / stop"""

    @pytest.mark.asyncio
    async def test_start_subscribes_to_all_changes_on_configured_tables(self):
        client, channel = _client()
        bridge, factory, _, _ = _bridge(client, tables=["leads", "hire_helper_leads"])

        await bridge.start()

        factory.assert_awaited_once_with("https://test.supabase.co", "anon-key")
        client.channel.assert_called_once_with("leads-changes")
        assert channel.on_postgres_changes.call_count == 2
        args, kwargs = channel.on_postgres_changes.call_args_list[0]
        assert args == ("*",)
        assert kwargs["schema"] == "public"
        assert kwargs["table"] == "leads"
        channel.subscribe.assert_awaited_once()
        assert bridge.is_running

    @pytest.mark.asyncio
    async def test_start_twice_subscribes_once(self):
        client, channel = _client()
        bridge, _, _, _ = _bridge(client)

        await bridge.start()
        await bridge.start()

        channel.subscribe.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_releases_channel_exactly_once(self):
        client, channel = _client()
        bridge, _, _, _ = _bridge(client)
        await bridge.start()

        await bridge.stop()
        await bridge.stop()

        client.remove_channel.assert_awaited_once_with(channel)
        assert not bridge.is_running

    @pytest.mark.asyncio
    async def test_stop_before_start_is_noop(self):
        client, _ = _client()
        bridge, _, _, _ = _bridge(client)

        await bridge.stop()

        client.remove_channel.assert_not_awaited()


class TestChangeHandling:
    """Tests for change events"""

    def test_any_change_invalidates_lead_queries(self):
        bus = InvalidationBus()
        received = []
        bus.subscribe(received.append)
        bridge, _, _, hub = _bridge(bus=bus)

        bridge._on_change({"data": {"type": "UPDATE", "table": "leads", "record": {"id": 1}}})

        assert received == ["leads", "lead"]
        hub.schedule_broadcast.assert_not_called()

    def test_change_clears_subscribed_cache(self):
        bus = InvalidationBus()
        cache = QueryCache(bus=bus)
        cache.invalidate("leads")
        generation = cache.generation("leads")
        bridge, _, _, _ = _bridge(bus=bus)

        bridge._on_change({"data": {"type": "DELETE", "table": "leads", "old_record": {"id": 1}}})

        assert cache.generation("leads") == generation + 1

    def test_insert_raises_toast_and_desktop_notification(self):
        bridge, _, _, hub = _bridge()

        bridge._on_change({"data": {
            "type": "INSERT",
            "table": "leads",
            "record": {"id": 9, "name": "Asha", "source": "Website", "service": "Cook"},
        }})

        messages = [call.args[0] for call in hub.schedule_broadcast.call_args_list]
        assert isinstance(messages[0], ToastMessage)
        assert messages[0].message == "New Lead: Asha"
        assert isinstance(messages[1], DesktopNotification)
        assert messages[1].title == "New Lead Arrived!"
        assert messages[1].body == "Asha from Website | Cook"

    def test_malformed_payload_is_ignored(self):
        bus = InvalidationBus()
        received = []
        bus.subscribe(received.append)
        bridge, _, _, hub = _bridge(bus=bus)

        bridge._on_change({"unexpected": True})

        assert received == []
        hub.schedule_broadcast.assert_not_called()
