"""
WebSocket Tests

Tests for the entity event stream at /ws/events/.

Test Categories:
1. Connection (topic selection, rejection)
2. Delivery (forwarding, stale-version suppression, ping)
"""
import pytest
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator

from core_backend.asgi import application
from notifications.services import group_name_for_topic

ORIGIN = [(b"origin", b"http://localhost")]


def _event(topic, version, status="ready"):
    return {
        "type": "entity.changed",
        "topic": topic,
        "data": {"entity_type": "order", "entity_id": "ORD-1", "status": status, "version": version},
    }


async def _connect(path):
    communicator = WebsocketCommunicator(application, path, headers=ORIGIN)
    connected, _ = await communicator.connect()
    return communicator, connected


@pytest.mark.asyncio
class TestConnection:
    """Test WebSocket connection handling"""

    async def test_connect_with_topics(self):
        communicator, connected = await _connect("/ws/events/?topics=kitchen,order.ORD-1")

        assert connected
        greeting = await communicator.receive_json_from()
        assert greeting["type"] == "connection_established"
        assert greeting["topics"] == ["kitchen", "order.ORD-1"]

        await communicator.disconnect()

    async def test_connect_without_topics_rejected(self):
        communicator, connected = await _connect("/ws/events/")
        assert not connected

    async def test_too_many_topics_rejected(self):
        topics = ",".join(f"table.T{i}" for i in range(21))
        communicator, connected = await _connect(f"/ws/events/?topics={topics}")
        assert not connected


@pytest.mark.asyncio
class TestDelivery:
    """Test forwarding of entity notifications"""

    async def test_forwards_group_messages(self):
        communicator, _ = await _connect("/ws/events/?topics=kitchen")
        await communicator.receive_json_from()

        await get_channel_layer().group_send(group_name_for_topic("kitchen"), _event("kitchen", 2))

        message = await communicator.receive_json_from()
        assert message["type"] == "entity_changed"
        assert message["topic"] == "kitchen"
        assert message["data"]["version"] == 2

        await communicator.disconnect()

    async def test_stale_versions_are_not_forwarded(self):
        communicator, _ = await _connect("/ws/events/?topics=orders")
        await communicator.receive_json_from()
        layer = get_channel_layer()

        await layer.group_send("orders", _event("orders", 3))
        await communicator.receive_json_from()

        await layer.group_send("orders", _event("orders", 3))
        await layer.group_send("orders", _event("orders", 2, status="preparing"))
        assert await communicator.receive_nothing()

        await communicator.disconnect()

    async def test_ping(self):
        communicator, _ = await _connect("/ws/events/?topics=kitchen")
        await communicator.receive_json_from()

        await communicator.send_json_to({"type": "ping"})

        assert (await communicator.receive_json_from())["type"] == "pong"
        await communicator.disconnect()
