import json
import logging
from urllib.parse import parse_qs

from channels.generic.websocket import AsyncWebsocketConsumer
from django.utils import timezone

from .services import group_name_for_topic
from .tracker import LatestVersionTracker

logger = logging.getLogger(__name__)

MAX_TOPICS_PER_CONNECTION = 20


class EntityEventConsumer(AsyncWebsocketConsumer):
    """
    WebSocket stream of entity notifications for kitchen displays, waiter
    terminals, POS terminals and customer trackers.

    Clients pick topics with ``?topics=kitchen.grill,order.ORD-123``. Each
    connection keeps its own version tracker so a duplicate or stale
    notification is never forwarded twice.
    """

    async def connect(self):
        query_string = self.scope.get("query_string", b"").decode()
        raw_topics = parse_qs(query_string).get("topics", [""])[0]
        topics = [t.strip() for t in raw_topics.split(",") if t.strip()]

        if not topics:
            logger.warning("EntityEventConsumer: connection without topics rejected")
            await self.close(code=4000)
            return
        if len(topics) > MAX_TOPICS_PER_CONNECTION:
            logger.warning(f"EntityEventConsumer: {len(topics)} topics requested, limit is {MAX_TOPICS_PER_CONNECTION}")
            await self.close(code=4000)
            return

        self.topics = topics
        self.groups_joined = [group_name_for_topic(t) for t in topics]
        self.tracker = LatestVersionTracker()

        for group in self.groups_joined:
            await self.channel_layer.group_add(group, self.channel_name)

        await self.accept()
        await self.send(text_data=json.dumps({
            "type": "connection_established",
            "topics": topics,
            "timestamp": timezone.now().isoformat(),
        }))
        logger.info(f"EntityEventConsumer connected to {topics}")

    async def disconnect(self, close_code):
        for group in getattr(self, "groups_joined", []):
            await self.channel_layer.group_discard(group, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        try:
            data = json.loads(text_data or "{}")
        except json.JSONDecodeError:
            logger.warning("EntityEventConsumer: invalid JSON from client")
            return

        if data.get("type") == "ping":
            await self.send(text_data=json.dumps({
                "type": "pong",
                "timestamp": timezone.now().isoformat(),
            }))

    async def entity_changed(self, event):
        """Handler for ``entity.changed`` messages sent by the event publisher."""
        data = event["data"]
        if not self.tracker.should_apply(data):
            logger.debug(
                f"Skipping stale {data['entity_type']} {data['entity_id']} v{data['version']}"
            )
            return

        await self.send(text_data=json.dumps({
            "type": "entity_changed",
            "topic": event.get("topic"),
            "data": data,
        }))
