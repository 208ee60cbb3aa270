"""
Event publisher for committed state transitions.

Each transition produces one notification ``(entity_type, entity_id, status,
version)`` that is pushed to Channels groups after the database transaction
commits. Delivery is best effort: a slow or broken channel layer drops the
notification with a log line and never touches the transition itself.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.utils import timezone

from core_backend.config import engine_settings

logger = logging.getLogger(__name__)

MAX_GROUP_NAME_LENGTH = 99


def group_name_for_topic(topic: str) -> str:
    """Channels group names only allow ASCII alphanumerics, hyphens, underscores and periods."""
    sanitized = "".join(c if c.isascii() and (c.isalnum() or c in "-_.") else "_" for c in topic)
    return sanitized[:MAX_GROUP_NAME_LENGTH]


def build_notification(entity) -> Dict[str, Any]:
    payload = {
        "entity_type": entity.entity_type,
        "entity_id": entity.entity_id,
        "status": entity.status,
        "version": entity.version,
        "occurred_at": timezone.now().isoformat(),
    }
    payload.update(entity.event_context())
    return payload


class EventPublisher:
    """
    Publishes notifications to Channels groups and to in-process listeners.

    Listeners are plain callables receiving ``(topic, payload)``; they are
    used by in-process consumers and by tests. A failing listener is logged
    and skipped.
    """

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer
        self._listeners: List[Callable[[str, Dict[str, Any]], None]] = []

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    def add_listener(self, listener: Callable[[str, Dict[str, Any]], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def entity_changed(self, entity, extra_topics: Iterable[str] = ()) -> None:
        """
        Queue a notification for ``entity``'s current state. Sent when the
        surrounding transaction commits (immediately in autocommit mode), so
        a rolled-back transition never leaks out.
        """
        payload = build_notification(entity)
        topics = list(dict.fromkeys([*entity.event_topics(), *extra_topics]))
        transaction.on_commit(lambda: self._fan_out(topics, payload))

    def _fan_out(self, topics: List[str], payload: Dict[str, Any]) -> None:
        for topic in topics:
            self.publish(topic, payload)

    def publish(self, topic: str, payload: Dict[str, Any]) -> bool:
        """
        Fire-and-forget publish. Returns False when the notification was
        dropped; callers are not expected to act on it.
        """
        for listener in list(self._listeners):
            try:
                listener(topic, payload)
            except Exception as e:
                logger.error(f"Event listener {listener!r} failed for {topic}: {e}")

        layer = self.channel_layer
        if layer is None:
            logger.debug(f"No channel layer configured; {topic} notification not broadcast")
            return False

        message = {"type": "entity.changed", "topic": topic, "data": payload}
        try:
            async_to_sync(self._send)(layer, group_name_for_topic(topic), message)
        except asyncio.TimeoutError:
            logger.warning(
                f"Dropped {payload['entity_type']} {payload['entity_id']} v{payload['version']} "
                f"notification on {topic}: publish timed out"
            )
            return False
        except Exception as e:
            logger.error(f"Dropped notification on {topic}: {e}")
            return False
        return True

    @staticmethod
    async def _send(layer, group: str, message: Dict[str, Any]) -> None:
        await asyncio.wait_for(
            layer.group_send(group, message),
            timeout=engine_settings.publish_timeout_seconds,
        )


event_publisher = EventPublisher()
