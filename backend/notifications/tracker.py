import threading
from typing import Any, Dict, Tuple


class LatestVersionTracker:
    """
    Consumer-side guard against duplicate and out-of-order notifications.

    Delivery is at-least-once with no cross-entity ordering, so a consumer
    only applies a notification whose version is newer than the last one it
    applied for the same entity.
    """

    def __init__(self):
        self._versions: Dict[Tuple[str, str], int] = {}
        self._lock = threading.Lock()

    def should_apply(self, notification: Dict[str, Any]) -> bool:
        key = (notification["entity_type"], str(notification["entity_id"]))
        version = int(notification["version"])
        with self._lock:
            if version <= self._versions.get(key, 0):
                return False
            self._versions[key] = version
            return True

    def last_applied(self, entity_type: str, entity_id) -> int:
        return self._versions.get((entity_type, str(entity_id)), 0)

    def forget(self, entity_type: str, entity_id) -> None:
        with self._lock:
            self._versions.pop((entity_type, str(entity_id)), None)
