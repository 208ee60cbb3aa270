"""
Tests for LatestVersionTracker: consumers apply each entity version once,
in increasing order, whatever order notifications arrive in.
"""
from notifications.tracker import LatestVersionTracker


def _note(version, entity_id="ORD-1", entity_type="order"):
    return {"entity_type": entity_type, "entity_id": entity_id, "version": version}


class TestLatestVersionTracker:

    def test_newer_versions_apply(self):
        tracker = LatestVersionTracker()

        assert tracker.should_apply(_note(1))
        assert tracker.should_apply(_note(3))
        assert tracker.last_applied("order", "ORD-1") == 3

    def test_duplicate_is_skipped(self):
        tracker = LatestVersionTracker()
        tracker.should_apply(_note(2))

        assert not tracker.should_apply(_note(2))

    def test_out_of_order_is_skipped(self):
        tracker = LatestVersionTracker()
        tracker.should_apply(_note(5))

        assert not tracker.should_apply(_note(4))
        assert tracker.last_applied("order", "ORD-1") == 5

    def test_entities_tracked_separately(self):
        tracker = LatestVersionTracker()
        tracker.should_apply(_note(5))

        assert tracker.should_apply(_note(1, entity_id="ORD-2"))
        assert tracker.should_apply(_note(1, entity_type="kitchen_ticket"))

    def test_forget(self):
        tracker = LatestVersionTracker()
        tracker.should_apply(_note(5))
        tracker.forget("order", "ORD-1")

        assert tracker.last_applied("order", "ORD-1") == 0
        assert tracker.should_apply(_note(1))
