"""
Shared test fixtures for the coordination engine.

Imported by the root conftest.py so every app's tests can use them. The
catalog is small and deterministic: two kitchen stations (grill, fryer) plus
a bar, with prices chosen so 5% tax never needs rounding.
"""
import pytest
from decimal import Decimal

from rest_framework.test import APIClient


TEST_CATALOG = {
    "burger": {"name": "Classic Burger", "price": "250.00", "station": "grill", "prep_sequence": 10, "prep_minutes": 12},
    "steak": {"name": "Sirloin Steak", "price": "600.00", "station": "grill", "prep_sequence": 5, "prep_minutes": 20},
    "fries": {"name": "Fries", "price": "90.00", "station": "fryer", "prep_sequence": 20, "prep_minutes": 6},
    "shake": {"name": "Vanilla Shake", "price": "120.00", "station": "bar", "prep_sequence": 30, "prep_minutes": 4},
}

TEST_ENGINE_SETTINGS = {
    "CURRENCY": "INR",
    "TAX_RATE": "0.05",
    "CAS_MAX_ATTEMPTS": 5,
    "CAS_BASE_DELAY_SECONDS": 0,
    "CAS_MAX_DELAY_SECONDS": 0,
    "IDEMPOTENCY_TTL_SECONDS": 3600,
    "PUBLISH_TIMEOUT_SECONDS": 1.0,
    "SETTLEMENT_TOLERANCE_MINOR": 0,
    "CATALOG_BACKEND": "orders.catalog.SettingsCatalog",
    "CATALOG": TEST_CATALOG,
    "TICKET_ITEM_ORDERING": "catalog",
}


# ============================================================================
# ENGINE CONFIGURATION
# ============================================================================

@pytest.fixture(autouse=True)
def engine_settings_for_tests(settings):
    """
    Point the engine at the test catalog with zero CAS backoff.

    Assigning through pytest-django's ``settings`` fixture fires
    ``setting_changed``, which reloads engine_settings and the catalog.
    """
    settings.ORDER_ENGINE = dict(TEST_ENGINE_SETTINGS)
    settings.CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}
    yield settings.ORDER_ENGINE


@pytest.fixture(autouse=True)
def fresh_channel_layer():
    """Give the publisher the layer configured for this test."""
    from notifications.services import event_publisher

    event_publisher._channel_layer = None
    yield
    event_publisher._channel_layer = None


@pytest.fixture
def actor():
    return "waiter-7"


@pytest.fixture
def kitchen_actor():
    return "chef-2"


# ============================================================================
# NOTIFICATIONS
# ============================================================================

class CapturedNotifications(list):
    """(topic, payload) pairs seen by the publisher, with small query helpers."""

    def for_topic(self, topic):
        return [payload for t, payload in self if t == topic]

    def statuses(self, entity_type, entity_id, topic=None):
        return [
            payload["status"]
            for t, payload in self
            if payload["entity_type"] == entity_type
            and payload["entity_id"] == entity_id
            and (topic is None or t == topic)
        ]


@pytest.fixture
def captured_notifications():
    """
    Records every notification the event publisher fans out. Notifications
    are sent on commit, so DB tests wrap the operation in
    ``django_capture_on_commit_callbacks(execute=True)``.
    """
    from notifications.services import event_publisher

    captured = CapturedNotifications()

    def listener(topic, payload):
        captured.append((topic, payload))

    event_publisher.add_listener(listener)
    yield captured
    event_publisher.remove_listener(listener)


# ============================================================================
# ORDERS
# ============================================================================

@pytest.fixture
def make_order(actor):
    """
    Factory for draft orders.

    Usage:
        order = make_order([("burger", 1), ("fries", 2)], order_type="takeaway")
    """
    from orders.services import OrderService

    def _make(lines=(("burger", 1), ("fries", 1)), order_type="dine_in", table_ref="T4", **kwargs):
        items = [{"item_id": item_id, "quantity": quantity} for item_id, quantity in lines]
        return OrderService.create_order(order_type, items, actor, table_ref=table_ref, **kwargs)

    return _make


@pytest.fixture
def confirmed_order(make_order, actor):
    """Dine-in order confirmed with one grill and one fryer ticket."""
    from orders.services import OrderService

    order = make_order()
    return OrderService.confirm(order.order_number, actor)


@pytest.fixture
def tickets_by_station():
    """Live tickets of an order keyed by station id."""
    from kds.services import TicketRouter

    def _tickets(order):
        return {ticket.station_id: ticket for ticket in TicketRouter.tickets_for_order(order)}

    return _tickets


@pytest.fixture
def ready_order(make_order, actor, kitchen_actor):
    """Factory: confirm an order and complete every ticket."""
    from kds.services import TicketRouter
    from orders.services import OrderService

    def _ready(lines=(("burger", 1), ("fries", 1)), order_type="dine_in"):
        order = make_order(lines, order_type=order_type)
        order = OrderService.confirm(order.order_number, actor)
        for ticket in TicketRouter.tickets_for_order(order):
            TicketRouter.complete_ticket(ticket.ticket_number, kitchen_actor)
        return OrderService.get_order(order.order_number)

    return _ready


@pytest.fixture
def served_order(ready_order, actor):
    """Factory: an order walked through the kitchen and served."""
    from orders.services import OrderService

    def _served(lines=(("burger", 1), ("fries", 1)), order_type="dine_in"):
        order = ready_order(lines, order_type=order_type)
        return OrderService.serve(order.order_number, actor)

    return _served


# ============================================================================
# POS
# ============================================================================

@pytest.fixture
def cashier():
    return "cashier-1"


@pytest.fixture
def pos_session(cashier):
    """Open session on terminal T-1 with 1000.00 opening cash."""
    from payments.services import SettlementService

    return SettlementService.open_session("T-1", cashier, Decimal("1000.00"), actor=cashier)


# ============================================================================
# API
# ============================================================================

@pytest.fixture
def api_client(actor):
    """
    DRF test client that sends X-Actor-Id on every request.

    Usage:
        def test_my_api(api_client):
            response = api_client.post('/api/orders/', {...}, format='json')
    """
    client = APIClient()
    client.credentials(HTTP_X_ACTOR_ID=actor)
    return client


@pytest.fixture
def anonymous_client():
    return APIClient()
