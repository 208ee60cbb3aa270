"""
Order Item Tests

Adding and removing lines on drafts (plain edits) and on confirmed orders
(amendment rounds and voids), and the order-level discount.
"""
import pytest
from decimal import Decimal

from core_backend.exceptions import InvalidTransition, NotFound, ValidationError
from kds.models import KitchenTicket, TicketStatus
from kds.services import TicketRouter
from orders.models import Order, OrderItem
from orders.services import OrderService, OrderItemService, OrderDiscountService


@pytest.mark.django_db
class TestDraftEdits:
    """Test line changes before confirmation"""

    def test_add_item_to_draft(self, make_order, actor):
        order = make_order([("burger", 1)])

        item = OrderItemService.add_item(order.order_number, "shake", 2, actor, special_instructions="no ice")

        assert item.line_number == 2
        assert item.added_in_round == 1
        assert item.special_instructions == "no ice"
        assert item.status == OrderItem.ItemStatus.PENDING
        order = OrderService.get_order(order.order_number)
        assert order.subtotal == Decimal("490.00")
        assert order.total == Decimal("514.50")
        assert order.version == 2
        assert not KitchenTicket.objects.filter(order=order).exists()

    def test_remove_item_from_draft_deletes_line(self, make_order, actor):
        order = make_order([("burger", 1), ("fries", 1)])

        order = OrderItemService.remove_item(order.order_number, 2, actor)

        assert list(order.items.values_list("catalog_item_id", flat=True)) == ["burger"]
        assert order.total == Decimal("262.50")

    def test_remove_unknown_line(self, make_order, actor):
        order = make_order()
        with pytest.raises(NotFound):
            OrderItemService.remove_item(order.order_number, 99, actor)

    def test_add_unknown_catalog_item(self, make_order, actor):
        order = make_order()
        with pytest.raises(ValidationError):
            OrderItemService.add_item(order.order_number, "lobster", 1, actor)


@pytest.mark.django_db
class TestAmendments:
    """Test adding to an order already in the kitchen"""

    def test_amendment_opens_a_new_round_and_ticket(self, confirmed_order, actor, tickets_by_station):
        first_round = {t.ticket_number for t in tickets_by_station(confirmed_order).values()}

        item = OrderItemService.add_item(confirmed_order.order_number, "burger", 1, actor)

        assert item.added_in_round == 2
        assert item.status == OrderItem.ItemStatus.QUEUED
        assert item.ticket.round == 2
        assert item.ticket.ticket_number.endswith("-GRILL-R2")
        assert item.ticket.ticket_number not in first_round
        order = OrderService.get_order(confirmed_order.order_number)
        assert order.amendment_round == 2
        assert KitchenTicket.objects.filter(order=order).count() == 3

    def test_amending_a_ready_order_sends_it_back_to_preparing(self, ready_order, actor):
        order = ready_order()
        assert order.status == Order.OrderStatus.READY

        OrderItemService.add_item(order.order_number, "shake", 1, actor)

        order = OrderService.get_order(order.order_number)
        assert order.status == Order.OrderStatus.PREPARING
        assert order.total == Decimal("483.00")

    def test_cannot_amend_served_order(self, served_order, actor):
        order = served_order()
        with pytest.raises(InvalidTransition):
            OrderItemService.add_item(order.order_number, "shake", 1, actor)

    def test_cannot_amend_cancelled_order(self, make_order, actor):
        order = make_order()
        OrderService.cancel(order.order_number, actor)
        with pytest.raises(InvalidTransition):
            OrderItemService.add_item(order.order_number, "shake", 1, actor)


@pytest.mark.django_db
class TestRemovalAfterConfirmation:
    """Test voiding lines whose tickets have not started"""

    def test_removing_queued_line_voids_item_and_empty_ticket(self, confirmed_order, actor, tickets_by_station):
        fryer = tickets_by_station(confirmed_order)["fryer"]

        order = OrderItemService.remove_item(confirmed_order.order_number, 2, actor)

        item = order.items.get(line_number=2)
        assert item.status == OrderItem.ItemStatus.VOIDED
        assert item.voided_at is not None
        assert TicketRouter.get_ticket(fryer.ticket_number).status == TicketStatus.VOIDED
        assert order.total == Decimal("262.50")
        assert order.status == Order.OrderStatus.CONFIRMED

    def test_removing_from_shared_ticket_updates_estimate(self, make_order, actor):
        order = make_order([("burger", 1), ("steak", 1)])
        OrderService.confirm(order.order_number, actor)

        OrderItemService.remove_item(order.order_number, 2, actor)

        ticket = KitchenTicket.objects.get(order=order)
        assert ticket.status == TicketStatus.QUEUED
        assert ticket.estimated_minutes == 12

    def test_removal_can_make_the_order_ready(self, confirmed_order, actor, kitchen_actor, tickets_by_station):
        """
        Voiding the last unfinished ticket leaves only completed ones.
        """
        grill = tickets_by_station(confirmed_order)["grill"]
        TicketRouter.complete_ticket(grill.ticket_number, kitchen_actor)

        order = OrderItemService.remove_item(confirmed_order.order_number, 2, actor)

        assert order.status == Order.OrderStatus.READY

    def test_cannot_remove_line_being_prepared(self, confirmed_order, actor, kitchen_actor, tickets_by_station):
        TicketRouter.start_ticket(tickets_by_station(confirmed_order)["fryer"].ticket_number, kitchen_actor)

        with pytest.raises(InvalidTransition):
            OrderItemService.remove_item(confirmed_order.order_number, 2, actor)

    def test_cannot_remove_completed_line(self, confirmed_order, actor, kitchen_actor, tickets_by_station):
        TicketRouter.complete_ticket(tickets_by_station(confirmed_order)["fryer"].ticket_number, kitchen_actor)

        with pytest.raises(InvalidTransition):
            OrderItemService.remove_item(confirmed_order.order_number, 2, actor)

    def test_cannot_remove_last_live_line(self, make_order, actor):
        order = make_order([("burger", 1)])
        OrderService.confirm(order.order_number, actor)

        with pytest.raises(InvalidTransition):
            OrderItemService.remove_item(order.order_number, 1, actor)

    def test_cannot_remove_twice(self, confirmed_order, actor):
        OrderItemService.remove_item(confirmed_order.order_number, 2, actor)
        with pytest.raises(InvalidTransition):
            OrderItemService.remove_item(confirmed_order.order_number, 2, actor)


@pytest.mark.django_db
class TestOrderDiscount:
    """Test order-level discounts"""

    def test_discount_recomputes_total(self, make_order, actor):
        order = make_order()

        order = OrderDiscountService.apply_discount(order.order_number, "57.00", actor)

        assert order.discount == Decimal("57.00")
        assert order.total == Decimal("300.00")
        assert order.total == order.subtotal + order.tax - order.discount

    def test_discount_survives_later_line_changes(self, make_order, actor):
        order = make_order([("burger", 1)])
        OrderDiscountService.apply_discount(order.order_number, "12.50", actor)

        OrderItemService.add_item(order.order_number, "fries", 1, actor)

        order = OrderService.get_order(order.order_number)
        assert order.total == Decimal("344.50")

    def test_zero_removes_discount(self, make_order, actor):
        order = make_order()
        OrderDiscountService.apply_discount(order.order_number, "57", actor)

        order = OrderDiscountService.apply_discount(order.order_number, "0", actor)

        assert order.total == Decimal("357.00")

    @pytest.mark.parametrize("amount", ["-1", "357.01", "abc"])
    def test_invalid_amounts(self, make_order, actor, amount):
        order = make_order()
        with pytest.raises(ValidationError):
            OrderDiscountService.apply_discount(order.order_number, amount, actor)

    def test_full_discount_is_allowed(self, make_order, actor):
        order = make_order()
        order = OrderDiscountService.apply_discount(order.order_number, "357.00", actor)
        assert order.total == Decimal("0.00")

    def test_no_discount_on_attached_order(self, served_order, actor, pos_session, cashier):
        from payments.services import SettlementService

        order = served_order()
        SettlementService.attach(pos_session.id, [order.order_number], cashier)

        with pytest.raises(InvalidTransition):
            OrderDiscountService.apply_discount(order.order_number, "10", actor)

    def test_no_discount_on_cancelled_order(self, make_order, actor):
        order = make_order()
        OrderService.cancel(order.order_number, actor)
        with pytest.raises(InvalidTransition):
            OrderDiscountService.apply_discount(order.order_number, "10", actor)
