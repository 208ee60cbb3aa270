from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
from django.utils import timezone
import logging

from core_backend.exceptions import InvalidTransition, ValidationError
from core_backend.infrastructure.entity_store import entity_store, run_with_retry
from core_backend.infrastructure.idempotency import idempotency_guard
from core_backend.utils.numbering import kitchen_ticket_number
from notifications.services import event_publisher
from orders.models import Order, OrderItem
from ..models import KitchenTicket, TicketPriority, TicketStatus, OPEN_TICKET_STATUSES

logger = logging.getLogger(__name__)

# Progress order of a ticket; reports that do not move forward are no-ops
PROGRESS_RANK = {
    TicketStatus.QUEUED: 0,
    TicketStatus.IN_PROGRESS: 1,
    TicketStatus.COMPLETED: 2,
}

ITEM_STATUS_FOR_TICKET = {
    TicketStatus.QUEUED: OrderItem.ItemStatus.QUEUED,
    TicketStatus.IN_PROGRESS: OrderItem.ItemStatus.IN_PROGRESS,
    TicketStatus.COMPLETED: OrderItem.ItemStatus.COMPLETED,
}


@dataclass
class ProgressSnapshot:
    ticket: KitchenTicket
    order: Order
    # ticket_number -> status for every ticket of the order
    sibling_statuses: Dict[str, str]


class TicketRouter:
    """
    Splits an order into per-station kitchen tickets and applies station
    progress reports, keeping the order's derived status in step.
    """

    @staticmethod
    def estimate_minutes(items: Iterable[OrderItem]) -> int:
        """Sum of preparation minutes times quantity"""
        return sum(item.prep_minutes * item.quantity for item in items)

    @staticmethod
    def get_ticket(ticket_number: str) -> KitchenTicket:
        return entity_store.get(KitchenTicket, ticket_number=ticket_number)

    @staticmethod
    def tickets_for_order(order: Order) -> List[KitchenTicket]:
        return list(
            KitchenTicket.objects.filter(order=order)
            .exclude(status=TicketStatus.VOIDED)
            .select_related('order')
            .order_by('round', 'station_id')
        )

    @classmethod
    def recompute_order_status(cls, order: Order, actor: str, **extra_changes) -> bool:
        """
        Commit the order with its ticket-derived status (and any
        ``extra_changes``). The order version is bumped even when the status
        stays the same, so a writer holding an older view of the tickets
        loses its compare-and-swap.

        Returns True when the status changed. Publishing is left to callers.
        """
        statuses = KitchenTicket.objects.filter(order=order).values_list('status', flat=True)
        return cls._commit_order_status(order, list(statuses), actor, **extra_changes)

    @staticmethod
    def _commit_order_status(order: Order, ticket_statuses: List[str], actor: str, **extra_changes) -> bool:
        from orders.services.order_service import OrderService

        previous = order.status
        new_status = OrderService.aggregate_kitchen_status(previous, ticket_statuses)
        entity_store.commit(
            order,
            order.version,
            status=new_status,
            last_actor=actor or order.last_actor,
            **OrderService.status_timestamps(order, new_status),
            **extra_changes,
        )
        if new_status != previous:
            logger.info(f"Order {order.order_number}: {previous} → {new_status}")
            return True
        return False

    @classmethod
    def derive_in_transaction(cls, order: Order, actor: str) -> List[KitchenTicket]:
        """
        Assign the order's pending items to tickets, one per (station,
        round), creating tickets that do not exist yet. Must run inside the
        caller's retry loop; commits the order through the entity store.

        Returns the tickets created by this call.
        """
        pending = list(order.items.filter(status=OrderItem.ItemStatus.PENDING).order_by('line_number'))
        if not pending:
            return []

        groups: Dict[tuple, List[OrderItem]] = {}
        for item in pending:
            groups.setdefault((item.station_id, item.added_in_round), []).append(item)

        created = []
        for (station_id, round_number), items in groups.items():
            ticket, was_created = KitchenTicket.objects.get_or_create(
                order=order,
                station_id=station_id,
                round=round_number,
                defaults={
                    'ticket_number': kitchen_ticket_number(order.order_number, station_id, round_number),
                    'estimated_minutes': cls.estimate_minutes(items),
                },
            )
            if not was_created and ticket.status != TicketStatus.QUEUED:
                raise InvalidTransition(
                    f"Ticket {ticket.ticket_number} is already {ticket.status}; cannot add items to it.",
                    current_status=ticket.status,
                )

            OrderItem.objects.filter(pk__in=[item.pk for item in items]).update(
                ticket=ticket, status=OrderItem.ItemStatus.QUEUED
            )
            if was_created:
                ticket.order = order
                created.append(ticket)
                logger.info(
                    f"Ticket {ticket.ticket_number} queued for station {station_id} "
                    f"with {len(items)} item(s)"
                )

        cls.recompute_order_status(order, actor)
        for ticket in created:
            event_publisher.entity_changed(ticket)
        return created

    @classmethod
    def derive_tickets(cls, order_number: str, actor: str = '', idempotency_key: Optional[str] = None) -> List[KitchenTicket]:
        """
        Ensure every item of a confirmed order is on a ticket. Calling it
        again (with or without the same key) never duplicates tickets.

        Returns all live tickets of the order.
        """

        def read():
            return entity_store.get(Order, order_number=order_number)

        def apply(order):
            from orders.services.order_service import KITCHEN_PHASE

            if order.status not in KITCHEN_PHASE:
                raise InvalidTransition(
                    f"Tickets can only be derived for confirmed orders; {order_number} is {order.status}.",
                    current_status=order.status,
                )
            created = cls.derive_in_transaction(order, actor)
            if created:
                event_publisher.entity_changed(order)
            return cls.tickets_for_order(order)

        def decode(outcome):
            return list(
                KitchenTicket.objects.filter(ticket_number__in=outcome['tickets'])
                .select_related('order')
                .order_by('round', 'station_id')
            )

        return idempotency_guard.execute(
            scope=f"kds.derive_tickets:{order_number}",
            key=idempotency_key,
            operation=lambda: run_with_retry(f"Derive tickets for {order_number}", read, apply),
            encode=lambda tickets: {'order_number': order_number, 'tickets': [t.ticket_number for t in tickets]},
            decode=decode,
            actor_id=actor,
        )

    @staticmethod
    def _read_progress(ticket_number: str) -> ProgressSnapshot:
        ticket = entity_store.get(KitchenTicket, ticket_number=ticket_number)
        order = entity_store.get(Order, pk=ticket.order_id)
        ticket.order = order
        siblings = dict(
            KitchenTicket.objects.filter(order_id=order.pk).values_list('ticket_number', 'status')
        )
        return ProgressSnapshot(ticket=ticket, order=order, sibling_statuses=siblings)

    @classmethod
    def _report_progress(cls, ticket_number: str, target: str, actor: str) -> KitchenTicket:

        def apply(snapshot: ProgressSnapshot):
            ticket, order = snapshot.ticket, snapshot.order

            if ticket.status == TicketStatus.VOIDED or order.status == Order.OrderStatus.CANCELLED:
                logger.info(f"Ticket {ticket_number} is voided; '{target}' report accepted with no effect")
                return ticket
            if PROGRESS_RANK[target] <= PROGRESS_RANK[ticket.status]:
                logger.info(f"Ticket {ticket_number} already {ticket.status}; '{target}' report ignored")
                return ticket

            now = timezone.now()
            changes = {'status': target}
            if ticket.started_at is None:
                changes['started_at'] = now
                if actor:
                    changes['assigned_to'] = actor
            if target == TicketStatus.COMPLETED:
                changes['completed_at'] = now

            entity_store.commit(ticket, ticket.version, **changes)
            ticket.items.exclude(status=OrderItem.ItemStatus.VOIDED).update(
                status=ITEM_STATUS_FOR_TICKET[target]
            )
            logger.info(f"Ticket {ticket_number} → {target} by {actor}")

            statuses = dict(snapshot.sibling_statuses)
            statuses[ticket.ticket_number] = target
            order_changed = cls._commit_order_status(order, list(statuses.values()), actor)

            event_publisher.entity_changed(ticket)
            if order_changed:
                event_publisher.entity_changed(order)
            return ticket

        return run_with_retry(
            f"Mark ticket {ticket_number} {target}",
            lambda: cls._read_progress(ticket_number),
            apply,
        )

    @classmethod
    def start_ticket(cls, ticket_number: str, actor: str) -> KitchenTicket:
        """QUEUED → IN_PROGRESS. The first start on any ticket moves the order to PREPARING."""
        return cls._report_progress(ticket_number, TicketStatus.IN_PROGRESS, actor)

    @classmethod
    def complete_ticket(cls, ticket_number: str, actor: str) -> KitchenTicket:
        """
        QUEUED/IN_PROGRESS → COMPLETED (a queued ticket is started
        implicitly). Completing the last open ticket makes the order READY.
        """
        return cls._report_progress(ticket_number, TicketStatus.COMPLETED, actor)

    @classmethod
    def set_priority(cls, ticket_number: str, priority: str, actor: str) -> KitchenTicket:
        """Mark an open ticket rush or normal"""
        if priority not in TicketPriority.values:
            raise ValidationError(f"'{priority}' is not a valid ticket priority.", {'priority': priority})

        def apply(ticket):
            if ticket.status not in OPEN_TICKET_STATUSES:
                raise InvalidTransition(
                    f"Ticket {ticket_number} is {ticket.status}; priority can only change on open tickets.",
                    current_status=ticket.status,
                )
            if ticket.priority == priority:
                return ticket
            entity_store.commit(ticket, ticket.version, priority=priority)
            logger.info(f"Ticket {ticket_number} priority set to {priority} by {actor}")
            event_publisher.entity_changed(ticket)
            return ticket

        return run_with_retry(
            f"Set priority of ticket {ticket_number}",
            lambda: cls.get_ticket(ticket_number),
            apply,
        )
