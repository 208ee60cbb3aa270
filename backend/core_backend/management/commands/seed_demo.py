"""
Django management command to walk one order through the whole engine:
create, confirm, prepare, serve and settle. Useful for checking a fresh
deployment and for watching the WebSocket stream.
"""

from decimal import Decimal
from django.core.management.base import BaseCommand

from kds.services import TicketRouter
from orders.services import OrderService
from payments.services import SettlementService


class Command(BaseCommand):
    help = 'Create and settle a demo dine-in order using the configured catalog'

    def add_arguments(self, parser):
        parser.add_argument('--terminal', default='DEMO-1', help='Terminal id for the demo session')
        parser.add_argument('--table', default='T1', help='Table reference for the demo order')

    def handle(self, *args, **options):
        actor = 'demo'
        order = OrderService.create_order(
            'dine_in',
            [{'item_id': 'paneer-tikka', 'quantity': 1}, {'item_id': 'masala-chai', 'quantity': 2}],
            actor,
            table_ref=options['table'],
        )
        self.stdout.write(f'Created {order.order_number} total {order.total}')

        OrderService.confirm(order.order_number, actor)
        for ticket in TicketRouter.tickets_for_order(order):
            TicketRouter.complete_ticket(ticket.ticket_number, actor)
            self.stdout.write(f'Completed {ticket.ticket_number}')

        order = OrderService.serve(order.order_number, actor)

        session = SettlementService.open_session(options['terminal'], actor, Decimal('1000'))
        txn = SettlementService.attach(session.id, [order.order_number], actor)
        txn = SettlementService.capture(txn.id, txn.total, 'cash', actor)
        summary = SettlementService.session_summary(session.id)
        SettlementService.close_session(session.id, Decimal(summary['expected_cash']), actor)

        self.stdout.write(self.style.SUCCESS(
            f'Settled {order.order_number} via {txn.transaction_number}; session {session.id} closed'
        ))
