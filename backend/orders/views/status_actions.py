from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.request import Request

from kds.serializers import KitchenTicketSerializer
from kds.services import TicketRouter
from orders.serializers import CancelOrderSerializer, ApplyDiscountSerializer
from orders.services import OrderService, OrderDiscountService


class StatusActionsMixin:
    """
    Mixin for order status transition actions

    This mixin provides action methods for OrderViewSet. Engine errors
    propagate to the project exception handler.
    """

    @action(detail=True, methods=["post"], url_path="confirm")
    def confirm(self, request: Request, order_number=None) -> Response:
        """
        Confirms a draft order and routes it to the kitchen. Honours the
        Idempotency-Key header: a repeated key replays the first outcome.
        """
        order = OrderService.confirm(
            order_number,
            actor=self.get_actor(request),
            idempotency_key=self.get_idempotency_key(request),
        )
        return Response(self._render(order))

    @action(detail=True, methods=["post"], url_path="serve")
    def serve(self, request: Request, order_number=None) -> Response:
        """Marks a ready order as handed to the guest."""
        order = OrderService.serve(order_number, actor=self.get_actor(request))
        return Response(self._render(order))

    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request: Request, order_number=None) -> Response:
        """Cancels the order and voids its open tickets."""
        data = self.validated(CancelOrderSerializer, request)
        order = OrderService.cancel(order_number, actor=self.get_actor(request), reason=data["reason"])
        return Response(self._render(order))

    @action(detail=True, methods=["post"], url_path="discount")
    def discount(self, request: Request, order_number=None) -> Response:
        """Sets the order-level discount and recalculates totals."""
        data = self.validated(ApplyDiscountSerializer, request)
        order = OrderDiscountService.apply_discount(order_number, data["amount"], actor=self.get_actor(request))
        return Response(self._render(order))

    @action(detail=True, methods=["get"], url_path="tickets")
    def tickets(self, request: Request, order_number=None) -> Response:
        """Live kitchen tickets of the order."""
        order = OrderService.get_order(order_number)
        tickets = TicketRouter.tickets_for_order(order)
        return Response(KitchenTicketSerializer(tickets, many=True).data)
