from rest_framework import mixins, status, viewsets
from rest_framework.response import Response
from rest_framework.request import Request
import logging

from core_backend.base import ActorRequestMixin
from orders.models import OrderItem
from orders.serializers import OrderItemSerializer, OrderSerializer, AddItemSerializer
from orders.services import OrderService, OrderItemService

logger = logging.getLogger(__name__)


class OrderItemViewSet(ActorRequestMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    Lines of one order, nested under /orders/<order_number>/items/.

    Adding to a confirmed order opens an amendment round; removing a line
    after confirmation voids it.
    """

    serializer_class = OrderItemSerializer
    lookup_field = "line_number"
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        return (
            OrderItem.objects.filter(order__order_number=self.kwargs["order_order_number"])
            .select_related("ticket")
            .order_by("line_number")
        )

    def list(self, request: Request, *args, **kwargs) -> Response:
        OrderService.get_order(self.kwargs["order_order_number"])
        return super().list(request, *args, **kwargs)

    def create(self, request: Request, order_order_number=None) -> Response:
        data = self.validated(AddItemSerializer, request)
        item = OrderItemService.add_item(
            order_order_number,
            data["item_id"],
            data["quantity"],
            actor=self.get_actor(request),
            special_instructions=data["special_instructions"],
        )
        return Response(OrderItemSerializer(item).data, status=status.HTTP_201_CREATED)

    def destroy(self, request: Request, order_order_number=None, line_number=None) -> Response:
        order = OrderItemService.remove_item(order_order_number, int(line_number), actor=self.get_actor(request))
        order = OrderService.get_order(order.order_number)
        return Response(OrderSerializer(order).data)
