from rest_framework import status
from rest_framework.response import Response
from rest_framework.request import Request
import logging

from core_backend.base import ReadOnlyBaseViewSet
from orders.filters import OrderFilter
from orders.models import Order
from orders.serializers import OrderSerializer, OrderListSerializer, OrderCreateSerializer
from orders.services import OrderService

from .status_actions import StatusActionsMixin

logger = logging.getLogger(__name__)


class OrderViewSet(StatusActionsMixin, ReadOnlyBaseViewSet):
    """
    Orders addressed by order number.

    Reads are plain list/retrieve; every state change is a POST that goes
    through the order services:
    - create (draft)
    - confirm, serve, cancel, discount (StatusActionsMixin)
    """

    queryset = Order.objects.all()
    lookup_field = "order_number"
    filterset_class = OrderFilter
    search_fields = ["order_number", "customer_name", "table_ref"]
    ordering_fields = ["created_at", "updated_at", "total", "status"]
    ordering = ["-created_at"]

    def get_queryset(self):
        queryset = super().get_queryset().select_related("transaction")
        if self.action == "list":
            return queryset.prefetch_related("items")
        return queryset.prefetch_related("items__ticket")

    def get_serializer_class(self):
        if self.action == "list":
            return OrderListSerializer
        return OrderSerializer

    def create(self, request: Request, *args, **kwargs) -> Response:
        """Create a draft order from catalog item ids."""
        data = self.validated(OrderCreateSerializer, request)
        order = OrderService.create_order(actor=self.get_actor(request), **data)
        return Response(self._render(order), status=status.HTTP_201_CREATED)

    def _render(self, order: Order) -> dict:
        order = self.get_queryset().get(pk=order.pk)
        return OrderSerializer(order, context=self.get_serializer_context()).data
