"""
Orders serializers package.

Read serializers render orders and their lines; request serializers only
validate payload shape. Business rules live in orders.services.
"""

from .order_item_serializers import OrderItemSerializer, AddItemSerializer
from .order_serializers import (
    OrderSerializer,
    OrderListSerializer,
    OrderCreateSerializer,
    OrderLineRequestSerializer,
)
from .status_serializers import CancelOrderSerializer, ApplyDiscountSerializer

__all__ = [
    'OrderItemSerializer',
    'AddItemSerializer',
    'OrderSerializer',
    'OrderListSerializer',
    'OrderCreateSerializer',
    'OrderLineRequestSerializer',
    'CancelOrderSerializer',
    'ApplyDiscountSerializer',
]
