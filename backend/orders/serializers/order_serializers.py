from rest_framework import serializers
from orders.models import Order
from orders.services.item_service import MAX_QUANTITY_PER_LINE
from .order_item_serializers import OrderItemSerializer


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight representation for order lists."""

    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "order_number",
            "order_type",
            "status",
            "table_ref",
            "customer_name",
            "currency",
            "total",
            "item_count",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_item_count(self, obj):
        return sum(1 for item in obj.items.all() if item.status != item.ItemStatus.VOIDED)


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    transaction_number = serializers.CharField(
        source="transaction.transaction_number", read_only=True, default=None
    )

    class Meta:
        model = Order
        fields = [
            "order_number",
            "order_type",
            "status",
            "table_ref",
            "customer_name",
            "customer_phone",
            "special_instructions",
            "currency",
            "subtotal",
            "tax",
            "discount",
            "total",
            "amendment_round",
            "transaction_number",
            "created_by",
            "last_actor",
            "cancel_reason",
            "version",
            "items",
            "created_at",
            "updated_at",
            "confirmed_at",
            "preparing_at",
            "ready_at",
            "served_at",
            "settled_at",
            "cancelled_at",
        ]
        read_only_fields = fields


class OrderLineRequestSerializer(serializers.Serializer):
    item_id = serializers.CharField(max_length=100)
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_QUANTITY_PER_LINE, default=1)
    special_instructions = serializers.CharField(required=False, allow_blank=True, default="")


class OrderCreateSerializer(serializers.Serializer):
    """
    Payload for creating a draft order. Catalog resolution and pricing happen
    in OrderService.create_order, never here.
    """

    order_type = serializers.ChoiceField(choices=Order.OrderType.choices, default=Order.OrderType.DINE_IN)
    items = OrderLineRequestSerializer(many=True, required=False, default=list)
    table_ref = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    customer_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    customer_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    special_instructions = serializers.CharField(required=False, allow_blank=True, default="")
    currency = serializers.CharField(min_length=3, max_length=3, required=False)

