from rest_framework import serializers
from orders.models import OrderItem
from orders.services.item_service import MAX_QUANTITY_PER_LINE


class OrderItemSerializer(serializers.ModelSerializer):
    ticket_number = serializers.CharField(source="ticket.ticket_number", read_only=True, default=None)
    total_price = serializers.DecimalField(max_digits=12, decimal_places=3, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "line_number",
            "catalog_item_id",
            "name",
            "unit_price",
            "quantity",
            "total_price",
            "station_id",
            "prep_sequence",
            "special_instructions",
            "status",
            "added_in_round",
            "ticket_number",
            "created_at",
            "voided_at",
        ]
        read_only_fields = fields


class AddItemSerializer(serializers.Serializer):
    """Payload for adding one line to an existing order."""

    item_id = serializers.CharField(max_length=100)
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_QUANTITY_PER_LINE, default=1)
    special_instructions = serializers.CharField(required=False, allow_blank=True, default="")
