from rest_framework import serializers

from .models import KitchenTicket, TicketPriority


class KitchenTicketItemSerializer(serializers.Serializer):
    line_number = serializers.IntegerField()
    name = serializers.CharField()
    quantity = serializers.IntegerField()
    special_instructions = serializers.CharField()
    status = serializers.CharField()


class KitchenTicketSerializer(serializers.ModelSerializer):
    """Station-screen view of a ticket, items in preparation order."""

    order_number = serializers.CharField(source='order.order_number', read_only=True)
    order_type = serializers.CharField(source='order.order_type', read_only=True)
    table_ref = serializers.CharField(source='order.table_ref', read_only=True)
    items = serializers.SerializerMethodField()
    elapsed_minutes = serializers.IntegerField(read_only=True)
    prep_time_minutes = serializers.IntegerField(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = KitchenTicket
        fields = [
            'ticket_number',
            'order_number',
            'order_type',
            'table_ref',
            'station_id',
            'round',
            'status',
            'priority',
            'estimated_minutes',
            'assigned_to',
            'items',
            'elapsed_minutes',
            'prep_time_minutes',
            'is_overdue',
            'version',
            'created_at',
            'started_at',
            'completed_at',
            'voided_at',
        ]
        read_only_fields = fields

    def get_items(self, obj):
        return KitchenTicketItemSerializer(obj.ordered_items(), many=True).data


class TicketPrioritySerializer(serializers.Serializer):
    priority = serializers.ChoiceField(choices=TicketPriority.choices)


class KitchenStatsQuerySerializer(serializers.Serializer):
    date_range = serializers.ChoiceField(choices=['today', 'week', 'month'], default='today')
    station_id = serializers.CharField(required=False, allow_blank=True, default='')
