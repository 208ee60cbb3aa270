from rest_framework import serializers

from .models import POSSession, POSTransaction, SettlementLine


class SettlementLineSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.order_number", read_only=True)
    order_status = serializers.CharField(source="order.status", read_only=True)

    class Meta:
        model = SettlementLine
        fields = ["order_number", "order_status", "amount", "status_before_capture", "attached_at", "released_at"]
        read_only_fields = fields


class POSTransactionSerializer(serializers.ModelSerializer):
    session_id = serializers.UUIDField(source="session.id", read_only=True)
    lines = SettlementLineSerializer(many=True, read_only=True)

    class Meta:
        model = POSTransaction
        fields = [
            "id",
            "transaction_number",
            "session_id",
            "status",
            "payment_method",
            "currency",
            "discount",
            "total",
            "amount_tendered",
            "change_amount",
            "lines",
            "opened_by",
            "captured_by",
            "voided_by",
            "void_reason",
            "version",
            "created_at",
            "captured_at",
            "voided_at",
        ]
        read_only_fields = fields


class POSSessionSerializer(serializers.ModelSerializer):
    class Meta:
        model = POSSession
        fields = [
            "id",
            "terminal_id",
            "operator_id",
            "status",
            "currency",
            "opening_cash",
            "closing_cash",
            "expected_cash",
            "cash_variance",
            "total_sales",
            "total_transactions",
            "notes",
            "version",
            "opened_at",
            "closed_at",
            "closed_by",
        ]
        read_only_fields = fields


# --- Request serializers ---

class OpenSessionSerializer(serializers.Serializer):
    terminal_id = serializers.CharField(max_length=50)
    operator_id = serializers.CharField(max_length=100, required=False)
    opening_cash = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0, default=0)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    currency = serializers.CharField(min_length=3, max_length=3, required=False)


class CloseSessionSerializer(serializers.Serializer):
    closing_cash = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AttachOrdersSerializer(serializers.Serializer):
    session_id = serializers.UUIDField()
    order_numbers = serializers.ListField(
        child=serializers.CharField(max_length=40), allow_empty=False
    )
    transaction_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    discount = serializers.DecimalField(
        max_digits=12, decimal_places=3, min_value=0, required=False, allow_null=True, default=None
    )


class CaptureSerializer(serializers.Serializer):
    amount_tendered = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0)
    method = serializers.ChoiceField(choices=POSTransaction.PaymentMethod.choices)


class VoidTransactionSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
