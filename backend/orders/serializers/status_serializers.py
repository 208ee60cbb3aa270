from rest_framework import serializers


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class ApplyDiscountSerializer(serializers.Serializer):
    """
    Order-level discount in major units. Bounds against the order total are
    checked by OrderDiscountService.
    """

    amount = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0)
