"""
Settlement transaction views.

attach binds orders to a transaction (creating it when no transaction_id is
given), capture tenders payment and settles every attached order, void
reverses a transaction and releases its orders.
"""

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response
import logging

from core_backend.base import ReadOnlyBaseViewSet
from ..models import POSTransaction
from ..serializers import (
    POSTransactionSerializer,
    AttachOrdersSerializer,
    CaptureSerializer,
    VoidTransactionSerializer,
)
from ..services import SettlementService

logger = logging.getLogger(__name__)


class POSTransactionViewSet(ReadOnlyBaseViewSet):
    queryset = POSTransaction.objects.select_related("session").prefetch_related("lines__order")
    lookup_value_regex = r"[0-9a-fA-F-]{36}"
    serializer_class = POSTransactionSerializer
    filterset_fields = ["session", "status", "payment_method"]
    search_fields = ["transaction_number"]
    ordering_fields = ["created_at", "captured_at", "total"]
    ordering = ["-created_at"]

    def _render(self, txn, status_code=status.HTTP_200_OK):
        txn = self.get_queryset().get(pk=txn.pk)
        return Response(self.get_serializer(txn).data, status=status_code)

    @action(detail=False, methods=["post"], url_path="attach")
    def attach(self, request):
        data = self.validated(AttachOrdersSerializer, request)
        txn = SettlementService.attach(
            data["session_id"],
            data["order_numbers"],
            actor=self.get_actor(request),
            transaction_id=data["transaction_id"],
            discount=data["discount"],
        )
        created = data["transaction_id"] is None
        return self._render(txn, status.HTTP_201_CREATED if created else status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="capture")
    def capture(self, request, pk=None):
        """Honours the Idempotency-Key header."""
        data = self.validated(CaptureSerializer, request)
        txn = SettlementService.capture(
            pk,
            data["amount_tendered"],
            data["method"],
            actor=self.get_actor(request),
            idempotency_key=self.get_idempotency_key(request),
        )
        return self._render(txn)

    @action(detail=True, methods=["post"], url_path="void")
    def void(self, request, pk=None):
        data = self.validated(VoidTransactionSerializer, request)
        txn = SettlementService.void(pk, actor=self.get_actor(request), reason=data["reason"])
        return self._render(txn)
