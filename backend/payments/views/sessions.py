"""
Cashier session views.

Opening and closing a session go through SettlementService; closing voids
any transaction still open and records the cash variance.
"""

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response
import logging

from core_backend.base import ReadOnlyBaseViewSet
from ..models import POSSession
from ..serializers import POSSessionSerializer, OpenSessionSerializer, CloseSessionSerializer
from ..services import SettlementService

logger = logging.getLogger(__name__)


class POSSessionViewSet(ReadOnlyBaseViewSet):
    queryset = POSSession.objects.all()
    lookup_value_regex = r"[0-9a-fA-F-]{36}"
    serializer_class = POSSessionSerializer
    filterset_fields = ["terminal_id", "status", "operator_id"]
    ordering_fields = ["opened_at", "closed_at"]
    ordering = ["-opened_at"]

    def create(self, request, *args, **kwargs):
        """Open a session. The operator defaults to the acting identity."""
        data = self.validated(OpenSessionSerializer, request)
        actor = self.get_actor(request)
        session = SettlementService.open_session(
            terminal_id=data["terminal_id"],
            operator_id=data.get("operator_id") or actor,
            opening_cash=data["opening_cash"],
            actor=actor,
            notes=data["notes"],
            currency=data.get("currency"),
        )
        return Response(self.get_serializer(session).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="close")
    def close(self, request, pk=None):
        data = self.validated(CloseSessionSerializer, request)
        session = SettlementService.close_session(
            pk, data["closing_cash"], actor=self.get_actor(request), notes=data["notes"]
        )
        return Response(self.get_serializer(session).data)

    @action(detail=True, methods=["get"], url_path="summary")
    def summary(self, request, pk=None):
        return Response(SettlementService.session_summary(pk))
