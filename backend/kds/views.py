from rest_framework import filters, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from django_filters.rest_framework import DjangoFilterBackend
import logging

from core_backend.base import ActorRequestMixin, ReadOnlyBaseViewSet
from .models import KitchenTicket
from .serializers import KitchenTicketSerializer, TicketPrioritySerializer, KitchenStatsQuerySerializer
from .services import TicketRouter, KDSOverviewService

logger = logging.getLogger(__name__)


class KitchenTicketViewSet(ReadOnlyBaseViewSet):
    """
    Kitchen tickets addressed by ticket number. Stations report progress
    through the start/complete actions; reports that do not move a ticket
    forward succeed without changing it.
    """

    queryset = KitchenTicket.objects.select_related('order')
    serializer_class = KitchenTicketSerializer
    lookup_field = 'ticket_number'
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['station_id', 'status', 'priority', 'round']
    ordering_fields = ['created_at', 'estimated_minutes']
    ordering = ['created_at']

    def _render(self, ticket_number):
        return Response(self.get_serializer(TicketRouter.get_ticket(ticket_number)).data)

    @action(detail=True, methods=['post'], url_path='start')
    def start(self, request, ticket_number=None):
        TicketRouter.start_ticket(ticket_number, actor=self.get_actor(request))
        return self._render(ticket_number)

    @action(detail=True, methods=['post'], url_path='complete')
    def complete(self, request, ticket_number=None):
        TicketRouter.complete_ticket(ticket_number, actor=self.get_actor(request))
        return self._render(ticket_number)

    @action(detail=True, methods=['post'], url_path='priority')
    def priority(self, request, ticket_number=None):
        data = self.validated(TicketPrioritySerializer, request)
        TicketRouter.set_priority(ticket_number, data['priority'], actor=self.get_actor(request))
        return self._render(ticket_number)


class DeriveTicketsView(ActorRequestMixin, APIView):
    """
    POST orders/<order_number>/derive/

    Ensures every item of a confirmed order is on a ticket. Honours the
    Idempotency-Key header.
    """

    def post(self, request, order_number):
        tickets = TicketRouter.derive_tickets(
            order_number,
            actor=self.get_actor(request),
            idempotency_key=self.get_idempotency_key(request),
        )
        return Response(KitchenTicketSerializer(tickets, many=True).data, status=status.HTTP_200_OK)


class StationQueueView(APIView):
    """GET stations/<station_id>/queue/ - open tickets, rush first"""

    def get(self, request, station_id):
        tickets = KDSOverviewService.station_queue(station_id)
        logger.debug(f"Station {station_id} queue: {len(tickets)} open ticket(s)")
        return Response({
            'station_id': station_id,
            'tickets': KitchenTicketSerializer(tickets, many=True).data,
        })


class KitchenStatsView(APIView):
    """
    GET stats/

    Query parameters:
    - date_range: today, week or month (default: today)
    - station_id: limit to one station
    """

    def get(self, request):
        query = KitchenStatsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        stats = KDSOverviewService.kitchen_stats(
            date_range=query.validated_data['date_range'],
            station_id=query.validated_data['station_id'] or None,
        )
        return Response(stats)
