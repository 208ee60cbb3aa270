from typing import Dict, List, Any
from django.utils import timezone
from django.db.models import Avg, Count, Q
from datetime import timedelta
import logging

from core_backend.exceptions import ValidationError
from ..models import KitchenTicket, TicketStatus

logger = logging.getLogger(__name__)

DATE_RANGES = ('today', 'week', 'month')


class KDSOverviewService:
    """Read models for station screens and kitchen metrics"""

    @staticmethod
    def station_queue(station_id: str) -> List[KitchenTicket]:
        """Open tickets for a station, rush first, then oldest first"""
        return list(
            KitchenTicket.objects.for_station(station_id)
            .open()
            .select_related('order')
            .prefetch_related('items')
            .queue_order()
        )

    @staticmethod
    def _range_start(date_range: str):
        if date_range not in DATE_RANGES:
            raise ValidationError(f"date_range must be one of {DATE_RANGES}", {'date_range': date_range})
        today_start = timezone.localtime().replace(hour=0, minute=0, second=0, microsecond=0)
        if date_range == 'today':
            return today_start
        if date_range == 'week':
            return today_start - timedelta(days=7)
        return today_start - timedelta(days=30)

    @classmethod
    def kitchen_stats(cls, date_range: str = 'today', station_id: str = None) -> Dict[str, Any]:
        """
        Ticket counts per status and average preparation time.

        Args:
            date_range: 'today', 'week' or 'month'
            station_id: Limit to one station

        Returns:
            Dict with total_tickets, one count per status, avg_prep_minutes
            (completed tickets with a start time) and avg_estimated_minutes
        """
        tickets = KitchenTicket.objects.filter(created_at__gte=cls._range_start(date_range))
        if station_id:
            tickets = tickets.for_station(station_id)

        counts = tickets.aggregate(
            total_tickets=Count('id'),
            queued=Count('id', filter=Q(status=TicketStatus.QUEUED)),
            in_progress=Count('id', filter=Q(status=TicketStatus.IN_PROGRESS)),
            completed=Count('id', filter=Q(status=TicketStatus.COMPLETED)),
            voided=Count('id', filter=Q(status=TicketStatus.VOIDED)),
            avg_estimated_minutes=Avg('estimated_minutes'),
        )

        # Durations are averaged in Python; DurationField arithmetic differs across backends
        prep_times = [
            (completed_at - started_at).total_seconds() / 60
            for started_at, completed_at in tickets.filter(
                status=TicketStatus.COMPLETED,
                started_at__isnull=False,
                completed_at__isnull=False,
            ).values_list('started_at', 'completed_at')
        ]

        avg_estimated = counts.pop('avg_estimated_minutes')
        return {
            'date_range': date_range,
            'station_id': station_id,
            **counts,
            'avg_prep_minutes': round(sum(prep_times) / len(prep_times), 1) if prep_times else 0,
            'avg_estimated_minutes': round(float(avg_estimated), 1) if avg_estimated else 0,
            'timestamp': timezone.now().isoformat(),
        }
