from django.db import models
from django.utils import timezone

from core_backend.config import engine_settings
from core_backend.models import VersionedModel


class TicketStatus(models.TextChoices):
    QUEUED = 'queued', 'Queued'
    IN_PROGRESS = 'in_progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    VOIDED = 'voided', 'Voided'


class TicketPriority(models.TextChoices):
    NORMAL = 'normal', 'Normal'
    RUSH = 'rush', 'Rush'


OPEN_TICKET_STATUSES = (TicketStatus.QUEUED, TicketStatus.IN_PROGRESS)


class KitchenTicketQuerySet(models.QuerySet):

    def open(self):
        return self.filter(status__in=OPEN_TICKET_STATUSES)

    def for_station(self, station_id):
        return self.filter(station_id=station_id)

    def queue_order(self):
        """Rush tickets first, then oldest first"""
        return self.annotate(
            rush_rank=models.Case(
                models.When(priority=TicketPriority.RUSH, then=models.Value(0)),
                default=models.Value(1),
                output_field=models.IntegerField(),
            )
        ).order_by('rush_rank', 'created_at', 'ticket_number')


class KitchenTicket(VersionedModel):
    """
    The unit of work sent to one preparation station: the items of one order
    that the station prepares, for one amendment round.

    Keyed by (order, station, round); re-deriving tickets for an order never
    creates a second ticket for the same key.
    """
    ticket_number = models.CharField(max_length=80, unique=True)
    order = models.ForeignKey('orders.Order', on_delete=models.CASCADE, related_name='tickets')
    station_id = models.CharField(max_length=50)
    round = models.PositiveIntegerField(default=1)

    status = models.CharField(max_length=20, choices=TicketStatus.choices, default=TicketStatus.QUEUED)
    priority = models.CharField(max_length=10, choices=TicketPriority.choices, default=TicketPriority.NORMAL)
    estimated_minutes = models.PositiveIntegerField(default=15)
    assigned_to = models.CharField(max_length=100, blank=True, default='')

    # Timestamps for workflow tracking
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)

    objects = KitchenTicketQuerySet.as_manager()

    entity_type = 'kitchen_ticket'

    class Meta:
        ordering = ['created_at', 'ticket_number']
        constraints = [
            models.UniqueConstraint(fields=['order', 'station_id', 'round'], name='uniq_ticket_order_station_round'),
        ]
        indexes = [
            models.Index(fields=['station_id', 'status'], name='ticket_station_status_idx'),
            models.Index(fields=['status', 'completed_at'], name='ticket_status_completed_idx'),
        ]

    def __str__(self):
        return self.ticket_number

    @property
    def entity_id(self):
        return self.ticket_number

    @property
    def prep_time_minutes(self):
        """Minutes from start to completion"""
        if self.started_at and self.completed_at:
            return int((self.completed_at - self.started_at).total_seconds() / 60)
        return 0

    @property
    def elapsed_minutes(self):
        """Minutes since the ticket was sent to the station"""
        end = self.completed_at or timezone.now()
        return int((end - self.created_at).total_seconds() / 60)

    @property
    def is_overdue(self):
        if self.status not in OPEN_TICKET_STATUSES:
            return False
        return self.elapsed_minutes > self.estimated_minutes

    def ordered_items(self):
        """
        Items in the order the station should prepare them: catalog
        preparation sequence, or arrival (line) order when
        ``TICKET_ITEM_ORDERING`` is ``"arrival"``.
        """
        if engine_settings.ticket_item_ordering == 'arrival':
            return self.items.order_by('line_number')
        return self.items.order_by('prep_sequence', 'line_number')

    def event_topics(self):
        return [
            'kitchen',
            f'kitchen.{self.station_id}',
            f'kitchen_ticket.{self.ticket_number}',
            f'order.{self.order.order_number}',
        ]

    def event_context(self):
        return {
            'ticket_number': self.ticket_number,
            'order_number': self.order.order_number,
            'station_id': self.station_id,
            'round': self.round,
            'priority': self.priority,
        }
