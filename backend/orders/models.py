from decimal import Decimal
from django.db import models
from django.utils.translation import gettext_lazy as _
from django.utils import timezone

from core_backend.models import VersionedModel


class Order(VersionedModel):
    """
    A customer's request for one or more items.

    Lifecycle: DRAFT → CONFIRMED → PREPARING → READY → SERVED → SETTLED, with
    CANCELLED reachable from any non-terminal state before SERVED. PREPARING
    and READY are never set by a caller; they are derived from the order's
    kitchen tickets.
    """

    class OrderStatus(models.TextChoices):
        DRAFT = "draft", _("Draft")
        CONFIRMED = "confirmed", _("Confirmed")
        PREPARING = "preparing", _("Preparing")
        READY = "ready", _("Ready")
        SERVED = "served", _("Served")
        SETTLED = "settled", _("Settled")
        CANCELLED = "cancelled", _("Cancelled")

    class OrderType(models.TextChoices):
        DINE_IN = "dine_in", _("Dine In")
        TAKEAWAY = "takeaway", _("Takeaway")
        DELIVERY = "delivery", _("Delivery")

    order_number = models.CharField(max_length=40, unique=True)
    order_type = models.CharField(
        max_length=10, choices=OrderType.choices, default=OrderType.DINE_IN
    )
    status = models.CharField(
        max_length=10, choices=OrderStatus.choices, default=OrderStatus.DRAFT
    )

    table_ref = models.CharField(max_length=50, blank=True, default="")
    customer_name = models.CharField(max_length=150, blank=True, default="")
    customer_phone = models.CharField(max_length=20, blank=True, default="")
    special_instructions = models.TextField(blank=True, default="")

    # --- Financial Fields ---
    currency = models.CharField(max_length=3, default="INR")
    subtotal = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("0"))
    tax = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("0"))
    discount = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("0"))
    total = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("0"))

    # Incremented each time items are added after confirmation; tickets for
    # those items belong to the new round.
    amendment_round = models.PositiveIntegerField(default=1)

    # The non-voided POS transaction this order is bound to, if any
    transaction = models.ForeignKey(
        "payments.POSTransaction",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )

    created_by = models.CharField(max_length=100, blank=True, default="")
    last_actor = models.CharField(max_length=100, blank=True, default="")
    cancel_reason = models.CharField(max_length=255, blank=True, default="")

    confirmed_at = models.DateTimeField(null=True, blank=True)
    preparing_at = models.DateTimeField(null=True, blank=True)
    ready_at = models.DateTimeField(null=True, blank=True)
    served_at = models.DateTimeField(null=True, blank=True)
    settled_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    entity_type = "order"

    class Meta:
        ordering = ["-created_at", "order_number"]
        verbose_name = _("Order")
        verbose_name_plural = _("Orders")
        indexes = [
            models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
            models.Index(fields=["table_ref", "status"], name="order_table_status_idx"),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.order_type}) - {self.status}"

    @property
    def entity_id(self):
        return self.order_number

    @property
    def is_terminal(self):
        return self.status in (self.OrderStatus.SETTLED, self.OrderStatus.CANCELLED)

    def active_items(self):
        return self.items.exclude(status=OrderItem.ItemStatus.VOIDED).order_by("line_number")

    def event_topics(self):
        topics = ["orders", f"order.{self.order_number}"]
        if self.table_ref:
            topics.append(f"table.{self.table_ref}")
        return topics

    def event_context(self):
        return {
            "order_number": self.order_number,
            "order_type": self.order_type,
            "table_ref": self.table_ref,
            "total": str(self.total),
        }


class OrderItem(models.Model):
    """
    A line on an order. Price, station and preparation hints are snapshotted
    from the catalog when the line is created and refreshed once more when the
    draft is confirmed; they never change afterwards.
    """

    class ItemStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        QUEUED = "queued", _("Queued")
        IN_PROGRESS = "in_progress", _("In Progress")
        COMPLETED = "completed", _("Completed")
        VOIDED = "voided", _("Voided")

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    line_number = models.PositiveIntegerField()

    catalog_item_id = models.CharField(max_length=100)
    name = models.CharField(max_length=200)
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        help_text=_("Catalog price at the time the line was taken."),
    )
    quantity = models.PositiveIntegerField(default=1)
    station_id = models.CharField(max_length=50)
    prep_sequence = models.PositiveIntegerField(default=100)
    prep_minutes = models.PositiveIntegerField(default=15)
    special_instructions = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=12, choices=ItemStatus.choices, default=ItemStatus.PENDING
    )
    added_in_round = models.PositiveIntegerField(default=1)
    ticket = models.ForeignKey(
        "kds.KitchenTicket",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="items",
    )

    created_at = models.DateTimeField(default=timezone.now, editable=False)
    voided_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["order", "line_number"]
        verbose_name = _("Order Item")
        verbose_name_plural = _("Order Items")
        constraints = [
            models.UniqueConstraint(fields=["order", "line_number"], name="uniq_order_line_number"),
        ]
        indexes = [
            models.Index(fields=["order", "status"], name="item_order_status_idx"),
        ]

    def __str__(self):
        return f"{self.quantity} of {self.name} in Order {self.order.order_number}"

    @property
    def total_price(self):
        return self.quantity * self.unit_price
