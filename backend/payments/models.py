import uuid
from decimal import Decimal
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core_backend.models import VersionedModel


class POSSession(VersionedModel):
    """
    A cashier's shift on one terminal, bounded by an opening and a closing
    cash count. At most one session per terminal is open at a time.
    """

    class SessionStatus(models.TextChoices):
        OPEN = "open", _("Open")
        CLOSED = "closed", _("Closed")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    terminal_id = models.CharField(max_length=50)
    operator_id = models.CharField(max_length=100)
    status = models.CharField(
        max_length=10, choices=SessionStatus.choices, default=SessionStatus.OPEN
    )
    currency = models.CharField(max_length=3, default="INR")

    opening_cash = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("0"))
    closing_cash = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    expected_cash = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        null=True,
        blank=True,
        help_text=_("Opening cash plus captured cash minus voided captured cash."),
    )
    cash_variance = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        null=True,
        blank=True,
        help_text=_("Closing cash minus expected cash. Informational only."),
    )
    total_sales = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("0"))
    total_transactions = models.PositiveIntegerField(default=0)
    notes = models.TextField(blank=True, default="")

    opened_at = models.DateTimeField(default=timezone.now)
    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by = models.CharField(max_length=100, blank=True, default="")

    entity_type = "pos_session"

    class Meta:
        ordering = ["-opened_at"]
        verbose_name = _("POS Session")
        verbose_name_plural = _("POS Sessions")
        constraints = [
            models.UniqueConstraint(
                fields=["terminal_id"],
                condition=models.Q(status="open"),
                name="uniq_open_session_per_terminal",
            ),
        ]
        indexes = [
            models.Index(fields=["terminal_id", "status"], name="session_terminal_status_idx"),
        ]

    def __str__(self):
        return f"Session {self.id} on {self.terminal_id} - {self.status}"

    def event_topics(self):
        return ["pos", f"pos_session.{self.id}", f"terminal.{self.terminal_id}"]

    def event_context(self):
        return {
            "terminal_id": self.terminal_id,
            "operator_id": self.operator_id,
        }


class POSTransaction(VersionedModel):
    """
    One settlement of one or more orders within a session.

    Open while orders are being attached; CAPTURED once tendered and every
    attached order is settled; VOIDED when reversed, which releases its
    orders.
    """

    class TransactionStatus(models.TextChoices):
        OPEN = "open", _("Open")
        CAPTURED = "captured", _("Captured")
        VOIDED = "voided", _("Voided")

    class PaymentMethod(models.TextChoices):
        CASH = "cash", _("Cash")
        CARD = "card", _("Card")
        UPI = "upi", _("UPI")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    transaction_number = models.CharField(max_length=30, unique=True)
    session = models.ForeignKey(
        POSSession, on_delete=models.PROTECT, related_name="transactions"
    )
    status = models.CharField(
        max_length=10, choices=TransactionStatus.choices, default=TransactionStatus.OPEN
    )
    payment_method = models.CharField(
        max_length=10, choices=PaymentMethod.choices, blank=True, default=""
    )
    currency = models.CharField(max_length=3, default="INR")

    discount = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal("0"),
        help_text=_("Transaction-level discount on top of the orders' own totals."),
    )
    total = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("0"))
    amount_tendered = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    change_amount = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("0"))

    opened_by = models.CharField(max_length=100, blank=True, default="")
    captured_by = models.CharField(max_length=100, blank=True, default="")
    voided_by = models.CharField(max_length=100, blank=True, default="")
    void_reason = models.CharField(max_length=255, blank=True, default="")

    captured_at = models.DateTimeField(null=True, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)

    entity_type = "pos_transaction"

    class Meta:
        ordering = ["-created_at", "transaction_number"]
        verbose_name = _("POS Transaction")
        verbose_name_plural = _("POS Transactions")
        indexes = [
            models.Index(fields=["session", "status"], name="txn_session_status_idx"),
        ]

    def __str__(self):
        return f"Transaction {self.transaction_number} - {self.status}"

    @property
    def was_captured(self):
        return self.captured_at is not None

    def event_topics(self):
        return ["pos", f"pos_session.{self.session_id}", f"pos_transaction.{self.id}"]

    def event_context(self):
        return {
            "transaction_number": self.transaction_number,
            "session_id": str(self.session_id),
            "payment_method": self.payment_method,
            "total": str(self.total),
        }


class SettlementLine(models.Model):
    """
    Audit record of an order attached to a transaction. Survives a void
    (``released_at`` is set) so a session report can show what was reversed.
    """

    transaction = models.ForeignKey(
        POSTransaction, on_delete=models.CASCADE, related_name="lines"
    )
    order = models.ForeignKey(
        "orders.Order", on_delete=models.PROTECT, related_name="settlement_lines"
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        help_text=_("Order total when attached, refreshed at capture."),
    )
    # Order status before capture; restored if the capture is voided
    status_before_capture = models.CharField(max_length=10, blank=True, default="")
    attached_at = models.DateTimeField(default=timezone.now)
    released_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["attached_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["transaction", "order"], name="uniq_settlement_line"),
        ]

    def __str__(self):
        return f"{self.order.order_number} on {self.transaction.transaction_number}"
