"""Event registration, payment, and Stripe bookkeeping models for association-portal."""

from decimal import Decimal

from django.conf import settings
from django.db import models


class EventRegistration(models.Model):
    """One attendee's registration for an event.

    Created in ``PENDING`` status when the registration form is submitted.
    ``payment_status`` moves to ``PAID`` only through a gateway-verified
    confirmation or the audited manual override, and to ``FAILED`` when the
    gateway reports a failed charge. The admin tracking fields at the bottom
    are free for staff to edit and never influence ``payment_status``.
    """

    class RegistrationType(models.TextChoices):
        """Price tiers an attendee can register under."""

        MEMBER = "member", "Member"
        NON_MEMBER = "non_member", "Non-member"

    class PaymentStatus(models.TextChoices):
        """Payment lifecycle of a registration."""

        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        FAILED = "failed", "Failed"

    class PaymentMethodTracking(models.TextChoices):
        """How the attendee actually paid, as recorded by staff."""

        PAYLANES = "paylanes", "PayLanes"
        DIRECT_DEPOSIT = "direct_deposit", "Direct deposit"
        CASH = "cash", "Cash"
        CHEQUE = "cheque", "Cheque"
        BANK_TRANSFER = "bank_transfer", "Bank transfer"

    event = models.ForeignKey(
        "portal_events.Event",
        on_delete=models.PROTECT,
        related_name="registrations",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="event_registrations",
    )
    reference = models.CharField(
        max_length=100,
        unique=True,
        help_text='Unique registration reference, e.g. "REG-A1B2C3".',
    )
    idempotency_key = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="Client-supplied key that deduplicates repeated form submissions.",
    )
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150, blank=True, default="")
    email = models.EmailField()
    company_name = models.CharField(max_length=200, blank=True, default="")
    position = models.CharField(max_length=200, blank=True, default="")
    phone_number = models.CharField(max_length=50, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    registration_type = models.CharField(
        max_length=20,
        choices=RegistrationType.choices,
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    stripe_payment_intent_id = models.CharField(max_length=200, blank=True, default="")
    stripe_client_secret = models.CharField(max_length=300, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)

    membership_type = models.CharField(
        max_length=20,
        choices=RegistrationType.choices,
        blank=True,
        default="",
    )
    payment_method_tracking = models.CharField(
        max_length=20,
        choices=PaymentMethodTracking.choices,
        blank=True,
        default="",
    )
    cros = models.TextField(blank=True, default="")
    admin_notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "idempotency_key"],
                name="registration_unique_idempotency_key_per_event",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.reference} ({self.first_name} {self.last_name}, {self.payment_status})"

    @property
    def full_name(self) -> str:
        """Return the attendee's display name."""
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_paid(self) -> bool:
        """Whether the registration has reached the ``PAID`` state."""
        return self.payment_status == self.PaymentStatus.PAID


class Payment(models.Model):
    """A single payment attempt against a registration or a membership.

    Stripe payments start ``PENDING`` when the PaymentIntent is created and
    move to ``SUCCEEDED`` or ``FAILED`` once the gateway has been re-queried.
    Manual payments are entered by staff through the audited override and
    start ``SUCCEEDED``.
    """

    class Method(models.TextChoices):
        """Supported payment methods."""

        STRIPE = "stripe", "Stripe"
        COMP = "comp", "Complimentary"
        MANUAL = "manual", "Manual"

    class Status(models.TextChoices):
        """Lifecycle states for a payment."""

        PENDING = "pending", "Pending"
        SUCCEEDED = "succeeded", "Succeeded"
        FAILED = "failed", "Failed"
        REFUNDED = "refunded", "Refunded"

    class Kind(models.TextChoices):
        """What the payment is for."""

        EVENT = "event", "Event registration"
        MEMBERSHIP = "membership", "Membership"

    kind = models.CharField(max_length=20, choices=Kind.choices)
    registration = models.ForeignKey(
        EventRegistration,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
    )
    membership = models.ForeignKey(
        "portal_membership.Membership",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
    )
    method = models.CharField(
        max_length=20,
        choices=Method.choices,
        default=Method.STRIPE,
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default="BSD")
    stripe_payment_intent_id = models.CharField(max_length=200, blank=True, default="")
    stripe_charge_id = models.CharField(max_length=200, blank=True, default="")
    description = models.CharField(max_length=300, blank=True, default="")
    note = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="recorded_payments",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(registration__isnull=False, membership__isnull=True)
                    | models.Q(registration__isnull=True, membership__isnull=False)
                ),
                name="registration_payment_exactly_one_target",
            ),
            models.UniqueConstraint(
                fields=["stripe_payment_intent_id"],
                condition=~models.Q(stripe_payment_intent_id=""),
                name="registration_payment_unique_intent",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.method} {self.amount} {self.currency} ({self.status})"


class RegistrationAuditLog(models.Model):
    """Append-only record of payment-status transitions and admin edits.

    Gateway-verified transitions and the manual staff override are logged
    under distinct actions so the two paths can always be told apart.
    """

    class Action(models.TextChoices):
        """Kinds of audited changes."""

        GATEWAY_CONFIRMED = "gateway_confirmed", "Gateway confirmed payment"
        GATEWAY_FAILED = "gateway_failed", "Gateway reported failure"
        COMP_CONFIRMED = "comp_confirmed", "Complimentary registration confirmed"
        MANUAL_MARK_PAID = "manual_mark_paid", "Manually marked paid"
        MANUAL_MARK_UNPAID = "manual_mark_unpaid", "Manual payment reverted"
        ADMIN_EDIT = "admin_edit", "Admin metadata edit"

    registration = models.ForeignKey(
        EventRegistration,
        on_delete=models.CASCADE,
        related_name="audit_log",
    )
    action = models.CharField(max_length=30, choices=Action.choices)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registration_audit_entries",
    )
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.action} on {self.registration.reference}"


class StripeEvent(models.Model):
    """A raw Stripe webhook event, stored once per Stripe event id."""

    stripe_id = models.CharField(max_length=255, unique=True)
    kind = models.CharField(max_length=255)
    livemode = models.BooleanField(default=False)
    payload = models.JSONField(default=dict)
    customer_id = models.CharField(max_length=255, blank=True, default="")
    processed = models.BooleanField(default=False)
    api_version = models.CharField(max_length=50, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.kind} ({self.stripe_id})"


class EventProcessingException(models.Model):
    """A captured failure from a webhook handler, kept for manual review."""

    event = models.ForeignKey(
        StripeEvent,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="processing_exceptions",
    )
    data = models.TextField(blank=True, default="")
    message = models.CharField(max_length=500)
    traceback = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.message
