"""Membership model for association-portal."""

from django.conf import settings
from django.db import models
from django.utils import timezone


class Membership(models.Model):
    """A user's standing with the association.

    New applicants start ``PENDING`` and become ``ACTIVE`` once their annual
    fee is confirmed by the payment gateway. Applicants who declare an
    existing membership number are activated straight away.
    """

    class MembershipType(models.TextChoices):
        """Membership classes, each with its own annual fee."""

        ACADEMIC = "academic", "Academic"
        ASSOCIATE = "associate", "Associate"
        PROFESSIONAL = "professional", "Professional"
        BCCP = "bccp", "BCCP"

    class Status(models.TextChoices):
        """Lifecycle states for a membership."""

        PENDING = "pending", "Pending"
        ACTIVE = "active", "Active"
        LAPSED = "lapsed", "Lapsed"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="membership",
    )
    membership_type = models.CharField(
        max_length=20,
        choices=MembershipType.choices,
        default=MembershipType.PROFESSIONAL,
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    annual_fee = models.DecimalField(max_digits=10, decimal_places=2)
    membership_number = models.CharField(max_length=100, blank=True, default="")
    is_existing_member = models.BooleanField(default=False)
    reference = models.CharField(
        max_length=100,
        unique=True,
        help_text='Unique payment reference, e.g. "MEM-A1B2C3".',
    )
    stripe_payment_intent_id = models.CharField(max_length=200, blank=True, default="")
    stripe_client_secret = models.CharField(max_length=300, blank=True, default="")
    join_date = models.DateTimeField(default=timezone.now)
    next_payment_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.user} ({self.membership_type}, {self.status})"

    @property
    def is_active(self) -> bool:
        """Whether the membership is currently in good standing."""
        return self.status == self.Status.ACTIVE
