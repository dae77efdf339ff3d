"""Event model for association-portal."""

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils.text import slugify


class Event(models.Model):
    """An association event (seminar, workshop, conference) open for registration.

    Events are published through a public slug. They are never hard-deleted:
    retiring an event sets ``status`` to ``CANCELLED``, which also removes it
    from the public catalog.
    """

    class Status(models.TextChoices):
        """Lifecycle states for an event."""

        UPCOMING = "upcoming", "Upcoming"
        ONGOING = "ongoing", "Ongoing"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    title = models.CharField(max_length=300)
    slug = models.SlugField(max_length=300, unique=True, blank=True)
    description = models.TextField(blank=True, default="")
    location = models.CharField(max_length=300, blank=True, default="")
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    member_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Price for association members. Falls back to price when empty.",
    )
    non_member_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Price for non-members. Falls back to price when empty.",
    )
    max_attendees = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Maximum number of registrations. Empty means unlimited.",
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.UPCOMING,
    )
    is_public = models.BooleanField(default=True)
    registration_closed = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_events",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["start_date", "title"]

    def __str__(self) -> str:
        return self.title

    def clean(self) -> None:
        """Reject schedule windows that end before they start."""
        super().clean()
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({"end_date": "The event cannot end before it starts."})

    def save(self, *args: object, **kwargs: object) -> None:
        """Generate a unique slug from the title when none is set."""
        if not self.slug:
            self.slug = self._unique_slug()
        super().save(*args, **kwargs)

    def _unique_slug(self) -> str:
        base = slugify(self.title)[:280] or "event"
        candidate = base
        suffix = 2
        while Event.objects.filter(slug=candidate).exclude(pk=self.pk).exists():
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    @property
    def is_published(self) -> bool:
        """Whether the event is visible in the public catalog."""
        return self.is_public and self.status != self.Status.CANCELLED

    @property
    def accepts_registrations(self) -> bool:
        """Whether new registrations may be submitted (capacity aside)."""
        return (
            self.is_published
            and not self.registration_closed
            and self.status in (self.Status.UPCOMING, self.Status.ONGOING)
        )

    def price_for(self, registration_type: str) -> Decimal:
        """Return the amount due for a registration tier.

        Args:
            registration_type: ``"member"`` or ``"non_member"``.

        Returns:
            The tier price, or the list ``price`` when the tier has none.
        """
        if registration_type == "member" and self.member_price is not None:
            return self.member_price
        if registration_type == "non_member" and self.non_member_price is not None:
            return self.non_member_price
        return self.price
