"""Seat capacity enforcement for events.

A registration holds a seat while it is ``PENDING`` or ``PAID``. A ``FAILED``
registration releases its seat so the place can be taken by someone else.
"""

from django.core.exceptions import ValidationError
from django.db import models

from association_portal.events.models import Event
from association_portal.registration.models import EventRegistration

SEAT_HOLDING_STATUSES: tuple[str, ...] = (
    EventRegistration.PaymentStatus.PENDING,
    EventRegistration.PaymentStatus.PAID,
)


def get_seats_taken(event: Event) -> int:
    """Return the number of registrations currently holding a seat at *event*."""
    return EventRegistration.objects.filter(
        event=event,
        payment_status__in=SEAT_HOLDING_STATUSES,
    ).count()


def get_seats_remaining(event: Event) -> int | None:
    """Return the number of free seats, or ``None`` for unlimited events."""
    if event.max_attendees is None:
        return None
    return max(event.max_attendees - get_seats_taken(event), 0)


def annotate_seats_taken(queryset: models.QuerySet[Event]) -> models.QuerySet[Event]:
    """Annotate each event in *queryset* with a ``seats_taken`` count."""
    return queryset.annotate(
        seats_taken=models.Count(
            "registrations",
            filter=models.Q(registrations__payment_status__in=SEAT_HOLDING_STATUSES),
        ),
    )


def validate_capacity(event: Event) -> Event:
    """Lock *event* and raise ``ValidationError`` if it has no free seats.

    Acquires a row-level lock on the event via ``select_for_update()`` so that
    concurrent registrations are serialized and the last seat cannot be sold
    twice. The caller **must** already be inside a ``transaction.atomic``
    block and must create its registration before the transaction commits.

    Args:
        event: The event to register for.

    Returns:
        The freshly locked ``Event`` row.

    Raises:
        ValidationError: If the event is at capacity.
    """
    locked = Event.objects.select_for_update().get(pk=event.pk)
    if locked.max_attendees is None:
        return locked

    if get_seats_taken(locked) >= locked.max_attendees:
        raise ValidationError("This event is full. No more registrations are being accepted.")
    return locked
