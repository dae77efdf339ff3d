"""Registration service for creating event registrations.

Creates ``PENDING`` registrations with a unique reference and the amount due
computed from the event's price tiers. Capacity is enforced under a row lock
on the event, and a client-supplied idempotency key turns repeated
submissions of the same form into a single registration.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from association_portal.events.models import Event
from association_portal.registration.models import EventRegistration
from association_portal.registration.services.capacity import validate_capacity
from association_portal.settings import get_config

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)

_REFERENCE_ATTEMPTS = 10

ATTENDEE_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "email",
    "company_name",
    "position",
    "phone_number",
    "notes",
)


def generate_reference(prefix: str) -> str:
    """Return a random reference such as ``REG-A1B2C3``."""
    chars = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(chars) for _ in range(6))
    return f"{prefix}-{suffix}"


def unique_reference(model: type, prefix: str) -> str:
    """Generate a reference not yet used by any row of *model*.

    Raises:
        RuntimeError: If no free reference was found after several attempts.
    """
    for _ in range(_REFERENCE_ATTEMPTS):
        candidate = generate_reference(prefix)
        if not model.objects.filter(reference=candidate).exists():
            return candidate
    msg = f"Could not generate a unique {prefix} reference"
    raise RuntimeError(msg)


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    """Outcome of :meth:`RegistrationService.register`."""

    registration: EventRegistration
    created: bool


class RegistrationService:
    """Stateless service for creating event registrations."""

    @staticmethod
    def register(
        event: Event,
        *,
        attendee: dict[str, str],
        registration_type: str,
        user: AbstractBaseUser | None = None,
        idempotency_key: str | None = None,
    ) -> RegistrationResult:
        """Create a ``PENDING`` registration for *event*.

        The amount due is taken from the event's price for
        *registration_type*; nothing submitted by the client affects it.

        Args:
            event: The event to register for.
            attendee: Cleaned attendee details (names, email, company, ...).
            registration_type: ``"member"`` or ``"non_member"``.
            user: The signed-in user, if any.
            idempotency_key: Optional client-generated key. A second call with
                the same key for the same event returns the first registration.

        Returns:
            A :class:`RegistrationResult`; ``created`` is ``False`` when an
            earlier registration was returned for the idempotency key.

        Raises:
            ValidationError: If the event is not accepting registrations, is
                full, or the user is already registered.
        """
        if idempotency_key:
            existing = EventRegistration.objects.filter(event=event, idempotency_key=idempotency_key).first()
            if existing is not None:
                logger.info("Returning existing registration %s for repeated submission", existing.reference)
                return RegistrationResult(registration=existing, created=False)

        try:
            with transaction.atomic():
                registration = RegistrationService._create(
                    event,
                    attendee=attendee,
                    registration_type=registration_type,
                    user=user,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            if not idempotency_key:
                raise
            # Concurrent request with the same key won the insert.
            existing = EventRegistration.objects.get(event=event, idempotency_key=idempotency_key)
            return RegistrationResult(registration=existing, created=False)

        logger.info(
            "Created registration %s for event %s (%s, %s)",
            registration.reference,
            event.pk,
            registration.registration_type,
            registration.payment_amount,
        )
        return RegistrationResult(registration=registration, created=True)

    @staticmethod
    def _create(
        event: Event,
        *,
        attendee: dict[str, str],
        registration_type: str,
        user: AbstractBaseUser | None,
        idempotency_key: str | None,
    ) -> EventRegistration:
        current = Event.objects.select_for_update().get(pk=event.pk)
        if not current.accepts_registrations:
            raise ValidationError("Registration is closed for this event.")
        locked = validate_capacity(current)

        if user is not None and user.is_authenticated:
            already = (
                EventRegistration.objects.filter(event=locked, user=user)
                .exclude(payment_status=EventRegistration.PaymentStatus.FAILED)
                .exists()
            )
            if already:
                raise ValidationError("You are already registered for this event.")

        config = get_config()
        return EventRegistration.objects.create(
            event=locked,
            user=user if user is not None and user.is_authenticated else None,
            reference=unique_reference(EventRegistration, config.registration_reference_prefix),
            idempotency_key=idempotency_key or None,
            registration_type=registration_type,
            payment_amount=locked.price_for(registration_type),
            **{name: attendee.get(name, "") for name in ATTENDEE_FIELDS},
        )
