"""Signal receivers that send confirmation emails once a payment is confirmed."""

import logging

from django.dispatch import receiver

from association_portal.membership.models import Membership
from association_portal.registration.emails import send_membership_confirmation, send_registration_confirmation
from association_portal.registration.models import EventRegistration
from association_portal.registration.signals import membership_paid, registration_paid

logger = logging.getLogger(__name__)


@receiver(registration_paid, sender=EventRegistration, dispatch_uid="association_portal.registration_paid_email")
def email_registration_paid(sender: type, registration: EventRegistration, **kwargs: object) -> None:  # noqa: ARG001
    """Send the attendee their confirmation; a mail failure never undoes the payment."""
    try:
        send_registration_confirmation(registration)
    except Exception:
        logger.exception("Failed to send confirmation email for registration %s", registration.reference)


@receiver(membership_paid, sender=Membership, dispatch_uid="association_portal.membership_paid_email")
def email_membership_paid(sender: type, membership: Membership, **kwargs: object) -> None:  # noqa: ARG001
    """Send the member their confirmation."""
    try:
        send_membership_confirmation(membership)
    except Exception:
        logger.exception("Failed to send confirmation email for membership %s", membership.reference)
