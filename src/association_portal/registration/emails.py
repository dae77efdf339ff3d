"""Confirmation emails sent after a payment is verified.

Messages go out through Django's configured email backend with a plain-text
body and an HTML alternative.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.mail import send_mail
from django.utils.html import format_html, format_html_join

from association_portal.settings import get_config

if TYPE_CHECKING:
    from association_portal.membership.models import Membership
    from association_portal.registration.models import EventRegistration

logger = logging.getLogger(__name__)


def _html_body(heading: str, greeting: str, lead: str, rows: list[tuple[str, str]], footer: str) -> str:
    details = format_html_join("", "<p><strong>{}:</strong> {}</p>", rows)
    return format_html(
        "<h2>{}</h2><p>{}</p><p>{}</p><div>{}</div><hr><p><small>{}<br>"
        "This is an automated message, please do not reply to this email.</small></p>",
        heading,
        greeting,
        lead,
        details,
        footer,
    )


def send_registration_confirmation(registration: EventRegistration) -> bool:
    """Email the attendee that their event registration is confirmed.

    Returns:
        ``True`` if a message was handed to the email backend, ``False`` when
        confirmation emails are disabled.
    """
    config = get_config()
    if not config.email.enabled:
        return False

    event = registration.event
    rows = [
        ("Event", event.title),
        ("Date", event.start_date.strftime("%A, %B %d, %Y")),
    ]
    if event.location:
        rows.append(("Location", event.location))
    rows.append(("Registration Type", registration.get_registration_type_display()))
    rows.append(("Reference", registration.reference))

    greeting = f"Hello {registration.full_name},"
    lead = f"Your registration for {event.title} has been confirmed."
    text = "\n".join(
        [
            greeting,
            "",
            lead,
            "",
            *(f"{label}: {value}" for label, value in rows),
            "",
            "We look forward to seeing you at the event!",
            "",
            config.email.organization_name,
        ],
    )

    send_mail(
        subject=f"Registration Confirmed: {event.title}",
        message=text,
        from_email=config.email.from_email or settings.DEFAULT_FROM_EMAIL,
        recipient_list=[registration.email],
        html_message=_html_body("Event Registration Confirmed", greeting, lead, rows, config.email.organization_name),
    )
    logger.info("Sent registration confirmation for %s", registration.reference)
    return True


def send_membership_confirmation(membership: Membership) -> bool:
    """Email the member that their membership fee was received.

    Returns:
        ``True`` if a message was handed to the email backend.
    """
    config = get_config()
    if not config.email.enabled:
        return False

    user = membership.user
    rows = [
        ("Membership Type", membership.get_membership_type_display()),
        ("Annual Fee", f"{config.currency_symbol}{membership.annual_fee} {config.currency}"),
        ("Reference", membership.reference),
    ]
    if membership.next_payment_date:
        rows.append(("Next Renewal", membership.next_payment_date.strftime("%B %d, %Y")))

    greeting = f"Hello {user.get_full_name() or user.email},"
    lead = f"Welcome to the {config.email.organization_name}. Your membership is now active."
    text = "\n".join(
        [greeting, "", lead, "", *(f"{label}: {value}" for label, value in rows), "", config.email.organization_name],
    )

    send_mail(
        subject="Membership Confirmed",
        message=text,
        from_email=config.email.from_email or settings.DEFAULT_FROM_EMAIL,
        recipient_list=[user.email],
        html_message=_html_body("Membership Confirmed", greeting, lead, rows, config.email.organization_name),
    )
    logger.info("Sent membership confirmation for %s", membership.reference)
    return True
