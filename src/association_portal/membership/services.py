"""Membership application service."""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction

from association_portal.membership.models import Membership
from association_portal.registration.services.registration import unique_reference
from association_portal.settings import get_config

logger = logging.getLogger(__name__)

MEMBERSHIP_REFERENCE_PREFIX = "MEM"


class MembershipService:
    """Stateless service for membership applications."""

    @staticmethod
    @transaction.atomic
    def apply(
        *,
        first_name: str,
        last_name: str,
        email: str,
        membership_type: str,
        is_existing_member: bool = False,
        membership_number: str = "",
    ) -> Membership:
        """Create an inactive user account and its membership record.

        New applicants get a ``PENDING`` membership whose fee comes from the
        configured schedule. Applicants who already hold a membership number
        are recorded as ``ACTIVE`` straight away.

        Raises:
            ValidationError: If an account with *email* already exists, or the
                membership type has no configured fee.
        """
        user_model = get_user_model()
        email = user_model.objects.normalize_email(email)
        if user_model.objects.filter(email__iexact=email).exists():
            raise ValidationError({"email": ["An account with this email address already exists."]})

        try:
            annual_fee = get_config().membership_fee(membership_type)
        except KeyError:
            raise ValidationError({"membership_type": ["No fee is configured for this membership type."]}) from None

        user = user_model.objects.create_user(
            username=email,
            email=email,
            first_name=first_name,
            last_name=last_name,
            is_active=False,
        )
        membership = Membership.objects.create(
            user=user,
            membership_type=membership_type,
            status=Membership.Status.ACTIVE if is_existing_member else Membership.Status.PENDING,
            annual_fee=annual_fee,
            is_existing_member=is_existing_member,
            membership_number=membership_number,
            reference=unique_reference(Membership, MEMBERSHIP_REFERENCE_PREFIX),
        )
        logger.info(
            "Membership application %s (%s, %s) for user %s",
            membership.reference,
            membership.membership_type,
            membership.status,
            user.pk,
        )
        return membership
