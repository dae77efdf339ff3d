"""Staff edits of event registrations.

Metadata edits (membership type, how the attendee paid, CROs, notes) never
touch ``payment_status``. Marking a registration paid or unpaid goes through
the separately audited manual override in
:class:`~association_portal.registration.services.payment.PaymentService`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from django.db import transaction

from association_portal.registration.models import EventRegistration, RegistrationAuditLog
from association_portal.registration.services.payment import PaymentService

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)

METADATA_FIELDS: tuple[str, ...] = ("membership_type", "payment_method_tracking", "cros", "admin_notes")


class RegistrationAdminService:
    """Stateless service behind the admin registration editor."""

    @staticmethod
    @transaction.atomic
    def update(
        registration: EventRegistration,
        changes: Mapping[str, object],
        *,
        staff_user: AbstractBaseUser,
    ) -> EventRegistration:
        """Apply a partial update from a staff user.

        Only keys present in *changes* are applied. ``is_paid`` set to
        ``True`` or ``False`` triggers the manual override or its reversal;
        ``None`` or an absent key leaves the payment state alone.

        Args:
            registration: The registration to edit.
            changes: Cleaned values keyed by field name.
            staff_user: The staff member making the change.

        Returns:
            The refreshed registration.

        Raises:
            ValidationError: If the manual override is not allowed in the
                registration's current state.
        """
        locked = EventRegistration.objects.select_for_update().get(pk=registration.pk)

        diff: dict[str, list[object]] = {}
        for name in METADATA_FIELDS:
            if name not in changes:
                continue
            new_value = changes[name] if changes[name] is not None else ""
            old_value = getattr(locked, name)
            if old_value != new_value:
                diff[name] = [old_value, new_value]
                setattr(locked, name, new_value)

        if diff:
            locked.save(update_fields=[*diff, "updated_at"])
            RegistrationAuditLog.objects.create(
                registration=locked,
                action=RegistrationAuditLog.Action.ADMIN_EDIT,
                actor=staff_user,
                details={"changes": diff},
            )
            logger.info("Registration %s edited by user %s: %s", locked.reference, staff_user.pk, sorted(diff))

        is_paid = changes.get("is_paid")
        if is_paid is True and not locked.is_paid:
            PaymentService.record_manual_override(locked, staff_user=staff_user, note=locked.admin_notes)
        elif is_paid is False and locked.is_paid:
            PaymentService.revert_manual_override(locked, staff_user=staff_user)

        locked.refresh_from_db()
        return locked
