"""Payment service for event registrations and membership fees.

Handles Stripe PaymentIntent initiation, complimentary confirmation of
zero-priced registrations, and the audited staff override that marks a
registration paid outside the gateway. All methods are stateless and
operate on model instances directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from association_portal.membership.models import Membership
from association_portal.registration.models import EventRegistration, Payment, RegistrationAuditLog
from association_portal.registration.signals import registration_paid
from association_portal.registration.stripe_client import StripeClient
from association_portal.settings import get_config

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentInitiation:
    """What the browser needs to open the Stripe payment widget."""

    client_secret: str
    payment_intent_id: str
    amount: Decimal
    currency: str
    reused: bool = False


def mark_registration_paid(
    registration: EventRegistration,
    payment: Payment,
    *,
    action: str,
    actor: AbstractBaseUser | None = None,
    details: dict[str, object] | None = None,
) -> None:
    """Transition a locked registration to PAID, audit it, and schedule the signal.

    ``registration_paid`` is sent once the surrounding transaction commits.

    Args:
        registration: The registration to mark as paid (must already be locked for update).
        payment: The payment that settled it.
        action: The ``RegistrationAuditLog.Action`` recorded for the transition.
        actor: The staff user behind a manual transition, if any.
        details: Extra audit context.
    """
    previous = registration.payment_status
    registration.payment_status = EventRegistration.PaymentStatus.PAID
    registration.paid_at = timezone.now()
    registration.save(update_fields=["payment_status", "paid_at", "updated_at"])
    RegistrationAuditLog.objects.create(
        registration=registration,
        action=action,
        actor=actor,
        details={"from": previous, "to": registration.payment_status, "payment_id": payment.pk, **(details or {})},
    )
    transaction.on_commit(
        lambda: registration_paid.send(sender=EventRegistration, registration=registration, payment=payment),
    )


class PaymentService:
    """Stateless service for collecting and recording payments."""

    @staticmethod
    @transaction.atomic
    def initiate_for_registration(registration: EventRegistration) -> PaymentInitiation:
        """Create (or reuse) a Stripe PaymentIntent for a pending registration.

        The amount always comes from the stored registration. A registration
        that already has an intent gets the same client secret back so the
        browser can resume the existing payment instead of starting another.

        Args:
            registration: The registration to collect payment for.

        Returns:
            A :class:`PaymentInitiation` for the payment widget.

        Raises:
            ValidationError: If the registration is not pending or nothing is due.
            PaymentGatewayError: If Stripe could not create the intent. No
                local state is changed in that case.
        """
        locked = EventRegistration.objects.select_for_update().select_related("event").get(pk=registration.pk)
        if locked.payment_status != EventRegistration.PaymentStatus.PENDING:
            raise ValidationError(f"Registration is {locked.payment_status}; no payment can be started.")
        if locked.payment_amount <= 0:
            raise ValidationError("No payment is due for this registration.")

        currency = get_config().currency
        if locked.stripe_payment_intent_id and locked.stripe_client_secret:
            return PaymentInitiation(
                client_secret=locked.stripe_client_secret,
                payment_intent_id=locked.stripe_payment_intent_id,
                amount=locked.payment_amount,
                currency=currency,
                reused=True,
            )

        intent = StripeClient().create_payment_intent(
            amount=locked.payment_amount,
            reference=locked.reference,
            kind=Payment.Kind.EVENT,
            object_id=locked.pk,
            description=f"Registration {locked.reference} for {locked.event.title}",
            receipt_email=locked.email,
        )

        locked.stripe_payment_intent_id = intent.id
        locked.stripe_client_secret = intent.client_secret
        locked.save(update_fields=["stripe_payment_intent_id", "stripe_client_secret", "updated_at"])
        Payment.objects.create(
            kind=Payment.Kind.EVENT,
            registration=locked,
            method=Payment.Method.STRIPE,
            status=Payment.Status.PENDING,
            amount=locked.payment_amount,
            currency=currency,
            stripe_payment_intent_id=intent.id,
            description=f"Registration {locked.reference}",
        )

        logger.info("Created PaymentIntent %s for registration %s", intent.id, locked.reference)
        return PaymentInitiation(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            amount=locked.payment_amount,
            currency=currency,
        )

    @staticmethod
    @transaction.atomic
    def initiate_for_membership(membership: Membership) -> PaymentInitiation:
        """Create (or reuse) a Stripe PaymentIntent for a pending membership fee.

        Raises:
            ValidationError: If the membership is not pending.
            PaymentGatewayError: If Stripe could not create the intent.
        """
        locked = Membership.objects.select_for_update().select_related("user").get(pk=membership.pk)
        if locked.status != Membership.Status.PENDING:
            raise ValidationError(f"Membership is {locked.status}; no payment can be started.")

        currency = get_config().currency
        if locked.stripe_payment_intent_id and locked.stripe_client_secret:
            return PaymentInitiation(
                client_secret=locked.stripe_client_secret,
                payment_intent_id=locked.stripe_payment_intent_id,
                amount=locked.annual_fee,
                currency=currency,
                reused=True,
            )

        intent = StripeClient().create_payment_intent(
            amount=locked.annual_fee,
            reference=locked.reference,
            kind=Payment.Kind.MEMBERSHIP,
            object_id=locked.pk,
            description=f"{locked.get_membership_type_display()} membership {locked.reference}",
            receipt_email=locked.user.email,
        )

        locked.stripe_payment_intent_id = intent.id
        locked.stripe_client_secret = intent.client_secret
        locked.save(update_fields=["stripe_payment_intent_id", "stripe_client_secret", "updated_at"])
        Payment.objects.create(
            kind=Payment.Kind.MEMBERSHIP,
            membership=locked,
            method=Payment.Method.STRIPE,
            status=Payment.Status.PENDING,
            amount=locked.annual_fee,
            currency=currency,
            stripe_payment_intent_id=intent.id,
            description=f"Membership {locked.reference}",
        )

        logger.info("Created PaymentIntent %s for membership %s", intent.id, locked.reference)
        return PaymentInitiation(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            amount=locked.annual_fee,
            currency=currency,
        )

    @staticmethod
    @transaction.atomic
    def record_comp(registration: EventRegistration) -> Payment:
        """Confirm a zero-priced registration without involving the gateway.

        Raises:
            ValidationError: If the registration is not pending or has an amount due.
        """
        locked = EventRegistration.objects.select_for_update().get(pk=registration.pk)
        if locked.payment_status != EventRegistration.PaymentStatus.PENDING:
            raise ValidationError(f"Registration is {locked.payment_status}; it cannot be confirmed.")
        if locked.payment_amount != Decimal("0.00"):
            raise ValidationError("Only registrations with nothing due can be confirmed without payment.")

        payment = Payment.objects.create(
            kind=Payment.Kind.EVENT,
            registration=locked,
            method=Payment.Method.COMP,
            status=Payment.Status.SUCCEEDED,
            amount=Decimal("0.00"),
            currency=get_config().currency,
        )
        mark_registration_paid(locked, payment, action=RegistrationAuditLog.Action.COMP_CONFIRMED)
        logger.info("Confirmed complimentary registration %s", locked.reference)
        return payment

    @staticmethod
    @transaction.atomic
    def record_manual_override(
        registration: EventRegistration,
        *,
        staff_user: AbstractBaseUser,
        note: str = "",
    ) -> Payment:
        """Mark a pending registration paid on a staff member's word.

        Used when the attendee paid by cash, cheque or bank transfer. The
        transition is recorded as ``MANUAL_MARK_PAID`` together with the
        acting staff user, so it can never be mistaken for a gateway-verified
        payment.

        Stripe payments still pending on the registration are marked
        ``FAILED`` as superseded. A card payment that completes afterwards is
        kept for staff review instead of being counted as a second payment.

        Raises:
            ValidationError: If the registration is not pending.
        """
        locked = EventRegistration.objects.select_for_update().get(pk=registration.pk)
        if locked.payment_status != EventRegistration.PaymentStatus.PENDING:
            raise ValidationError(f"Registration is {locked.payment_status}; only pending registrations can be marked paid.")

        superseded = locked.payments.filter(method=Payment.Method.STRIPE, status=Payment.Status.PENDING)
        superseded_ids = list(superseded.values_list("pk", flat=True))
        superseded.update(
            status=Payment.Status.FAILED,
            note="Superseded by a manual payment.",
            updated_at=timezone.now(),
        )

        payment = Payment.objects.create(
            kind=Payment.Kind.EVENT,
            registration=locked,
            method=Payment.Method.MANUAL,
            status=Payment.Status.SUCCEEDED,
            amount=locked.payment_amount,
            currency=get_config().currency,
            note=note,
            created_by=staff_user,
        )
        mark_registration_paid(
            locked,
            payment,
            action=RegistrationAuditLog.Action.MANUAL_MARK_PAID,
            actor=staff_user,
            details={
                "payment_method_tracking": locked.payment_method_tracking,
                "superseded_payment_ids": superseded_ids,
            },
        )
        logger.info("Registration %s manually marked paid by user %s", locked.reference, staff_user.pk)
        return payment

    @staticmethod
    @transaction.atomic
    def revert_manual_override(registration: EventRegistration, *, staff_user: AbstractBaseUser) -> None:
        """Undo a manual mark-paid, returning the registration to PENDING.

        Only registrations settled by the manual override can be reverted.
        Gateway-verified payments are final.

        Raises:
            ValidationError: If the registration is not paid, or was paid
                through the gateway or as a complimentary registration.
        """
        locked = EventRegistration.objects.select_for_update().get(pk=registration.pk)
        if locked.payment_status != EventRegistration.PaymentStatus.PAID:
            raise ValidationError("Registration is not marked paid.")

        settled = locked.payments.filter(status=Payment.Status.SUCCEEDED)
        if settled.exclude(method=Payment.Method.MANUAL).exists():
            raise ValidationError("Gateway-verified payments cannot be reverted.")

        reverted = list(settled.values_list("pk", flat=True))
        settled.update(status=Payment.Status.REFUNDED, updated_at=timezone.now())

        locked.payment_status = EventRegistration.PaymentStatus.PENDING
        locked.paid_at = None
        locked.save(update_fields=["payment_status", "paid_at", "updated_at"])
        RegistrationAuditLog.objects.create(
            registration=locked,
            action=RegistrationAuditLog.Action.MANUAL_MARK_UNPAID,
            actor=staff_user,
            details={"from": EventRegistration.PaymentStatus.PAID, "to": locked.payment_status, "payment_ids": reverted},
        )
        logger.info("Manual payment on registration %s reverted by user %s", locked.reference, staff_user.pk)
