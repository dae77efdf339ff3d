"""Server-side payment confirmation.

A registration or membership is only ever marked paid after the portal has
asked Stripe itself for the PaymentIntent's status. Whatever the browser
reports about a payment is never trusted; the browser, the return redirect
and the webhook endpoint all funnel into :class:`PaymentConfirmationService`,
which re-retrieves the intent, checks that the amount matches the stored
record, and applies the transition under row locks.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import timedelta

from django.db import transaction
from django.utils import timezone

from association_portal.exceptions import PaymentGatewayError
from association_portal.membership.models import Membership
from association_portal.registration.models import EventRegistration, Payment, RegistrationAuditLog
from association_portal.registration.services.payment import mark_registration_paid
from association_portal.registration.signals import membership_paid
from association_portal.registration.stripe_client import StripeClient
from association_portal.registration.stripe_utils import amounts_match
from association_portal.settings import get_config

logger = logging.getLogger(__name__)

MEMBERSHIP_TERM = timedelta(days=365)

# Only a canceled intent is final; requires_payment_method follows a decline
# the customer can still retry with the same client secret.
FAILED_INTENT_STATUSES: frozenset[str] = frozenset({"canceled"})
IN_FLIGHT_INTENT_STATUSES: frozenset[str] = frozenset(
    {
        "requires_payment_method",
        "processing",
        "requires_action",
        "requires_confirmation",
        "requires_capture",
    },
)


class CancelReason(enum.StrEnum):
    """Reason codes appended to the cancel URL as ``?error=<code>``."""

    MISSING_ORDER = "missing_order"
    UNKNOWN_ORDER = "unknown_order"
    VERIFICATION_PENDING = "verification_pending"
    UNKNOWN_STATUS = "unknown_status"
    SERVER_ERROR = "server_error"


CANCEL_MESSAGES: dict[str, str] = {
    CancelReason.MISSING_ORDER: "Invalid return link: order reference was missing.",
    CancelReason.UNKNOWN_ORDER: (
        "We could not find this payment. Please contact the association if you completed a payment."
    ),
    CancelReason.VERIFICATION_PENDING: (
        "You were returned from the payment provider, but we couldn't confirm the result. "
        "If you completed payment, your account will be updated shortly. Otherwise, no charges were made."
    ),
    CancelReason.UNKNOWN_STATUS: "Payment status could not be determined.",
    CancelReason.SERVER_ERROR: "A server error occurred. Please try again or contact the association.",
}

DEFAULT_CANCEL_MESSAGE = "Your payment was cancelled or could not be completed. No charges were made."


def cancel_message(code: str | None) -> str:
    """Return the user-facing message for a cancel reason code.

    Unknown or missing codes get the generic cancellation message.
    """
    return CANCEL_MESSAGES.get(code or "", DEFAULT_CANCEL_MESSAGE)


class ConfirmationStatus(enum.StrEnum):
    """Where the confirmed record ended up."""

    PAID = "paid"
    FAILED = "failed"
    PENDING = "pending"


@dataclass(frozen=True, slots=True)
class ConfirmationResult:
    """Outcome of a confirmation attempt.

    ``reason`` is ``None`` for a confirmed payment and for a payment the
    gateway canceled; the remaining outcomes carry a :class:`CancelReason`.
    ``newly_paid`` is ``True`` only for the call that performed the
    ``pending -> paid`` transition.
    """

    status: ConfirmationStatus
    reason: CancelReason | None = None
    payment: Payment | None = None
    newly_paid: bool = False

    @property
    def is_paid(self) -> bool:
        return self.status == ConfirmationStatus.PAID


class PaymentConfirmationService:
    """Stateless service that verifies payments against Stripe."""

    @staticmethod
    def confirm_intent(payment_intent_id: str | None) -> ConfirmationResult:
        """Verify a PaymentIntent with Stripe and apply the outcome.

        Args:
            payment_intent_id: The Stripe PaymentIntent ID to verify.

        Returns:
            A :class:`ConfirmationResult`. Confirming an already-confirmed
            intent returns ``PAID`` without touching the database again.
        """
        if not payment_intent_id:
            return ConfirmationResult(status=ConfirmationStatus.PENDING, reason=CancelReason.MISSING_ORDER)

        payment = Payment.objects.filter(
            stripe_payment_intent_id=payment_intent_id,
            method=Payment.Method.STRIPE,
        ).first()
        if payment is None:
            logger.warning("Confirmation requested for unknown PaymentIntent %s", payment_intent_id)
            return ConfirmationResult(status=ConfirmationStatus.PENDING, reason=CancelReason.UNKNOWN_ORDER)
        return PaymentConfirmationService._verify(payment)

    @staticmethod
    def confirm_reference(reference: str | None) -> ConfirmationResult:
        """Verify the latest Stripe payment of a registration or membership reference.

        Used by the return redirect, which only knows the reference the
        browser was sent back with.
        """
        if not reference:
            return ConfirmationResult(status=ConfirmationStatus.PENDING, reason=CancelReason.MISSING_ORDER)

        payments = Payment.objects.filter(method=Payment.Method.STRIPE).order_by("-created_at", "-pk")
        payment = (
            payments.filter(registration__reference=reference).first()
            or payments.filter(membership__reference=reference).first()
        )
        if payment is None:
            registration = EventRegistration.objects.filter(reference=reference).first()
            if registration is not None and registration.is_paid:
                return ConfirmationResult(status=ConfirmationStatus.PAID)
            logger.warning("Return redirect for unknown reference %s", reference)
            return ConfirmationResult(status=ConfirmationStatus.PENDING, reason=CancelReason.UNKNOWN_ORDER)
        return PaymentConfirmationService._verify(payment)

    @staticmethod
    def _verify(payment: Payment) -> ConfirmationResult:
        if payment.status == Payment.Status.SUCCEEDED:
            return ConfirmationResult(status=ConfirmationStatus.PAID, payment=payment)
        if payment.status == Payment.Status.REFUNDED:
            return ConfirmationResult(status=ConfirmationStatus.PENDING, reason=CancelReason.UNKNOWN_STATUS)

        try:
            intent = StripeClient().retrieve_payment_intent(payment.stripe_payment_intent_id)
        except PaymentGatewayError:
            return ConfirmationResult(
                status=ConfirmationStatus.PENDING,
                reason=CancelReason.VERIFICATION_PENDING,
                payment=payment,
            )

        status = getattr(intent, "status", None)
        if status == "succeeded":
            if getattr(intent, "id", None) != payment.stripe_payment_intent_id or not amounts_match(
                payment.amount,
                getattr(intent, "amount", None),
                getattr(intent, "currency", None),
                payment.currency,
            ):
                logger.warning(
                    "PaymentIntent %s reported %r %r, expected %s %s; refusing to confirm",
                    payment.stripe_payment_intent_id,
                    getattr(intent, "amount", None),
                    getattr(intent, "currency", None),
                    payment.amount,
                    payment.currency,
                )
                return ConfirmationResult(
                    status=ConfirmationStatus.PENDING,
                    reason=CancelReason.UNKNOWN_STATUS,
                    payment=payment,
                )
            return PaymentConfirmationService._apply_success(payment.pk, charge_id=_charge_id(intent))

        if status in FAILED_INTENT_STATUSES:
            return PaymentConfirmationService._apply_failure(payment.pk, intent_status=status)

        if status in IN_FLIGHT_INTENT_STATUSES:
            logger.info("PaymentIntent %s still %s", payment.stripe_payment_intent_id, status)
            return ConfirmationResult(
                status=ConfirmationStatus.PENDING,
                reason=CancelReason.VERIFICATION_PENDING,
                payment=payment,
            )

        logger.warning("PaymentIntent %s has unrecognised status %r", payment.stripe_payment_intent_id, status)
        return ConfirmationResult(status=ConfirmationStatus.PENDING, reason=CancelReason.UNKNOWN_STATUS, payment=payment)

    @staticmethod
    @transaction.atomic
    def _apply_success(payment_pk: int, *, charge_id: str) -> ConfirmationResult:
        registration = _lock_registration_of(payment_pk)
        payment = Payment.objects.select_for_update().get(pk=payment_pk)
        if payment.status == Payment.Status.SUCCEEDED:
            return ConfirmationResult(status=ConfirmationStatus.PAID, payment=payment)
        if payment.status not in (Payment.Status.PENDING, Payment.Status.FAILED):
            logger.warning("Gateway success for payment %s in state %s ignored", payment.pk, payment.status)
            return ConfirmationResult(status=ConfirmationStatus.PENDING, reason=CancelReason.UNKNOWN_STATUS, payment=payment)

        if registration is not None and registration.payment_status != EventRegistration.PaymentStatus.PENDING:
            # Settled elsewhere (or failed); the charge is kept for staff review
            # but never counted as a second succeeded payment.
            payment.stripe_charge_id = charge_id
            payment.save(update_fields=["stripe_charge_id", "updated_at"])
            logger.warning(
                "Registration %s is %s but payment %s succeeded; staff review needed",
                registration.reference,
                registration.payment_status,
                payment.stripe_payment_intent_id,
            )
            if registration.is_paid:
                return ConfirmationResult(status=ConfirmationStatus.PAID, payment=payment)
            return ConfirmationResult(status=ConfirmationStatus.PENDING, reason=CancelReason.UNKNOWN_STATUS, payment=payment)

        previous = payment.status
        payment.status = Payment.Status.SUCCEEDED
        payment.stripe_charge_id = charge_id
        payment.save(update_fields=["status", "stripe_charge_id", "updated_at"])

        if registration is not None:
            details: dict[str, object] = {"payment_intent_id": payment.stripe_payment_intent_id}
            if previous == Payment.Status.FAILED:
                details["recovered_from"] = previous
            mark_registration_paid(
                registration,
                payment,
                action=RegistrationAuditLog.Action.GATEWAY_CONFIRMED,
                details=details,
            )
            logger.info("Registration %s paid via %s", registration.reference, payment.stripe_payment_intent_id)
        else:
            _activate_membership(payment)

        return ConfirmationResult(status=ConfirmationStatus.PAID, payment=payment, newly_paid=True)

    @staticmethod
    @transaction.atomic
    def _apply_failure(payment_pk: int, *, intent_status: str) -> ConfirmationResult:
        registration = _lock_registration_of(payment_pk)
        payment = Payment.objects.select_for_update().get(pk=payment_pk)
        if payment.status == Payment.Status.SUCCEEDED:
            return ConfirmationResult(status=ConfirmationStatus.PAID, payment=payment)
        if payment.status == Payment.Status.PENDING:
            payment.status = Payment.Status.FAILED
            payment.save(update_fields=["status", "updated_at"])

        if registration is not None:
            if registration.payment_status == EventRegistration.PaymentStatus.PENDING:
                registration.payment_status = EventRegistration.PaymentStatus.FAILED
                registration.save(update_fields=["payment_status", "updated_at"])
                RegistrationAuditLog.objects.create(
                    registration=registration,
                    action=RegistrationAuditLog.Action.GATEWAY_FAILED,
                    details={
                        "payment_intent_id": payment.stripe_payment_intent_id,
                        "intent_status": intent_status,
                    },
                )
                logger.info("Registration %s failed (%s)", registration.reference, intent_status)
        else:
            logger.info("Membership payment %s failed (%s)", payment.stripe_payment_intent_id, intent_status)

        return ConfirmationResult(status=ConfirmationStatus.FAILED, payment=payment)

    @staticmethod
    @transaction.atomic
    def mark_refunded(payment_intent_id: str) -> Payment | None:
        """Mark the succeeded Stripe payment for *payment_intent_id* as refunded.

        The registration keeps its ``PAID`` status; refunds are reconciled by
        staff.

        Returns:
            The updated payment, or ``None`` if no matching payment exists.
        """
        payment = (
            Payment.objects.select_for_update()
            .filter(stripe_payment_intent_id=payment_intent_id, method=Payment.Method.STRIPE)
            .first()
        )
        if payment is None:
            logger.warning("Refund received for unknown PaymentIntent %s", payment_intent_id)
            return None
        if payment.status != Payment.Status.REFUNDED:
            payment.status = Payment.Status.REFUNDED
            payment.save(update_fields=["status", "updated_at"])
            logger.info("Payment %s refunded", payment_intent_id)
        return payment


def _charge_id(intent: object) -> str:
    charge = getattr(intent, "latest_charge", None)
    if charge is None:
        return ""
    if isinstance(charge, str):
        return charge
    return str(getattr(charge, "id", "") or "")


def _activate_membership(payment: Payment) -> None:
    membership = Membership.objects.select_for_update().get(pk=payment.membership_id)
    if membership.status == Membership.Status.ACTIVE:
        return
    now = timezone.now()
    membership.status = Membership.Status.ACTIVE
    membership.next_payment_date = now + MEMBERSHIP_TERM
    membership.save(update_fields=["status", "next_payment_date", "updated_at"])
    transaction.on_commit(
        lambda: membership_paid.send(sender=Membership, membership=membership, payment=payment),
    )
    logger.info(
        "Membership %s active until %s (%s %s)",
        membership.reference,
        membership.next_payment_date.date(),
        payment.amount,
        get_config().currency,
    )


def _lock_registration_of(payment_pk: int) -> EventRegistration | None:
    # Registration row before payment row, the order PaymentService locks in.
    registration_id = Payment.objects.values_list("registration_id", flat=True).get(pk=payment_pk)
    if registration_id is None:
        return None
    return EventRegistration.objects.select_for_update().get(pk=registration_id)
