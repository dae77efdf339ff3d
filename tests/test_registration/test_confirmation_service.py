"""Tests for server-side payment confirmation in association_portal.registration.services.confirmation."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from association_portal.events.models import Event
from association_portal.exceptions import PaymentGatewayError
from association_portal.membership.models import Membership
from association_portal.registration.models import EventRegistration, Payment, RegistrationAuditLog
from association_portal.registration.services.confirmation import (
    DEFAULT_CANCEL_MESSAGE,
    CancelReason,
    ConfirmationStatus,
    PaymentConfirmationService,
    cancel_message,
)

User = get_user_model()

STRIPE_CLIENT = "association_portal.registration.services.confirmation.StripeClient"


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def event(db):
    start = timezone.now() + timedelta(days=10)
    return Event.objects.create(
        title="KYC Masterclass",
        start_date=start,
        end_date=start + timedelta(hours=4),
        price=Decimal("350.00"),
    )


@pytest.fixture
def registration(event):
    return EventRegistration.objects.create(
        event=event,
        reference="REG-CNF001",
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        registration_type=EventRegistration.RegistrationType.NON_MEMBER,
        payment_amount=Decimal("350.00"),
        stripe_payment_intent_id="pi_cnf_1",
        stripe_client_secret="pi_cnf_1_secret_x",
    )


@pytest.fixture
def payment(registration):
    return Payment.objects.create(
        kind=Payment.Kind.EVENT,
        registration=registration,
        method=Payment.Method.STRIPE,
        status=Payment.Status.PENDING,
        amount=Decimal("350.00"),
        currency="BSD",
        stripe_payment_intent_id="pi_cnf_1",
    )


@pytest.fixture
def membership_payment(db):
    user = User.objects.create_user(username="m@example.com", email="m@example.com")
    membership = Membership.objects.create(
        user=user,
        membership_type=Membership.MembershipType.PROFESSIONAL,
        annual_fee=Decimal("250.00"),
        reference="MEM-CNF001",
        stripe_payment_intent_id="pi_mem_1",
    )
    return Payment.objects.create(
        kind=Payment.Kind.MEMBERSHIP,
        membership=membership,
        method=Payment.Method.STRIPE,
        amount=Decimal("250.00"),
        currency="BSD",
        stripe_payment_intent_id="pi_mem_1",
    )


def _intent(status, intent_id="pi_cnf_1", amount=35000, currency="bsd"):
    return MagicMock(id=intent_id, status=status, amount=amount, currency=currency, latest_charge="ch_cnf_1")


# =============================================================================
# TestCancelMessages
# =============================================================================


@pytest.mark.unit
class TestCancelMessages:
    def test_unknown_order_message(self):
        assert cancel_message("unknown_order") == (
            "We could not find this payment. Please contact the association if you completed a payment."
        )

    def test_missing_order_message(self):
        assert cancel_message("missing_order") == "Invalid return link: order reference was missing."

    def test_verification_pending_message(self):
        assert cancel_message("verification_pending").startswith("You were returned from the payment provider")

    def test_unknown_status_message(self):
        assert cancel_message("unknown_status") == "Payment status could not be determined."

    def test_server_error_message(self):
        assert cancel_message("server_error") == (
            "A server error occurred. Please try again or contact the association."
        )

    def test_absent_code_gets_generic_message(self):
        assert cancel_message(None) == DEFAULT_CANCEL_MESSAGE
        assert DEFAULT_CANCEL_MESSAGE == "Your payment was cancelled or could not be completed. No charges were made."

    def test_unrecognised_code_gets_generic_message(self):
        assert cancel_message("card_declined") == DEFAULT_CANCEL_MESSAGE


# =============================================================================
# TestConfirmIntent
# =============================================================================


@pytest.mark.unit
@pytest.mark.django_db
class TestConfirmIntent:
    @patch(STRIPE_CLIENT)
    def test_succeeded_marks_registration_paid(self, mock_stripe_cls, registration, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("succeeded")

        result = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert result.status == ConfirmationStatus.PAID
        assert result.newly_paid is True
        registration.refresh_from_db()
        payment.refresh_from_db()
        assert registration.payment_status == EventRegistration.PaymentStatus.PAID
        assert registration.paid_at is not None
        assert payment.status == Payment.Status.SUCCEEDED
        assert payment.stripe_charge_id == "ch_cnf_1"
        assert registration.audit_log.get().action == RegistrationAuditLog.Action.GATEWAY_CONFIRMED

    @patch(STRIPE_CLIENT)
    def test_always_asks_stripe(self, mock_stripe_cls, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("succeeded")

        PaymentConfirmationService.confirm_intent("pi_cnf_1")

        mock_stripe_cls.return_value.retrieve_payment_intent.assert_called_once_with("pi_cnf_1")

    @patch(STRIPE_CLIENT)
    def test_spoofed_success_does_not_mark_paid(self, mock_stripe_cls, registration, payment):
        # The browser claims success but Stripe still wants a payment method.
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("requires_action")

        result = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert result.status == ConfirmationStatus.PENDING
        assert result.reason == CancelReason.VERIFICATION_PENDING
        registration.refresh_from_db()
        assert registration.payment_status == EventRegistration.PaymentStatus.PENDING
        assert not Payment.objects.filter(status=Payment.Status.SUCCEEDED).exists()

    @patch(STRIPE_CLIENT)
    def test_confirming_twice_pays_exactly_once(self, mock_stripe_cls, registration, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("succeeded")

        first = PaymentConfirmationService.confirm_intent("pi_cnf_1")
        second = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert first.newly_paid is True
        assert second.status == ConfirmationStatus.PAID
        assert second.newly_paid is False
        assert Payment.objects.filter(registration=registration, status=Payment.Status.SUCCEEDED).count() == 1
        assert registration.audit_log.filter(action=RegistrationAuditLog.Action.GATEWAY_CONFIRMED).count() == 1

    @patch(STRIPE_CLIENT)
    def test_amount_mismatch_is_unknown_status(self, mock_stripe_cls, registration, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("succeeded", amount=100)

        result = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert result.reason == CancelReason.UNKNOWN_STATUS
        registration.refresh_from_db()
        assert registration.payment_status == EventRegistration.PaymentStatus.PENDING

    @patch(STRIPE_CLIENT)
    def test_currency_mismatch_is_unknown_status(self, mock_stripe_cls, registration, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("succeeded", currency="usd")

        result = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert result.reason == CancelReason.UNKNOWN_STATUS

    @patch(STRIPE_CLIENT)
    def test_canceled_marks_registration_failed(self, mock_stripe_cls, registration, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("canceled")

        result = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert result.status == ConfirmationStatus.FAILED
        assert result.reason is None
        registration.refresh_from_db()
        payment.refresh_from_db()
        assert registration.payment_status == EventRegistration.PaymentStatus.FAILED
        assert payment.status == Payment.Status.FAILED
        entry = registration.audit_log.get()
        assert entry.action == RegistrationAuditLog.Action.GATEWAY_FAILED
        assert entry.details["intent_status"] == "canceled"

    @patch(STRIPE_CLIENT)
    def test_declined_card_leaves_registration_payable(self, mock_stripe_cls, registration, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("requires_payment_method")

        result = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert result.status == ConfirmationStatus.PENDING
        assert result.reason == CancelReason.VERIFICATION_PENDING
        registration.refresh_from_db()
        payment.refresh_from_db()
        assert registration.payment_status == EventRegistration.PaymentStatus.PENDING
        assert payment.status == Payment.Status.PENDING
        assert not registration.audit_log.exists()

    @patch(STRIPE_CLIENT)
    def test_decline_then_retry_then_success_marks_paid_once(self, mock_stripe_cls, registration, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.side_effect = [
            _intent("requires_payment_method"),
            _intent("succeeded"),
            _intent("succeeded"),
        ]

        declined = PaymentConfirmationService.confirm_intent("pi_cnf_1")
        retried = PaymentConfirmationService.confirm_intent("pi_cnf_1")
        webhook = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert declined.status == ConfirmationStatus.PENDING
        assert retried.newly_paid is True
        assert webhook.is_paid
        assert webhook.newly_paid is False
        assert mock_stripe_cls.return_value.retrieve_payment_intent.call_count == 2
        registration.refresh_from_db()
        assert registration.payment_status == EventRegistration.PaymentStatus.PAID
        assert Payment.objects.filter(registration=registration, status=Payment.Status.SUCCEEDED).count() == 1

    @patch(STRIPE_CLIENT)
    def test_failed_payment_is_asked_about_again(self, mock_stripe_cls, registration, payment):
        Payment.objects.filter(pk=payment.pk).update(status=Payment.Status.FAILED)
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("succeeded")

        result = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert result.newly_paid is True
        mock_stripe_cls.return_value.retrieve_payment_intent.assert_called_once_with("pi_cnf_1")
        payment.refresh_from_db()
        assert payment.status == Payment.Status.SUCCEEDED
        entry = registration.audit_log.get()
        assert entry.action == RegistrationAuditLog.Action.GATEWAY_CONFIRMED
        assert entry.details["recovered_from"] == Payment.Status.FAILED

    @patch(STRIPE_CLIENT)
    def test_success_on_already_paid_registration_is_not_counted_twice(
        self,
        mock_stripe_cls,
        registration,
        payment,
    ):
        EventRegistration.objects.filter(pk=registration.pk).update(
            payment_status=EventRegistration.PaymentStatus.PAID,
        )
        Payment.objects.create(
            kind=Payment.Kind.EVENT,
            registration=registration,
            method=Payment.Method.MANUAL,
            status=Payment.Status.SUCCEEDED,
            amount=Decimal("350.00"),
            currency="BSD",
        )
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("succeeded")

        result = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert result.is_paid
        assert result.newly_paid is False
        payment.refresh_from_db()
        assert payment.status == Payment.Status.PENDING
        assert payment.stripe_charge_id == "ch_cnf_1"
        assert Payment.objects.filter(registration=registration, status=Payment.Status.SUCCEEDED).count() == 1

    @pytest.mark.parametrize("status", ["processing", "requires_action", "requires_confirmation", "requires_capture"])
    @patch(STRIPE_CLIENT)
    def test_in_flight_statuses_stay_pending(self, mock_stripe_cls, status, registration, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent(status)

        result = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert result.reason == CancelReason.VERIFICATION_PENDING
        registration.refresh_from_db()
        assert registration.payment_status == EventRegistration.PaymentStatus.PENDING

    @patch(STRIPE_CLIENT)
    def test_unrecognised_status(self, mock_stripe_cls, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("mystery")

        result = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert result.reason == CancelReason.UNKNOWN_STATUS

    @patch(STRIPE_CLIENT)
    def test_gateway_unreachable_is_verification_pending(self, mock_stripe_cls, registration, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.side_effect = PaymentGatewayError

        result = PaymentConfirmationService.confirm_intent("pi_cnf_1")

        assert result.reason == CancelReason.VERIFICATION_PENDING
        registration.refresh_from_db()
        assert registration.payment_status == EventRegistration.PaymentStatus.PENDING

    def test_missing_intent_id(self, db):
        result = PaymentConfirmationService.confirm_intent("")

        assert result.reason == CancelReason.MISSING_ORDER

    @patch(STRIPE_CLIENT)
    def test_unknown_intent_never_reaches_stripe(self, mock_stripe_cls, db):
        result = PaymentConfirmationService.confirm_intent("pi_not_ours")

        assert result.reason == CancelReason.UNKNOWN_ORDER
        mock_stripe_cls.assert_not_called()

    @patch(STRIPE_CLIENT)
    def test_membership_success_activates_for_a_year(self, mock_stripe_cls, membership_payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent(
            "succeeded",
            intent_id="pi_mem_1",
            amount=25000,
        )

        result = PaymentConfirmationService.confirm_intent("pi_mem_1")

        assert result.is_paid
        membership = Membership.objects.get(pk=membership_payment.membership_id)
        assert membership.status == Membership.Status.ACTIVE
        assert membership.next_payment_date > timezone.now() + timedelta(days=364)

    @patch(STRIPE_CLIENT)
    def test_membership_failure_keeps_membership_pending(self, mock_stripe_cls, membership_payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("canceled", intent_id="pi_mem_1")

        result = PaymentConfirmationService.confirm_intent("pi_mem_1")

        assert result.status == ConfirmationStatus.FAILED
        membership = Membership.objects.get(pk=membership_payment.membership_id)
        assert membership.status == Membership.Status.PENDING


# =============================================================================
# TestConfirmReference
# =============================================================================


@pytest.mark.unit
@pytest.mark.django_db
class TestConfirmReference:
    def test_missing_reference(self):
        assert PaymentConfirmationService.confirm_reference(None).reason == CancelReason.MISSING_ORDER

    def test_unknown_reference(self):
        assert PaymentConfirmationService.confirm_reference("REG-NOPE00").reason == CancelReason.UNKNOWN_ORDER

    @patch(STRIPE_CLIENT)
    def test_verifies_latest_payment_for_reference(self, mock_stripe_cls, registration, payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("succeeded")

        result = PaymentConfirmationService.confirm_reference("REG-CNF001")

        assert result.is_paid
        mock_stripe_cls.return_value.retrieve_payment_intent.assert_called_once_with("pi_cnf_1")

    @patch(STRIPE_CLIENT)
    def test_membership_reference(self, mock_stripe_cls, membership_payment):
        mock_stripe_cls.return_value.retrieve_payment_intent.return_value = _intent("processing", intent_id="pi_mem_1")

        result = PaymentConfirmationService.confirm_reference("MEM-CNF001")

        assert result.reason == CancelReason.VERIFICATION_PENDING

    def test_comp_registration_without_stripe_payment_is_paid(self, registration):
        EventRegistration.objects.filter(pk=registration.pk).update(payment_status=EventRegistration.PaymentStatus.PAID)

        assert PaymentConfirmationService.confirm_reference("REG-CNF001").is_paid


# =============================================================================
# TestMarkRefunded
# =============================================================================


@pytest.mark.unit
@pytest.mark.django_db
class TestMarkRefunded:
    def test_marks_payment_refunded(self, payment):
        Payment.objects.filter(pk=payment.pk).update(status=Payment.Status.SUCCEEDED)

        updated = PaymentConfirmationService.mark_refunded("pi_cnf_1")

        assert updated.status == Payment.Status.REFUNDED

    def test_unknown_intent_returns_none(self):
        assert PaymentConfirmationService.mark_refunded("pi_unknown") is None
