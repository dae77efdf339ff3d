"""Tests for Stripe webhook handling in association_portal.registration.webhooks."""

import json
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
import stripe as _stripe
from django.test import RequestFactory, override_settings
from django.utils import timezone

from association_portal.events.models import Event
from association_portal.registration.models import (
    EventProcessingException,
    EventRegistration,
    Payment,
    StripeEvent,
)
from association_portal.registration.services.confirmation import (
    CancelReason,
    ConfirmationResult,
    ConfirmationStatus,
)
from association_portal.registration.webhooks import (
    ChargeDisputeCreatedWebhook,
    ChargeRefundedWebhook,
    PaymentIntentPaymentFailedWebhook,
    PaymentIntentSucceededWebhook,
    Webhook,
    WebhookRegistry,
    _event_data_object,
    registry,
    stripe_webhook,
)

CONFIRM_INTENT = "association_portal.registration.webhooks.PaymentConfirmationService.confirm_intent"
CONSTRUCT_EVENT = "association_portal.registration.webhooks.stripe.Webhook.construct_event"


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def request_factory():
    return RequestFactory()


@pytest.fixture
def registration(db):
    start = timezone.now() + timedelta(days=5)
    event = Event.objects.create(
        title="Webhook Seminar",
        start_date=start,
        end_date=start + timedelta(hours=2),
        price=Decimal("100.00"),
    )
    return EventRegistration.objects.create(
        event=event,
        reference="REG-WH0001",
        first_name="Web",
        last_name="Hook",
        email="wh@example.com",
        registration_type=EventRegistration.RegistrationType.NON_MEMBER,
        payment_amount=Decimal("100.00"),
    )


@pytest.fixture
def payment(registration):
    return Payment.objects.create(
        kind=Payment.Kind.EVENT,
        registration=registration,
        method=Payment.Method.STRIPE,
        status=Payment.Status.SUCCEEDED,
        amount=Decimal("100.00"),
        stripe_payment_intent_id="pi_wh_001",
    )


def _payload(event_id="evt_test_123", kind="payment_intent.succeeded", obj=None):
    return {
        "id": event_id,
        "type": kind,
        "livemode": False,
        "data": {"object": obj if obj is not None else {"id": "pi_wh_001", "amount": 10000, "customer": "cus_1"}},
        "api_version": "2024-12-18.acacia",
    }


def _stripe_event(kind="payment_intent.succeeded", obj=None, stripe_id="evt_unit_1"):
    return StripeEvent.objects.create(stripe_id=stripe_id, kind=kind, payload=_payload(stripe_id, kind, obj))


# =============================================================================
# TestWebhookRegistry
# =============================================================================


@pytest.mark.unit
class TestWebhookRegistry:
    def test_register_and_get(self):
        reg = WebhookRegistry()
        reg.register("test.event", Webhook)

        assert reg.get("test.event") is Webhook
        assert reg.get("missing") is None
        assert reg.keys() == ["test.event"]

    def test_module_registry_has_expected_handlers(self):
        assert registry.get("payment_intent.succeeded") is PaymentIntentSucceededWebhook
        assert registry.get("payment_intent.payment_failed") is PaymentIntentPaymentFailedWebhook
        assert registry.get("charge.refunded") is ChargeRefundedWebhook
        assert registry.get("charge.dispute.created") is ChargeDisputeCreatedWebhook


# =============================================================================
# TestWebhookBase
# =============================================================================


@pytest.mark.unit
@pytest.mark.django_db
class TestWebhookBase:
    def test_already_processed_event_is_skipped(self):
        event = _stripe_event()
        event.processed = True
        event.save()

        with patch.object(Webhook, "process_webhook") as mock_process:
            Webhook(event).process()
        mock_process.assert_not_called()

    def test_exception_creates_processing_exception_record(self):
        event = _stripe_event()

        with patch.object(Webhook, "process_webhook", side_effect=RuntimeError("handler blew up")):
            with pytest.raises(RuntimeError):
                Webhook(event).process()

        record = EventProcessingException.objects.get(event=event)
        assert "handler blew up" in record.message
        assert "Traceback" in record.traceback
        event.refresh_from_db()
        assert event.processed is False

    def test_event_data_object_tolerates_bad_payloads(self):
        event = StripeEvent.objects.create(stripe_id="evt_bad", kind="x", payload={"data": "nope"})

        assert _event_data_object(event) == {}


# =============================================================================
# TestPaymentIntentHandlers
# =============================================================================


@pytest.mark.unit
@pytest.mark.django_db
class TestPaymentIntentHandlers:
    def test_succeeded_reverifies_through_confirmation_service(self):
        event = _stripe_event()

        with patch(CONFIRM_INTENT, return_value=ConfirmationResult(status=ConfirmationStatus.PAID)) as mock_confirm:
            PaymentIntentSucceededWebhook(event).process()

        mock_confirm.assert_called_once_with("pi_wh_001")
        event.refresh_from_db()
        assert event.processed is True

    def test_failed_reverifies_through_confirmation_service(self):
        event = _stripe_event(
            kind="payment_intent.payment_failed",
            obj={"id": "pi_wh_002", "last_payment_error": {"message": "Your card was declined."}},
        )

        with patch(CONFIRM_INTENT, return_value=ConfirmationResult(status=ConfirmationStatus.FAILED)) as mock_confirm:
            PaymentIntentPaymentFailedWebhook(event).process()

        mock_confirm.assert_called_once_with("pi_wh_002")

    def test_unknown_intent_is_still_marked_processed(self):
        event = _stripe_event()
        result = ConfirmationResult(status=ConfirmationStatus.PENDING, reason=CancelReason.UNKNOWN_ORDER)

        with patch(CONFIRM_INTENT, return_value=result):
            PaymentIntentSucceededWebhook(event).process()

        event.refresh_from_db()
        assert event.processed is True


# =============================================================================
# TestChargeHandlers
# =============================================================================


@pytest.mark.unit
@pytest.mark.django_db
class TestChargeHandlers:
    def test_full_refund_marks_payment_refunded(self, payment):
        event = _stripe_event(
            kind="charge.refunded",
            obj={"id": "ch_1", "payment_intent": "pi_wh_001", "amount": 10000, "amount_refunded": 10000},
        )

        ChargeRefundedWebhook(event).process()

        payment.refresh_from_db()
        assert payment.status == Payment.Status.REFUNDED

    def test_partial_refund_leaves_payment_alone(self, payment):
        event = _stripe_event(
            kind="charge.refunded",
            obj={"id": "ch_1", "payment_intent": "pi_wh_001", "amount": 10000, "amount_refunded": 2500},
        )

        ChargeRefundedWebhook(event).process()

        payment.refresh_from_db()
        assert payment.status == Payment.Status.SUCCEEDED

    def test_dispute_is_logged(self, caplog):
        event = _stripe_event(
            kind="charge.dispute.created",
            obj={"id": "dp_1", "charge": "ch_1", "amount": 10000, "reason": "fraudulent"},
        )

        with caplog.at_level("WARNING", logger="association_portal.registration.webhooks"):
            ChargeDisputeCreatedWebhook(event).process()

        assert "dp_1" in caplog.text
        event.refresh_from_db()
        assert event.processed is True


# =============================================================================
# TestStripeWebhookView
# =============================================================================


@pytest.mark.unit
@pytest.mark.django_db
class TestStripeWebhookView:
    def _make_request(self, factory, payload=None, sig="t=123,v1=abc"):
        body = json.dumps(payload if payload is not None else _payload())
        request = factory.post("/webhook/", data=body, content_type="application/json")
        request.META["HTTP_STRIPE_SIGNATURE"] = sig
        return request

    def test_rejects_get(self, request_factory):
        response = stripe_webhook(request_factory.get("/webhook/"))

        assert response.status_code == 405

    def test_no_webhook_secret_returns_200_without_storing(self, request_factory):
        with override_settings(ASSOCIATION_PORTAL={"stripe": {"secret_key": "sk_test_x"}}):
            response = stripe_webhook(self._make_request(request_factory))

        assert response.status_code == 200
        assert not StripeEvent.objects.exists()

    @patch(CONSTRUCT_EVENT, side_effect=_stripe.SignatureVerificationError("bad sig", "t=1,v1=x"))
    def test_invalid_signature_returns_200_without_storing(self, mock_construct, request_factory):
        response = stripe_webhook(self._make_request(request_factory))

        assert response.status_code == 200
        assert not StripeEvent.objects.exists()

    @patch(CONSTRUCT_EVENT)
    def test_verifies_with_configured_secret_and_tolerance(self, mock_construct, request_factory):
        with patch(CONFIRM_INTENT, return_value=ConfirmationResult(status=ConfirmationStatus.PAID)):
            stripe_webhook(self._make_request(request_factory))

        args, kwargs = mock_construct.call_args
        assert args[1] == "t=123,v1=abc"
        assert args[2] == "whsec_test_portal"
        assert kwargs["tolerance"] == 300

    @patch(CONSTRUCT_EVENT)
    def test_persists_and_dispatches_event(self, mock_construct, request_factory):
        with patch(CONFIRM_INTENT, return_value=ConfirmationResult(status=ConfirmationStatus.PAID)) as mock_confirm:
            response = stripe_webhook(self._make_request(request_factory))

        assert response.status_code == 200
        stored = StripeEvent.objects.get(stripe_id="evt_test_123")
        assert stored.kind == "payment_intent.succeeded"
        assert stored.customer_id == "cus_1"
        assert stored.processed is True
        mock_confirm.assert_called_once_with("pi_wh_001")

    @patch(CONSTRUCT_EVENT)
    def test_duplicate_event_is_not_reprocessed(self, mock_construct, request_factory):
        StripeEvent.objects.create(stripe_id="evt_test_123", kind="payment_intent.succeeded")

        with patch(CONFIRM_INTENT) as mock_confirm:
            response = stripe_webhook(self._make_request(request_factory))

        assert response.status_code == 200
        mock_confirm.assert_not_called()
        assert StripeEvent.objects.filter(stripe_id="evt_test_123").count() == 1

    @patch(CONSTRUCT_EVENT)
    def test_unregistered_kind_is_stored_and_acknowledged(self, mock_construct, request_factory):
        response = stripe_webhook(self._make_request(request_factory, _payload(kind="customer.created", obj={})))

        assert response.status_code == 200
        assert StripeEvent.objects.get(stripe_id="evt_test_123").processed is False

    @patch(CONSTRUCT_EVENT)
    def test_handler_failure_still_returns_200(self, mock_construct, request_factory):
        with patch(CONFIRM_INTENT, side_effect=RuntimeError("db gone")):
            response = stripe_webhook(self._make_request(request_factory))

        assert response.status_code == 200
        assert EventProcessingException.objects.count() == 1
