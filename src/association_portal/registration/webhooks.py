"""Stripe webhook handling for the registration app.

Provides a registry-based dispatch system for processing Stripe webhook events.
Each event kind (e.g. ``payment_intent.succeeded``) maps to a handler class that
encapsulates idempotent processing and error capture.

Payment events never trust the amounts or statuses in the payload: they hand
the intent id to
:class:`~association_portal.registration.services.confirmation.PaymentConfirmationService`,
which re-retrieves the intent from Stripe before changing anything.

Usage in URL configuration::

    from association_portal.registration.webhooks import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook),
    ]
"""

from __future__ import annotations

import json
import logging
import traceback
from typing import TYPE_CHECKING

import stripe
from django.http import HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from association_portal.registration.models import EventProcessingException, StripeEvent
from association_portal.registration.services.confirmation import CancelReason, PaymentConfirmationService
from association_portal.settings import get_config

if TYPE_CHECKING:
    from django.http import HttpRequest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class WebhookRegistry:
    """Registry mapping Stripe event kinds to handler classes."""

    def __init__(self) -> None:
        self._registry: dict[str, type[Webhook]] = {}

    def register(self, kind: str, handler_class: type[Webhook]) -> None:
        """Register a handler class for a Stripe event kind."""
        self._registry[kind] = handler_class

    def get(self, kind: str) -> type[Webhook] | None:
        """Return the handler class for a given event kind, or ``None``."""
        return self._registry.get(kind)

    def keys(self) -> list[str]:
        """Return all registered event kinds."""
        return list(self._registry.keys())


registry = WebhookRegistry()


# ---------------------------------------------------------------------------
# Base handler
# ---------------------------------------------------------------------------


class Webhook:
    """Base class for Stripe webhook event handlers.

    Subclasses set ``name`` to the Stripe event kind they handle and implement
    ``process_webhook()``. ``process()`` wraps it in the already-processed
    check and exception capture.

    Attributes:
        name: The Stripe event kind this handler processes.
        event: The ``StripeEvent`` model instance being handled.
    """

    name: str = ""

    def __init__(self, event: StripeEvent) -> None:
        self.event = event

    def process(self) -> None:
        """Run the handler, marking the event processed on success.

        On failure the traceback is captured to ``EventProcessingException``
        and the exception re-raised.
        """
        if self.event.processed:
            logger.info("Event %s already processed, skipping", self.event.stripe_id)
            return

        try:
            self.process_webhook()
            self.event.processed = True
            self.event.save(update_fields=["processed"])
        except Exception:
            self.log_exception()
            raise

    def process_webhook(self) -> None:
        raise NotImplementedError

    def log_exception(self) -> None:
        """Capture the current exception to ``EventProcessingException``."""
        tb = traceback.format_exc()
        logger.error("Error processing webhook %s (event %s): %s", self.name, self.event.stripe_id, tb)
        EventProcessingException.objects.create(
            event=self.event,
            data=json.dumps(self.event.payload, default=str),
            message=tb.strip().splitlines()[-1][:500] if tb.strip() else "Unknown error",
            traceback=tb,
        )


def _event_data_object(event: StripeEvent) -> dict[str, object]:
    """Extract the ``data.object`` dict from a StripeEvent payload."""
    payload = event.payload
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, dict):
            obj = data.get("object")
            if isinstance(obj, dict):
                return obj
    return {}


# ---------------------------------------------------------------------------
# Concrete handlers
# ---------------------------------------------------------------------------


class PaymentIntentWebhook(Webhook):
    """Shared handling for ``payment_intent.*`` events.

    The confirmation service re-queries Stripe, so the same code path serves
    both success and failure notifications.
    """

    def process_webhook(self) -> None:
        """Re-verify the intent and apply whatever Stripe reports now."""
        intent_id = str(_event_data_object(self.event).get("id", "") or "")
        result = PaymentConfirmationService.confirm_intent(intent_id)

        if result.reason == CancelReason.UNKNOWN_ORDER:
            logger.info("Webhook %s for PaymentIntent %s not created by this portal", self.name, intent_id)
        elif result.reason is not None:
            logger.warning("Webhook %s for PaymentIntent %s left pending: %s", self.name, intent_id, result.reason)
        else:
            logger.info("Webhook %s for PaymentIntent %s: %s", self.name, intent_id, result.status)


class PaymentIntentSucceededWebhook(PaymentIntentWebhook):
    """Handles ``payment_intent.succeeded`` events."""

    name = "payment_intent.succeeded"


class PaymentIntentPaymentFailedWebhook(PaymentIntentWebhook):
    """Handles ``payment_intent.payment_failed`` events."""

    name = "payment_intent.payment_failed"

    def process_webhook(self) -> None:
        """Log Stripe's decline reason, then re-verify the intent."""
        intent = _event_data_object(self.event)
        error = intent.get("last_payment_error")
        reason = "No error details"
        if isinstance(error, dict):
            msg = error.get("message")
            reason = str(msg) if isinstance(msg, str) else "Unknown error"
        logger.warning("Payment failed for intent %s: %s", intent.get("id"), reason)
        super().process_webhook()


class ChargeRefundedWebhook(Webhook):
    """Handles ``charge.refunded`` events.

    Full refunds mark the payment ``REFUNDED``. Partial refunds are only
    logged for staff to reconcile.
    """

    name = "charge.refunded"

    def process_webhook(self) -> None:
        """Update the payment status when the whole charge was refunded."""
        charge = _event_data_object(self.event)
        intent_id = str(charge.get("payment_intent", "") or "")
        amount_refunded = int(charge.get("amount_refunded", 0) or 0)
        amount = int(charge.get("amount", 0) or 0)

        if amount_refunded < amount:
            logger.warning(
                "Partial refund of %s/%s on payment_intent %s; staff review needed",
                amount_refunded,
                amount,
                intent_id,
            )
            return

        PaymentConfirmationService.mark_refunded(intent_id)


class ChargeDisputeCreatedWebhook(Webhook):
    """Handles ``charge.dispute.created`` events.

    Logs the dispute for manual review. No automated actions are taken.
    """

    name = "charge.dispute.created"

    def process_webhook(self) -> None:
        """Log the dispute details."""
        dispute = _event_data_object(self.event)
        logger.warning(
            "Stripe dispute created: id=%s, charge=%s, amount=%s, reason=%s",
            dispute.get("id"),
            dispute.get("charge"),
            dispute.get("amount"),
            dispute.get("reason"),
        )


# ---------------------------------------------------------------------------
# Handler registration
# ---------------------------------------------------------------------------

registry.register("payment_intent.succeeded", PaymentIntentSucceededWebhook)
registry.register("payment_intent.payment_failed", PaymentIntentPaymentFailedWebhook)
registry.register("charge.refunded", ChargeRefundedWebhook)
registry.register("charge.dispute.created", ChargeDisputeCreatedWebhook)


# ---------------------------------------------------------------------------
# Webhook endpoint view
# ---------------------------------------------------------------------------


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """Receive and process Stripe webhook events.

    Verifies the event signature against the configured webhook secret,
    deduplicates by Stripe event ID, persists the raw event, and dispatches
    to the registered handler.

    Always returns HTTP 200 to acknowledge receipt, even when processing
    fails. Errors are logged and captured to ``EventProcessingException``.
    """
    payload = request.body
    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")

    config = get_config()
    webhook_secret = config.stripe.webhook_secret
    if not webhook_secret:
        logger.error("Stripe webhook received but no webhook secret is configured")
        return HttpResponse(status=200)

    try:
        stripe.Webhook.construct_event(
            payload,
            sig_header,
            str(webhook_secret),
            tolerance=config.stripe.webhook_tolerance,
        )
        event = json.loads(payload)
    except (stripe.SignatureVerificationError, ValueError):
        logger.warning("Invalid Stripe webhook payload or signature")
        return HttpResponse(status=200)

    stripe_id = event["id"]
    kind = event["type"]

    if StripeEvent.objects.filter(stripe_id=stripe_id).exists():
        logger.info("Duplicate Stripe event %s, returning 200", stripe_id)
        return HttpResponse(status=200)

    customer_id = ""
    data_object = event.get("data", {}).get("object", {})
    if isinstance(data_object, dict):
        customer_id = data_object.get("customer", "") or ""

    stripe_event = StripeEvent.objects.create(
        stripe_id=stripe_id,
        kind=kind,
        livemode=bool(event.get("livemode", False)),
        payload=event,
        customer_id=str(customer_id),
        api_version=event.get("api_version", "") or "",
    )

    handler_class = registry.get(kind)
    if handler_class is None:
        logger.info("No handler registered for event kind '%s'", kind)
        return HttpResponse(status=200)

    try:
        handler = handler_class(stripe_event)
        handler.process()
    except Exception:
        logger.exception("Error processing Stripe event %s (kind=%s)", stripe_id, kind)

    return HttpResponse(status=200)
