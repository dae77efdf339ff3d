"""Stripe client wrapper for the portal's PaymentIntent operations.

The association has a single Stripe account whose keys live in
``ASSOCIATION_PORTAL["stripe"]``. The client uses the modern
``stripe.StripeClient`` pattern (v1 namespace) for all API calls and turns
transport and API failures into :class:`~association_portal.exceptions.PaymentGatewayError`
so callers never see raw Stripe exceptions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import stripe

from association_portal.exceptions import PaymentGatewayError
from association_portal.registration.stripe_utils import convert_amount_for_api, obfuscate_key
from association_portal.settings import get_config

if TYPE_CHECKING:
    from decimal import Decimal

logger = logging.getLogger(__name__)


class StripeClient:
    """Portal-wide Stripe API client.

    Wraps ``stripe.StripeClient`` (v1 namespace) and binds every call to the
    configured secret key and API version.

    Raises:
        ValueError: If no Stripe secret key is configured.
    """

    def __init__(self) -> None:
        config = get_config()
        raw_key = config.stripe.secret_key
        if not raw_key:
            msg = (
                "Stripe is not configured. Set ASSOCIATION_PORTAL['stripe']['secret_key'] "
                "before initializing StripeClient."
            )
            raise ValueError(msg)

        self.currency = config.currency
        self.client = stripe.StripeClient(
            str(raw_key),
            stripe_version=config.stripe.api_version,
        )

        logger.info("Initialized StripeClient with key %s", obfuscate_key(str(raw_key)))

    def create_payment_intent(
        self,
        *,
        amount: Decimal,
        reference: str,
        kind: str,
        object_id: int,
        description: str,
        receipt_email: str = "",
    ) -> stripe.PaymentIntent:
        """Create a Stripe PaymentIntent for a stored amount.

        The idempotency key combines the record reference with the amount in
        minor units, so retried requests for the same record and amount
        return the same intent instead of creating a second charge.

        Args:
            amount: The amount due, read from the local record.
            reference: The registration or membership reference.
            kind: ``"event"`` or ``"membership"``; stored in the intent metadata.
            object_id: Primary key of the local record.
            description: Human-readable description shown in the Stripe dashboard.
            receipt_email: Optional address Stripe sends its receipt to.

        Returns:
            The created ``stripe.PaymentIntent``.

        Raises:
            PaymentGatewayError: If Stripe is unreachable, rejects the request,
                or returns an intent without a client secret.
        """
        minor_amount = convert_amount_for_api(amount, self.currency)
        params: dict[str, object] = {
            "amount": minor_amount,
            "currency": self.currency.lower(),
            "automatic_payment_methods": {"enabled": True},
            "metadata": {
                "kind": kind,
                "object_id": str(object_id),
                "reference": reference,
            },
            "description": description,
        }
        if receipt_email:
            params["receipt_email"] = receipt_email

        try:
            intent = self.client.v1.payment_intents.create(
                params=params,
                options={"idempotency_key": f"{reference}-{minor_amount}"},
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe rejected PaymentIntent creation for %s: %s", reference, exc)
            raise PaymentGatewayError from exc

        if not intent.client_secret:
            logger.error("Stripe returned no client_secret for %s (intent %s)", reference, intent.id)
            raise PaymentGatewayError
        return intent

    def retrieve_payment_intent(self, intent_id: str) -> stripe.PaymentIntent:
        """Fetch the current state of a PaymentIntent from Stripe.

        Args:
            intent_id: The Stripe PaymentIntent ID.

        Raises:
            PaymentGatewayError: If the intent could not be retrieved.
        """
        try:
            return self.client.v1.payment_intents.retrieve(intent_id)
        except stripe.StripeError as exc:
            logger.warning("Could not retrieve PaymentIntent %s: %s", intent_id, exc)
            raise PaymentGatewayError from exc
