"""Views for event registration and payment.

Registration creates a pending record; payment initiation hands the browser a
Stripe client secret; confirmation, the return redirect and the cancel page
report the verified outcome. None of these endpoints accept a payment status
from the client.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from django.db.models import QuerySet
from django.http import Http404, HttpResponseRedirect, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.crypto import constant_time_compare

from association_portal.api import JSONView, error_response, validate_form
from association_portal.events.models import Event
from association_portal.exceptions import AuthenticationRequired
from association_portal.membership.models import Membership
from association_portal.registration.forms import ConfirmPaymentForm, PaymentIntentForm, RegistrationForm
from association_portal.registration.models import EventRegistration
from association_portal.registration.services.confirmation import (
    CancelReason,
    ConfirmationStatus,
    PaymentConfirmationService,
    cancel_message,
)
from association_portal.registration.services.payment import PaymentService
from association_portal.registration.services.registration import ATTENDEE_FIELDS, RegistrationService
from association_portal.settings import get_config

if TYPE_CHECKING:
    from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

_REASON_STATUS: dict[CancelReason, int] = {
    CancelReason.MISSING_ORDER: 400,
    CancelReason.UNKNOWN_ORDER: 404,
    CancelReason.VERIFICATION_PENDING: 202,
    CancelReason.UNKNOWN_STATUS: 409,
    CancelReason.SERVER_ERROR: 500,
}


def serialize_registration(registration: EventRegistration) -> dict[str, object]:
    """Return the attendee-facing JSON representation of a registration."""
    return {
        "id": registration.pk,
        "reference": registration.reference,
        "event_id": registration.event_id,
        "first_name": registration.first_name,
        "last_name": registration.last_name,
        "email": registration.email,
        "company_name": registration.company_name,
        "position": registration.position,
        "phone_number": registration.phone_number,
        "registration_type": registration.registration_type,
        "payment_status": registration.payment_status,
        "amount_due": registration.payment_amount,
        "currency": get_config().currency,
        "paid_at": registration.paid_at,
        "created_at": registration.created_at,
    }


class BaseRegisterView(JSONView):
    """Shared POST handler for registering by event id or by slug."""

    required_feature = "registration"

    def get_event(self, **kwargs: object) -> Event:
        raise NotImplementedError

    def post(self, request: HttpRequest, **kwargs: object) -> JsonResponse:
        """Create a pending registration and return its reference and amount due."""
        event = self.get_event(**kwargs)
        if not event.is_published:
            return error_response(404, "Event not found")

        form = RegistrationForm(data=self.parse_json(request))
        data = validate_form(form)

        result = RegistrationService.register(
            event,
            attendee={name: data.get(name) or "" for name in ATTENDEE_FIELDS},
            registration_type=data["registration_type"],
            user=request.user,
            idempotency_key=data.get("idempotency_key") or None,
        )
        payload = serialize_registration(result.registration)
        payload["created"] = result.created
        return JsonResponse(payload, status=201 if result.created else 200)


class EventRegisterView(BaseRegisterView):
    """``POST /events/<event_id>/register``."""

    def get_event(self, **kwargs: object) -> Event:
        return get_object_or_404(Event, pk=kwargs["event_id"])


class PublicEventRegisterView(BaseRegisterView):
    """``POST /public/events/<slug>/register``."""

    required_feature = ("registration", "public_api")

    def get_event(self, **kwargs: object) -> Event:
        return get_object_or_404(Event, slug=kwargs["slug"])


class MyRegistrationsView(JSONView):
    """List the signed-in user's registrations."""

    required_feature = "registration"

    def get(self, request: HttpRequest) -> JsonResponse:
        if not request.user.is_authenticated:
            raise AuthenticationRequired
        registrations: QuerySet[EventRegistration] = EventRegistration.objects.filter(user=request.user).select_related(
            "event",
        )
        data = []
        for registration in registrations:
            item = serialize_registration(registration)
            item["event_title"] = registration.event.title
            item["event_start_date"] = registration.event.start_date
            data.append(item)
        return JsonResponse(data, safe=False)


class PaymentIntentView(JSONView):
    """Create or resume a Stripe PaymentIntent for a registration or membership."""

    required_feature = "payments"

    def post(self, request: HttpRequest) -> JsonResponse:
        """Return the client secret for the stored amount.

        The caller must be the record's signed-in owner or send its
        ``reference``; anyone else gets the same ``404`` as for a missing
        record. Zero-priced registrations are confirmed on the spot and
        return ``status: "paid"`` with no client secret.
        """
        data = validate_form(PaymentIntentForm(data=self.parse_json(request)))
        reference = data.get("reference") or ""

        if data.get("registration_id") is not None:
            registration = EventRegistration.objects.filter(pk=data["registration_id"]).first()
            if registration is None or not _may_pay_for(request, registration, reference):
                raise Http404("Registration not found")
            if registration.payment_status == EventRegistration.PaymentStatus.PENDING and registration.payment_amount == 0:
                PaymentService.record_comp(registration)
                return JsonResponse(
                    {"status": "paid", "client_secret": None, "amount": registration.payment_amount},
                )
            initiation = PaymentService.initiate_for_registration(registration)
        else:
            membership = Membership.objects.filter(pk=data["membership_id"]).first()
            if membership is None or not _may_pay_for(request, membership, reference):
                raise Http404("No membership found")
            initiation = PaymentService.initiate_for_membership(membership)

        return JsonResponse(
            {
                "status": "pending",
                "client_secret": initiation.client_secret,
                "payment_intent_id": initiation.payment_intent_id,
                "amount": initiation.amount,
                "currency": initiation.currency,
                "publishable_key": get_config().stripe.publishable_key,
            },
        )


class ConfirmPaymentView(JSONView):
    """Verify a PaymentIntent with Stripe after the widget reports completion."""

    required_feature = "payments"

    def post(self, request: HttpRequest) -> JsonResponse:
        """Report the verified outcome.

        ``200`` when paid, ``402`` when the gateway declined, otherwise the
        status mapped from the cancel reason code.
        """
        data = validate_form(ConfirmPaymentForm(data=self.parse_json(request)))
        result = PaymentConfirmationService.confirm_intent(data.get("payment_intent_id"))

        if result.status == ConfirmationStatus.PAID:
            return JsonResponse({"status": result.status, "message": "Payment confirmed."})
        if result.status == ConfirmationStatus.FAILED:
            return JsonResponse({"status": result.status, "message": cancel_message(None)}, status=402)
        return JsonResponse(
            {"status": result.status, "error": result.reason, "message": cancel_message(result.reason)},
            status=_REASON_STATUS[result.reason],
        )


class PaymentReturnView(JSONView):
    """Landing point after the Stripe redirect; verifies and forwards the browser."""

    required_feature = "payments"

    def get(self, request: HttpRequest) -> HttpResponse:
        """Redirect to the success URL, or to the cancel URL with ``?error=<code>``."""
        urls = get_config().payment_return
        try:
            result = PaymentConfirmationService.confirm_reference(request.GET.get("order"))
        except Exception:
            logger.exception("Payment return verification failed for %r", request.GET.get("order"))
            return HttpResponseRedirect(_cancel_url(urls.cancel_url, CancelReason.SERVER_ERROR))

        if result.is_paid:
            return HttpResponseRedirect(urls.success_url)
        return HttpResponseRedirect(_cancel_url(urls.cancel_url, result.reason))


class PaymentCancelView(JSONView):
    """Explain why the browser ended up on the cancel page."""

    required_feature = "payments"

    def get(self, request: HttpRequest) -> JsonResponse:
        code = request.GET.get("error") or None
        return JsonResponse({"error": code, "message": cancel_message(code)})


def _cancel_url(base: str, reason: CancelReason | None) -> str:
    if reason is None:
        return base
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{urlencode({'error': reason.value})}"


def _may_pay_for(request: HttpRequest, record: EventRegistration | Membership, reference: str) -> bool:
    owner_id = record.user_id
    if owner_id is not None and request.user.is_authenticated and request.user.pk == owner_id:
        return True
    return bool(reference) and constant_time_compare(reference, record.reference)
