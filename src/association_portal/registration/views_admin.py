"""Staff-only JSON endpoints for managing event registrations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.http import JsonResponse
from django.shortcuts import get_object_or_404

from association_portal.api import AdminJSONView, validate_form
from association_portal.events.models import Event
from association_portal.registration.forms import AdminRegistrationUpdateForm
from association_portal.registration.models import EventRegistration
from association_portal.registration.services.admin_edit import RegistrationAdminService
from association_portal.registration.views import serialize_registration

if TYPE_CHECKING:
    from django.http import HttpRequest


def serialize_admin_registration(registration: EventRegistration) -> dict[str, object]:
    """Return the staff view of a registration, including tracking fields."""
    data = serialize_registration(registration)
    data.update(
        {
            "notes": registration.notes,
            "membership_type": registration.membership_type,
            "payment_method_tracking": registration.payment_method_tracking,
            "cros": registration.cros,
            "admin_notes": registration.admin_notes,
            "is_paid": registration.is_paid,
            "stripe_payment_intent_id": registration.stripe_payment_intent_id,
            "updated_at": registration.updated_at,
        },
    )
    return data


class AdminEventRegistrationListView(AdminJSONView):
    """``GET /admin/events/<event_id>/registrations``."""

    def get(self, request: HttpRequest, event_id: int) -> JsonResponse:
        event = get_object_or_404(Event, pk=event_id)
        registrations = EventRegistration.objects.filter(event=event).order_by("created_at", "pk")

        status = request.GET.get("payment_status")
        if status:
            registrations = registrations.filter(payment_status=status)

        return JsonResponse([serialize_admin_registration(r) for r in registrations], safe=False)


class AdminEventRegistrationDetailView(AdminJSONView):
    """``GET`` / ``PATCH /admin/event-registrations/<registration_id>``."""

    def get(self, request: HttpRequest, registration_id: int) -> JsonResponse:
        registration = get_object_or_404(EventRegistration, pk=registration_id)
        return JsonResponse(serialize_admin_registration(registration))

    def patch(self, request: HttpRequest, registration_id: int) -> JsonResponse:
        """Apply a partial update; see :class:`RegistrationAdminService`."""
        registration = get_object_or_404(EventRegistration, pk=registration_id)
        form = AdminRegistrationUpdateForm(data=self.parse_json(request))
        validate_form(form)

        updated = RegistrationAdminService.update(registration, form.changes(), staff_user=request.user)
        return JsonResponse(serialize_admin_registration(updated))
