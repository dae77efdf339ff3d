"""Public catalog of published events."""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.http import Http404, JsonResponse

from association_portal.api import JSONView
from association_portal.events.models import Event
from association_portal.registration.services.capacity import annotate_seats_taken
from association_portal.settings import get_config

if TYPE_CHECKING:
    from django.db.models import QuerySet
    from django.http import HttpRequest


def published_events() -> QuerySet[Event]:
    """Return public, non-cancelled events annotated with ``seats_taken``."""
    queryset = Event.objects.filter(is_public=True).exclude(status=Event.Status.CANCELLED)
    return annotate_seats_taken(queryset).order_by("start_date", "title")


def serialize_event(event: Event) -> dict[str, object]:
    """Return the public JSON representation of an annotated event."""
    seats_remaining = None
    if event.max_attendees is not None:
        seats_remaining = max(event.max_attendees - event.seats_taken, 0)
    return {
        "id": event.pk,
        "slug": event.slug,
        "title": event.title,
        "description": event.description,
        "location": event.location,
        "start_date": event.start_date,
        "end_date": event.end_date,
        "price": event.price,
        "member_price": event.price_for("member"),
        "non_member_price": event.price_for("non_member"),
        "currency": get_config().currency,
        "status": event.status,
        "max_attendees": event.max_attendees,
        "seats_remaining": seats_remaining,
        "registration_open": event.accepts_registrations and seats_remaining != 0,
    }


class PublicEventListView(JSONView):
    """``GET /public/events``: published events ordered by start date."""

    required_feature = "public_api"

    def get(self, request: HttpRequest) -> JsonResponse:
        return JsonResponse([serialize_event(event) for event in published_events()], safe=False)


class PublicEventDetailView(JSONView):
    """``GET /public/events/<slug>``.

    Unknown, private and cancelled events all answer 404 so the response does
    not reveal whether an unpublished event exists.
    """

    required_feature = "public_api"

    def get(self, request: HttpRequest, slug: str) -> JsonResponse:
        event = published_events().filter(slug=slug).first()
        if event is None:
            raise Http404("Event not found")
        return JsonResponse(serialize_event(event))
