"""Tests for the public event catalog endpoints."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.test import Client, override_settings
from django.urls import reverse
from django.utils import timezone

from association_portal.events.models import Event
from association_portal.registration.models import EventRegistration


@pytest.fixture
def client():
    return Client()


def _event(title, days, **kwargs):
    start = timezone.now() + timedelta(days=days)
    return Event.objects.create(title=title, start_date=start, end_date=start + timedelta(hours=2), **kwargs)


def _register(event, status=EventRegistration.PaymentStatus.PENDING, n=1):
    for i in range(n):
        EventRegistration.objects.create(
            event=event,
            reference=f"REG-{event.pk:02d}{status[:2].upper()}{i:02d}",
            first_name="A",
            last_name="B",
            email=f"a{i}@example.com",
            registration_type=EventRegistration.RegistrationType.MEMBER,
            payment_status=status,
        )


@pytest.mark.integration
@pytest.mark.django_db
class TestPublicEventList:
    def test_lists_published_events_in_date_order(self, client):
        _event("Later", 30)
        _event("Sooner", 5)
        _event("Private", 10, is_public=False)
        _event("Cancelled", 12, status=Event.Status.CANCELLED)

        resp = client.get(reverse("events:public-event-list"))

        assert resp.status_code == 200
        assert [e["title"] for e in resp.json()] == ["Sooner", "Later"]

    def test_seats_remaining_counts_pending_and_paid(self, client):
        event = _event("Capped", 5, max_attendees=5)
        _register(event, EventRegistration.PaymentStatus.PENDING, n=2)
        _register(event, EventRegistration.PaymentStatus.PAID, n=1)
        _register(event, EventRegistration.PaymentStatus.FAILED, n=2)

        body = client.get(reverse("events:public-event-list")).json()

        assert body[0]["seats_remaining"] == 2
        assert body[0]["registration_open"] is True

    def test_full_event_is_not_open(self, client):
        event = _event("Full", 5, max_attendees=1)
        _register(event)

        body = client.get(reverse("events:public-event-list")).json()

        assert body[0]["seats_remaining"] == 0
        assert body[0]["registration_open"] is False

    def test_unlimited_event(self, client):
        _event("Open", 5, price=Decimal("80.00"), member_price=Decimal("60.00"))

        body = client.get(reverse("events:public-event-list")).json()[0]

        assert body["seats_remaining"] is None
        assert body["price"] == "80.00"
        assert body["member_price"] == "60.00"
        assert body["non_member_price"] == "80.00"
        assert body["currency"] == "BSD"

    @override_settings(ASSOCIATION_PORTAL={"features": {"public_api_enabled": False}})
    def test_public_api_toggle(self, client):
        assert client.get(reverse("events:public-event-list")).status_code == 404


@pytest.mark.integration
@pytest.mark.django_db
class TestPublicEventDetail:
    def test_by_slug(self, client):
        event = _event("Detail Event", 5, location="Nassau")

        resp = client.get(reverse("events:public-event-detail", args=[event.slug]))

        assert resp.status_code == 200
        assert resp.json()["location"] == "Nassau"

    @pytest.mark.parametrize("kwargs", [{"is_public": False}, {"status": Event.Status.CANCELLED}])
    def test_unpublished_is_not_found(self, client, kwargs):
        event = _event("Hidden", 5, **kwargs)

        resp = client.get(reverse("events:public-event-detail", args=[event.slug]))

        assert resp.status_code == 404
        assert resp.json() == {"message": "Event not found"}

    def test_unknown_slug(self, client):
        assert client.get(reverse("events:public-event-detail", args=["nope"])).status_code == 404
