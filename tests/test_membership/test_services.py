"""Tests for association_portal.membership.services."""

from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.test import override_settings

from association_portal.membership.models import Membership
from association_portal.membership.services import MembershipService


def _apply(**overrides):
    data = {
        "first_name": "Grace",
        "last_name": "Hopper",
        "email": "grace@example.com",
        "membership_type": "professional",
    }
    data.update(overrides)
    return MembershipService.apply(**data)


@pytest.mark.unit
@pytest.mark.django_db
class TestApply:
    def test_new_member_is_pending_with_configured_fee(self):
        membership = _apply()

        assert membership.status == Membership.Status.PENDING
        assert membership.annual_fee == Decimal("250.00")
        assert membership.reference.startswith("MEM-")
        assert len(membership.reference) == len("MEM-") + 6

    def test_creates_inactive_user(self):
        membership = _apply()

        user = membership.user
        assert user.username == "grace@example.com"
        assert user.is_active is False
        assert user.get_full_name() == "Grace Hopper"

    def test_existing_member_is_active(self):
        membership = _apply(is_existing_member=True, membership_number="BACO-0042")

        assert membership.status == Membership.Status.ACTIVE
        assert membership.membership_number == "BACO-0042"

    def test_duplicate_email_is_case_insensitive(self):
        User.objects.create_user(username="someone", email="Grace@Example.com")

        with pytest.raises(ValidationError) as exc_info:
            _apply(email="grace@example.com")

        assert exc_info.value.message_dict == {"email": ["An account with this email address already exists."]}
        assert not Membership.objects.exists()

    @override_settings(ASSOCIATION_PORTAL={"membership_fees": {"academic": "75.00"}})
    def test_fee_schedule_from_settings(self):
        assert _apply(membership_type="academic").annual_fee == Decimal("75.00")

    @override_settings(ASSOCIATION_PORTAL={"membership_fees": {"academic": "75.00"}})
    def test_type_without_fee_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _apply(membership_type="bccp")

        assert "membership_type" in exc_info.value.message_dict
        assert not User.objects.exists()
