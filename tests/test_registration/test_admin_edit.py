"""Tests for staff edits in association_portal.registration.services.admin_edit."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.utils import timezone

from association_portal.events.models import Event
from association_portal.registration.models import EventRegistration, Payment, RegistrationAuditLog
from association_portal.registration.services.admin_edit import RegistrationAdminService

# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def staff(db):
    return User.objects.create_user(username="staff", password="password", is_staff=True)


@pytest.fixture
def registration(db):
    start = timezone.now() + timedelta(days=3)
    event = Event.objects.create(
        title="Sanctions Update",
        start_date=start,
        end_date=start + timedelta(hours=3),
        price=Decimal("120.00"),
    )
    return EventRegistration.objects.create(
        event=event,
        reference="REG-ADM001",
        first_name="Grace",
        last_name="Hopper",
        email="grace@example.com",
        registration_type=EventRegistration.RegistrationType.MEMBER,
        payment_amount=Decimal("120.00"),
    )


# =============================================================================
# Metadata edits
# =============================================================================


@pytest.mark.unit
@pytest.mark.django_db
class TestMetadataEdits:
    def test_metadata_change_is_saved_and_audited(self, registration, staff):
        updated = RegistrationAdminService.update(
            registration,
            {"payment_method_tracking": "cash", "cros": "CRO-17"},
            staff_user=staff,
        )

        assert updated.payment_method_tracking == "cash"
        assert updated.cros == "CRO-17"
        entry = RegistrationAuditLog.objects.get(registration=registration)
        assert entry.action == RegistrationAuditLog.Action.ADMIN_EDIT
        assert entry.actor == staff
        assert entry.details["changes"]["payment_method_tracking"] == ["", "cash"]

    def test_metadata_edit_never_changes_payment_status(self, registration, staff):
        updated = RegistrationAdminService.update(
            registration,
            {"payment_method_tracking": "bank_transfer", "admin_notes": "Paid at the door"},
            staff_user=staff,
        )

        assert updated.payment_status == EventRegistration.PaymentStatus.PENDING
        assert not Payment.objects.exists()

    def test_absent_keys_are_left_alone(self, registration, staff):
        registration.cros = "CRO-1"
        registration.save()

        updated = RegistrationAdminService.update(registration, {"admin_notes": "note"}, staff_user=staff)

        assert updated.cros == "CRO-1"
        assert updated.admin_notes == "note"

    def test_none_clears_a_field(self, registration, staff):
        registration.admin_notes = "old"
        registration.save()

        updated = RegistrationAdminService.update(registration, {"admin_notes": None}, staff_user=staff)

        assert updated.admin_notes == ""

    def test_unchanged_values_write_no_audit_entry(self, registration, staff):
        RegistrationAdminService.update(registration, {"cros": ""}, staff_user=staff)

        assert not RegistrationAuditLog.objects.exists()


# =============================================================================
# Manual payment override
# =============================================================================


@pytest.mark.unit
@pytest.mark.django_db
class TestManualOverride:
    def test_is_paid_true_records_manual_payment(self, registration, staff, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            updated = RegistrationAdminService.update(
                registration,
                {"is_paid": True, "payment_method_tracking": "cheque", "admin_notes": "Cheque #441"},
                staff_user=staff,
            )

        assert updated.payment_status == EventRegistration.PaymentStatus.PAID
        payment = Payment.objects.get(registration=registration)
        assert payment.method == Payment.Method.MANUAL
        assert payment.created_by == staff
        assert payment.note == "Cheque #441"
        actions = set(RegistrationAuditLog.objects.values_list("action", flat=True))
        assert actions == {RegistrationAuditLog.Action.ADMIN_EDIT, RegistrationAuditLog.Action.MANUAL_MARK_PAID}

    def test_is_paid_false_reverts_manual_payment(self, registration, staff):
        RegistrationAdminService.update(registration, {"is_paid": True}, staff_user=staff)

        updated = RegistrationAdminService.update(registration, {"is_paid": False}, staff_user=staff)

        assert updated.payment_status == EventRegistration.PaymentStatus.PENDING
        assert updated.paid_at is None
        assert Payment.objects.get(registration=registration).status == Payment.Status.REFUNDED
        assert RegistrationAuditLog.objects.filter(action=RegistrationAuditLog.Action.MANUAL_MARK_UNPAID).exists()

    def test_is_paid_false_cannot_revert_gateway_payment(self, registration, staff):
        Payment.objects.create(
            kind=Payment.Kind.EVENT,
            registration=registration,
            method=Payment.Method.STRIPE,
            status=Payment.Status.SUCCEEDED,
            amount=Decimal("120.00"),
            stripe_payment_intent_id="pi_adm_1",
        )
        registration.payment_status = EventRegistration.PaymentStatus.PAID
        registration.save()

        with pytest.raises(ValidationError, match="Gateway-verified"):
            RegistrationAdminService.update(registration, {"is_paid": False}, staff_user=staff)

        registration.refresh_from_db()
        assert registration.payment_status == EventRegistration.PaymentStatus.PAID

    def test_is_paid_true_on_failed_registration_is_rejected(self, registration, staff):
        registration.payment_status = EventRegistration.PaymentStatus.FAILED
        registration.save()

        with pytest.raises(ValidationError, match="only pending registrations"):
            RegistrationAdminService.update(registration, {"is_paid": True}, staff_user=staff)

    def test_is_paid_none_is_a_no_op(self, registration, staff):
        updated = RegistrationAdminService.update(registration, {"is_paid": None}, staff_user=staff)

        assert updated.payment_status == EventRegistration.PaymentStatus.PENDING
        assert not Payment.objects.exists()
