"""Django admin configuration for the registration app.

Payment state is read-only here: staff mark registrations paid through the
audited override in the admin JSON API, never by editing a status field.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib import admin

from association_portal.registration.models import (
    EventProcessingException,
    EventRegistration,
    Payment,
    RegistrationAuditLog,
    StripeEvent,
)

if TYPE_CHECKING:
    from django.http import HttpRequest


class PaymentInline(admin.TabularInline):
    """Read-only payments recorded against a registration."""

    model = Payment
    fk_name = "registration"
    extra = 0
    can_delete = False
    readonly_fields = ("method", "status", "amount", "currency", "stripe_payment_intent_id", "created_by", "created_at")
    fields = readonly_fields


class AuditLogInline(admin.TabularInline):
    """Audit trail of a registration."""

    model = RegistrationAuditLog
    extra = 0
    can_delete = False
    readonly_fields = ("action", "actor", "details", "created_at")
    fields = readonly_fields


@admin.register(EventRegistration)
class EventRegistrationAdmin(admin.ModelAdmin):
    """Admin interface for event registrations.

    Attendee details and staff tracking fields are editable; ``payment_status``
    and the Stripe fields are not.
    """

    list_display = ("reference", "event", "first_name", "last_name", "email", "registration_type", "payment_status")
    list_filter = ("event", "payment_status", "registration_type", "payment_method_tracking")
    search_fields = ("reference", "email", "first_name", "last_name", "company_name")
    readonly_fields = (
        "reference",
        "idempotency_key",
        "payment_status",
        "payment_amount",
        "stripe_payment_intent_id",
        "stripe_client_secret",
        "paid_at",
        "created_at",
        "updated_at",
    )
    inlines = [PaymentInline, AuditLogInline]

    def has_delete_permission(self, request: HttpRequest, obj: EventRegistration | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """Read-only listing of all payments."""

    list_display = ("pk", "kind", "method", "status", "amount", "currency", "stripe_payment_intent_id", "created_at")
    list_filter = ("kind", "method", "status")
    search_fields = ("stripe_payment_intent_id", "registration__reference", "membership__reference")

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(self, request: HttpRequest, obj: Payment | None = None) -> bool:  # noqa: ARG002, D102
        return False

    def has_delete_permission(self, request: HttpRequest, obj: Payment | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(StripeEvent)
class StripeEventAdmin(admin.ModelAdmin):
    """Read-only admin for inspecting raw Stripe webhook events."""

    list_display = ("stripe_id", "kind", "livemode", "processed", "created_at")
    list_filter = ("kind", "livemode", "processed")
    search_fields = ("stripe_id", "customer_id")
    readonly_fields = (
        "stripe_id",
        "kind",
        "livemode",
        "payload",
        "customer_id",
        "processed",
        "api_version",
        "created_at",
    )

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(self, request: HttpRequest, obj: StripeEvent | None = None) -> bool:  # noqa: ARG002, D102
        return False

    def has_delete_permission(self, request: HttpRequest, obj: StripeEvent | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(EventProcessingException)
class EventProcessingExceptionAdmin(admin.ModelAdmin):
    """Read-only admin for webhook processing failures."""

    list_display = ("message", "event", "created_at")
    readonly_fields = ("event", "data", "message", "traceback", "created_at")

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(self, request: HttpRequest, obj: EventProcessingException | None = None) -> bool:  # noqa: ARG002, D102
        return False
