"""Django admin configuration for the membership app."""

from django.contrib import admin

from association_portal.membership.models import Membership


@admin.register(Membership)
class MembershipAdmin(admin.ModelAdmin):
    """Admin interface for memberships.

    Status is read-only here; it changes through confirmed payments.
    """

    list_display = ("user", "membership_type", "status", "annual_fee", "next_payment_date")
    list_filter = ("membership_type", "status", "is_existing_member")
    search_fields = ("user__email", "user__first_name", "user__last_name", "membership_number", "reference")
    readonly_fields = ("status", "reference", "stripe_payment_intent_id", "created_at", "updated_at")
