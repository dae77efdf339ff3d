"""Django admin configuration for the events app."""

from django.contrib import admin

from association_portal.events.models import Event


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    """Admin interface for managing events.

    Events are retired by setting their status to cancelled, so the delete
    action is disabled.
    """

    list_display = ("title", "start_date", "status", "is_public", "registration_closed", "max_attendees")
    list_filter = ("status", "is_public", "registration_closed")
    search_fields = ("title", "slug", "location")
    prepopulated_fields = {"slug": ("title",)}
    readonly_fields = ("created_by", "created_at", "updated_at")

    def has_delete_permission(self, request, obj=None) -> bool:  # noqa: ARG002, D102
        return False

    def save_model(self, request, obj: Event, form, change: bool) -> None:  # noqa: FBT001
        """Record the creating staff user on first save."""
        if not change and obj.created_by_id is None:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)
