"""Django app configuration for the events app."""

from django.apps import AppConfig


class AssociationPortalEventsConfig(AppConfig):
    """Configuration for the events app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "association_portal.events"
    label = "portal_events"
    verbose_name = "Events"
