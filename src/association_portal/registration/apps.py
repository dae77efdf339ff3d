"""Django app configuration for the registration app."""

from django.apps import AppConfig


class AssociationPortalRegistrationConfig(AppConfig):
    """Configuration for the registration app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "association_portal.registration"
    label = "portal_registration"
    verbose_name = "Registration"

    def ready(self) -> None:
        """Connect confirmation-email receivers."""
        import association_portal.registration.receivers  # noqa: F401, PLC0415
