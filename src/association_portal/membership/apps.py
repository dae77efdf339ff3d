"""Django app configuration for the membership app."""

from django.apps import AppConfig


class AssociationPortalMembershipConfig(AppConfig):
    """Configuration for the membership app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "association_portal.membership"
    label = "portal_membership"
    verbose_name = "Membership"
