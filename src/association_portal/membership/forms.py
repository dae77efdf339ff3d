"""Forms for the membership app."""

from django import forms

from association_portal.api import StrictForm
from association_portal.membership.models import Membership


class MemberApplicationForm(StrictForm):
    """Public membership application.

    ``registration_type`` is ``"existing"`` for people who already hold a
    membership number, which then becomes required.
    """

    REGISTRATION_TYPES = (("new", "New member"), ("existing", "Existing member"))

    first_name = forms.CharField(max_length=150, strip=True)
    last_name = forms.CharField(max_length=150, strip=True)
    email = forms.EmailField()
    membership_type = forms.ChoiceField(choices=Membership.MembershipType.choices)
    agrees_to_terms = forms.BooleanField(
        error_messages={"required": "You must agree to the terms and conditions."},
    )
    registration_type = forms.ChoiceField(choices=REGISTRATION_TYPES, required=False)
    membership_number = forms.CharField(max_length=100, required=False, strip=True)

    def clean(self) -> dict:
        """Default to a new application and require a number for existing members."""
        cleaned = super().clean()
        if not cleaned.get("registration_type"):
            cleaned["registration_type"] = "new"
        if cleaned["registration_type"] == "existing" and not cleaned.get("membership_number"):
            self.add_error("membership_number", "Existing members must provide their membership number.")
        return cleaned
