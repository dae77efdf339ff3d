"""Forms for the registration app.

Each form validates one JSON request body. They all derive from
:class:`~association_portal.api.StrictForm`, so unexpected keys are rejected.
"""

from django import forms

from association_portal.api import StrictForm
from association_portal.registration.models import EventRegistration


class RegistrationForm(StrictForm):
    """Attendee details submitted when registering for an event.

    ``full_name`` is accepted from older clients in place of ``first_name``
    and ``last_name`` and is split on the first space.
    """

    first_name = forms.CharField(max_length=150, required=False, strip=True)
    last_name = forms.CharField(max_length=150, required=False, strip=True)
    full_name = forms.CharField(max_length=300, required=False, strip=True)
    email = forms.EmailField()
    company_name = forms.CharField(max_length=200, required=False)
    position = forms.CharField(max_length=200, required=False)
    phone_number = forms.CharField(max_length=50, required=False)
    notes = forms.CharField(required=False)
    registration_type = forms.ChoiceField(choices=EventRegistration.RegistrationType.choices)
    idempotency_key = forms.CharField(max_length=100, required=False, strip=True)

    def clean(self) -> dict:
        """Derive first/last name from ``full_name`` and require both names."""
        cleaned = super().clean()
        full_name = cleaned.get("full_name", "")
        if full_name and not cleaned.get("first_name"):
            first, _, last = full_name.partition(" ")
            cleaned["first_name"] = first
            cleaned["last_name"] = cleaned.get("last_name") or last.strip()

        if not cleaned.get("first_name"):
            self.add_error("first_name", "This field is required.")
        if not cleaned.get("last_name"):
            self.add_error("last_name", "This field is required.")
        return cleaned


class PaymentIntentForm(StrictForm):
    """Target of a payment: exactly one of a registration or a membership.

    ``reference`` must match the record unless the caller is its signed-in owner.
    """

    registration_id = forms.IntegerField(required=False, min_value=1)
    membership_id = forms.IntegerField(required=False, min_value=1)
    reference = forms.CharField(max_length=100, required=False, strip=True)

    def clean(self) -> dict:
        """Ensure exactly one of registration_id or membership_id is supplied."""
        cleaned = super().clean()
        has_registration = cleaned.get("registration_id") is not None
        has_membership = cleaned.get("membership_id") is not None

        if has_registration == has_membership:
            raise forms.ValidationError("Provide exactly one of registration_id or membership_id, not both or neither.")
        return cleaned


class ConfirmPaymentForm(StrictForm):
    """The PaymentIntent the browser believes it has paid."""

    payment_intent_id = forms.CharField(max_length=200, required=False, strip=True)


class AdminRegistrationUpdateForm(StrictForm):
    """Partial update of a registration by staff."""

    membership_type = forms.ChoiceField(choices=EventRegistration.RegistrationType.choices, required=False)
    payment_method_tracking = forms.ChoiceField(
        choices=EventRegistration.PaymentMethodTracking.choices,
        required=False,
    )
    cros = forms.CharField(required=False)
    admin_notes = forms.CharField(required=False)
    is_paid = forms.NullBooleanField(required=False)

    def changes(self) -> dict[str, object]:
        """Return cleaned values for the keys actually present in the payload."""
        return {name: value for name, value in self.cleaned_data.items() if name in self.data}
