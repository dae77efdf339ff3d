"""Views for membership applications."""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.http import Http404, JsonResponse

from association_portal.api import JSONView, validate_form
from association_portal.exceptions import AuthenticationRequired
from association_portal.membership.forms import MemberApplicationForm
from association_portal.membership.models import Membership
from association_portal.membership.services import MembershipService
from association_portal.settings import get_config

if TYPE_CHECKING:
    from django.http import HttpRequest


def serialize_membership(membership: Membership) -> dict[str, object]:
    """Return the JSON representation of a membership."""
    return {
        "id": membership.pk,
        "reference": membership.reference,
        "membership_type": membership.membership_type,
        "status": membership.status,
        "annual_fee": membership.annual_fee,
        "currency": get_config().currency,
        "is_existing_member": membership.is_existing_member,
        "membership_number": membership.membership_number,
        "join_date": membership.join_date,
        "next_payment_date": membership.next_payment_date,
        "requires_payment": membership.status == Membership.Status.PENDING,
    }


class MemberApplicationView(JSONView):
    """``POST /member-registration``: apply for membership."""

    required_feature = "membership"

    def post(self, request: HttpRequest) -> JsonResponse:
        data = validate_form(MemberApplicationForm(data=self.parse_json(request)))
        membership = MembershipService.apply(
            first_name=data["first_name"],
            last_name=data["last_name"],
            email=data["email"],
            membership_type=data["membership_type"],
            is_existing_member=data["registration_type"] == "existing",
            membership_number=data.get("membership_number", ""),
        )
        return JsonResponse(serialize_membership(membership), status=201)


class MyMembershipView(JSONView):
    """``GET /membership/me``: the signed-in user's membership."""

    required_feature = "membership"

    def get(self, request: HttpRequest) -> JsonResponse:
        if not request.user.is_authenticated:
            raise AuthenticationRequired
        membership = Membership.objects.filter(user=request.user).first()
        if membership is None:
            raise Http404("No membership found")
        return JsonResponse(serialize_membership(membership))
