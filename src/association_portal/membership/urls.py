"""URL configuration for the membership app."""

from django.urls import path

from association_portal.membership.views import MemberApplicationView, MyMembershipView

app_name = "membership"

urlpatterns = [
    path("member-registration", MemberApplicationView.as_view(), name="member-registration"),
    path("membership/me", MyMembershipView.as_view(), name="my-membership"),
]
