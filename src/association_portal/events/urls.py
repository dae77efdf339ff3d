"""URL configuration for the public event catalog."""

from django.urls import path

from association_portal.events.views import PublicEventDetailView, PublicEventListView

app_name = "events"

urlpatterns = [
    path("public/events", PublicEventListView.as_view(), name="public-event-list"),
    path("public/events/<slug:slug>", PublicEventDetailView.as_view(), name="public-event-detail"),
]
