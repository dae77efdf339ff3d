"""URL configuration for the registration app.

Includes registration, payment initiation and confirmation, the post-checkout
return/cancel endpoints, staff registration management, and the Stripe
webhook endpoint. Mount these under an API prefix in the host project::

    urlpatterns = [
        path("api/", include("association_portal.registration.urls")),
    ]
"""

from django.urls import path

from association_portal.registration.views import (
    ConfirmPaymentView,
    EventRegisterView,
    MyRegistrationsView,
    PaymentCancelView,
    PaymentIntentView,
    PaymentReturnView,
    PublicEventRegisterView,
)
from association_portal.registration.views_admin import (
    AdminEventRegistrationDetailView,
    AdminEventRegistrationListView,
)
from association_portal.registration.webhooks import stripe_webhook

app_name = "registration"

urlpatterns = [
    path("events/<int:event_id>/register", EventRegisterView.as_view(), name="event-register"),
    path("public/events/<slug:slug>/register", PublicEventRegisterView.as_view(), name="public-event-register"),
    path("event-registrations/my", MyRegistrationsView.as_view(), name="my-registrations"),
    path("payments/intent", PaymentIntentView.as_view(), name="payment-intent"),
    path("confirm-payment", ConfirmPaymentView.as_view(), name="confirm-payment"),
    path("payments/return", PaymentReturnView.as_view(), name="payment-return"),
    path("payments/cancel", PaymentCancelView.as_view(), name="payment-cancel"),
    path(
        "admin/events/<int:event_id>/registrations",
        AdminEventRegistrationListView.as_view(),
        name="admin-event-registrations",
    ),
    path(
        "admin/event-registrations/<int:registration_id>",
        AdminEventRegistrationDetailView.as_view(),
        name="admin-registration-detail",
    ),
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
]
