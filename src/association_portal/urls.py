"""Root URL configuration for the association-portal JSON API.

Mount under an API prefix in the host project::

    urlpatterns = [
        path("api/", include("association_portal.urls")),
    ]
"""

from django.urls import include, path

urlpatterns = [
    path("", include("association_portal.events.urls")),
    path("", include("association_portal.registration.urls")),
    path("", include("association_portal.membership.urls")),
]
