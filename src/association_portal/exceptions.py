"""Exceptions shared by the association-portal apps.

User-correctable input problems use Django's own
:class:`~django.core.exceptions.ValidationError`, and missing records use
``Http404`` / ``DoesNotExist``. The classes below cover the remaining cases
that the JSON API has to report with a specific status code.
"""


class PortalError(Exception):
    """Base class for portal errors that carry an HTTP status code."""

    status_code: int = 500
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        """Store the user-facing message, falling back to the class default."""
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationRequired(PortalError):
    """Raised when an endpoint needs a signed-in user."""

    status_code = 401
    default_message = "Authentication required"


class PaymentGatewayError(PortalError):
    """Raised when the payment provider could not complete a request.

    Network failures and 4xx/5xx answers from Stripe are all reported the
    same way: the client may retry, and no local state has been committed.
    """

    status_code = 503
    default_message = "The payment provider could not be reached. Please try again in a few minutes."
    retryable = True
