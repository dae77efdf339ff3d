"""Shared plumbing for the JSON API views.

``JSONView`` is the base class for every endpoint in the portal. It parses
JSON request bodies, enforces feature toggles, and turns the exception
vocabulary used by the service layer into JSON error responses so that
internals are never leaked to the browser.
"""

import json
import logging

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.forms import Form
from django.http import Http404, HttpRequest, HttpResponse, JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from association_portal.exceptions import AuthenticationRequired, PaymentGatewayError, PortalError
from association_portal.features import FeatureRequiredMixin

logger = logging.getLogger(__name__)


def error_response(status: int, message: str, **extra: object) -> JsonResponse:
    """Build a JSON error body of the form ``{"message": ..., **extra}``."""
    return JsonResponse({"message": message, **extra}, status=status)


def validation_payload(exc: ValidationError) -> dict[str, object]:
    """Flatten a ``ValidationError`` into a JSON-friendly ``errors`` value."""
    if hasattr(exc, "error_dict"):
        return {"message": "Validation error", "errors": exc.message_dict}
    return {"message": " ".join(exc.messages), "errors": exc.messages}


class StrictForm(Form):
    """Form that rejects payload keys it does not declare.

    JSON clients must not be able to smuggle extra fields (a ``status`` or
    an ``amount``) past validation just because nothing reads them.
    """

    def clean(self) -> dict[str, object]:
        cleaned = super().clean()
        unknown = sorted(set(self.data) - set(self.fields))
        if unknown:
            raise ValidationError(
                "Unknown field(s): %(fields)s",
                code="unknown_fields",
                params={"fields": ", ".join(unknown)},
            )
        return cleaned


def validate_form(form: Form) -> dict[str, object]:
    """Return ``form.cleaned_data`` or raise ``ValidationError`` with field errors."""
    if not form.is_valid():
        raise ValidationError(dict(form.errors.as_data()))
    return form.cleaned_data


@method_decorator(csrf_exempt, name="dispatch")
class JSONView(FeatureRequiredMixin, View):
    """Base view for JSON endpoints.

    Error mapping:

    * ``ValidationError`` -> 400 with ``errors``
    * ``AuthenticationRequired`` -> 401
    * ``PermissionDenied`` -> 403
    * ``Http404`` / ``DoesNotExist`` -> 404
    * ``PaymentGatewayError`` -> 503 with ``retryable: true``
    * anything else -> 500 with a generic message (the traceback is logged)
    """

    def parse_json(self, request: HttpRequest) -> dict[str, object]:
        """Decode the request body as a JSON object.

        Raises:
            ValidationError: If the body is not valid JSON or not an object.
        """
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError("Request body must be valid JSON.") from exc
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.")
        return data

    def check_permissions(self, request: HttpRequest) -> None:
        """Hook for access checks; raise to reject the request."""

    def dispatch(self, request: HttpRequest, *args: object, **kwargs: object) -> HttpResponse:
        """Run the view and translate service-layer exceptions to JSON."""
        try:
            self.check_permissions(request)
            return super().dispatch(request, *args, **kwargs)
        except ValidationError as exc:
            return JsonResponse(validation_payload(exc), status=400)
        except PermissionDenied as exc:
            return error_response(403, str(exc) or "Permission denied")
        except (Http404, ObjectDoesNotExist) as exc:
            message = str(exc) if isinstance(exc, Http404) and str(exc) else "Not found"
            return error_response(404, message)
        except PaymentGatewayError as exc:
            logger.warning("Payment gateway error on %s %s: %s", request.method, request.path, exc)
            return error_response(exc.status_code, exc.message, retryable=exc.retryable)
        except PortalError as exc:
            return error_response(exc.status_code, exc.message)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.path)
            return error_response(500, PortalError.default_message)


class AdminJSONView(JSONView):
    """``JSONView`` restricted to staff users.

    Unauthenticated requests get a 401, authenticated non-staff users a 403.
    """

    required_feature = "admin_api"

    def check_permissions(self, request: HttpRequest) -> None:
        """Require an authenticated staff or superuser account."""
        user = request.user
        if not user.is_authenticated:
            raise AuthenticationRequired
        if not (user.is_staff or user.is_superuser):
            raise PermissionDenied("Admin access required")
