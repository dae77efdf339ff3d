"""Typed configuration for association-portal.

Reads a single ``ASSOCIATION_PORTAL`` dict from Django settings and exposes it
as composed, frozen dataclasses with sensible defaults.

Usage::

    from association_portal.settings import get_config

    config = get_config()
    config.stripe.secret_key
    config.payment_return.cancel_url
    config.currency
"""

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.test.signals import setting_changed

DEFAULT_MEMBERSHIP_FEES: dict[str, str] = {
    "academic": "100.00",
    "associate": "200.00",
    "professional": "250.00",
    "bccp": "300.00",
}


@dataclass(frozen=True, slots=True)
class StripeConfig:
    """Stripe payment gateway configuration."""

    secret_key: str | None = None
    publishable_key: str | None = None
    webhook_secret: str | None = None
    api_version: str = "2024-12-18"
    webhook_tolerance: int = 300


@dataclass(frozen=True, slots=True)
class EmailConfig:
    """Outgoing confirmation email configuration."""

    enabled: bool = True
    from_email: str | None = None
    organization_name: str = "Bahamas Association of Compliance Officers"


@dataclass(frozen=True, slots=True)
class PaymentReturnConfig:
    """Front-end URLs the browser is sent to after leaving the payment widget."""

    success_url: str = "/payment-success"
    cancel_url: str = "/payment-cancel"


@dataclass(frozen=True, slots=True)
class FeaturesConfig:
    """Feature toggles for enabling/disabling portal modules.

    All features are enabled by default. Set to ``False`` in
    ``ASSOCIATION_PORTAL['features']`` to disable.
    """

    registration_enabled: bool = True
    membership_enabled: bool = True
    payments_enabled: bool = True

    public_api_enabled: bool = True
    admin_api_enabled: bool = True


@dataclass(frozen=True, slots=True)
class PortalConfig:
    """Top-level association-portal configuration."""

    stripe: StripeConfig = field(default_factory=StripeConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    payment_return: PaymentReturnConfig = field(default_factory=PaymentReturnConfig)
    features: FeaturesConfig = field(default_factory=FeaturesConfig)
    membership_fees: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_MEMBERSHIP_FEES))
    registration_reference_prefix: str = "REG"
    currency: str = "BSD"
    currency_symbol: str = "$"

    def membership_fee(self, membership_type: str) -> Decimal:
        """Return the annual fee for *membership_type* as a ``Decimal``.

        Raises:
            KeyError: If the membership type has no configured fee.
        """
        return Decimal(str(self.membership_fees[membership_type]))


_NESTED_SECTIONS: tuple[str, ...] = ("stripe", "email", "payment_return", "features")


@functools.lru_cache(maxsize=1)
def get_config() -> PortalConfig:
    """Build and return the portal configuration.

    Reads ``settings.ASSOCIATION_PORTAL`` (a plain dict) and returns a frozen
    :class:`PortalConfig`.  The result is cached; the cache is cleared
    automatically when Django's ``setting_changed`` signal fires (e.g. inside
    ``override_settings``).
    """
    raw = getattr(settings, "ASSOCIATION_PORTAL", {})
    if not isinstance(raw, Mapping):
        msg = "ASSOCIATION_PORTAL must be a mapping (dict-like object)"
        raise TypeError(msg)
    raw_data = dict(raw)

    nested: dict[str, Mapping[str, object]] = {}
    for section in _NESTED_SECTIONS:
        section_data = raw_data.pop(section, {})
        if not isinstance(section_data, Mapping):
            msg = f"ASSOCIATION_PORTAL['{section}'] must be a mapping (dict-like object)"
            raise TypeError(msg)
        nested[section] = section_data

    fees = raw_data.pop("membership_fees", DEFAULT_MEMBERSHIP_FEES)
    if not isinstance(fees, Mapping):
        msg = "ASSOCIATION_PORTAL['membership_fees'] must be a mapping (dict-like object)"
        raise TypeError(msg)

    config = PortalConfig(
        stripe=StripeConfig(**dict(nested["stripe"])),
        email=EmailConfig(**dict(nested["email"])),
        payment_return=PaymentReturnConfig(**dict(nested["payment_return"])),
        features=FeaturesConfig(**dict(nested["features"])),
        membership_fees={str(key): str(value) for key, value in fees.items()},
        **raw_data,
    )
    _validate_portal_config(config)
    return config


def _validate_portal_config(config: PortalConfig) -> None:
    """Validate high-impact configuration values with clear error messages."""
    if not isinstance(config.currency, str) or not config.currency.strip():
        msg = "ASSOCIATION_PORTAL['currency'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.currency_symbol, str) or not config.currency_symbol.strip():
        msg = "ASSOCIATION_PORTAL['currency_symbol'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.registration_reference_prefix, str) or not config.registration_reference_prefix.strip():
        msg = "ASSOCIATION_PORTAL['registration_reference_prefix'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.stripe.webhook_tolerance, int) or config.stripe.webhook_tolerance <= 0:
        msg = "ASSOCIATION_PORTAL['stripe']['webhook_tolerance'] must be a positive integer"
        raise ValueError(msg)
    if not config.payment_return.success_url or not config.payment_return.cancel_url:
        msg = "ASSOCIATION_PORTAL['payment_return'] URLs must be non-empty strings"
        raise ValueError(msg)
    if not isinstance(config.email.enabled, bool):
        msg = "ASSOCIATION_PORTAL['email']['enabled'] must be a boolean"
        raise TypeError(msg)
    for membership_type, fee in config.membership_fees.items():
        try:
            amount = Decimal(fee)
        except InvalidOperation:
            msg = f"ASSOCIATION_PORTAL['membership_fees']['{membership_type}'] must be a decimal amount"
            raise ValueError(msg) from None
        if amount <= 0:
            msg = f"ASSOCIATION_PORTAL['membership_fees']['{membership_type}'] must be greater than zero"
            raise ValueError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Clear the cached config when Django settings change during tests."""
    if setting == "ASSOCIATION_PORTAL":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="association_portal.settings.clear_config_cache")
