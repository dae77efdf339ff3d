"""Money conversion and log-safety helpers for the Stripe integration.

Stripe expresses amounts as integers in the smallest currency unit. The portal
stores :class:`~decimal.Decimal` amounts in its own currency (Bahamian dollars
by default, a normal two-decimal currency), so every amount crossing the
gateway boundary goes through the converters below.
"""

from decimal import ROUND_HALF_UP, Decimal

_OBFUSCATE_VISIBLE_CHARS = 4

ZERO_DECIMAL_CURRENCIES: frozenset[str] = frozenset(
    {
        "BIF",
        "CLP",
        "DJF",
        "GNF",
        "JPY",
        "KMF",
        "KRW",
        "MGA",
        "PYG",
        "RWF",
        "UGX",
        "VND",
        "VUV",
        "XAF",
        "XOF",
        "XPF",
    }
)


def convert_amount_for_api(amount: Decimal, currency: str) -> int:
    """Convert a stored Decimal amount to Stripe's integer representation.

    ``Decimal("350.00")`` in BSD becomes ``35000``; zero-decimal currencies
    are passed through as whole units. Fractions of the smallest unit are
    rounded half-up.

    Args:
        amount: The monetary amount as a :class:`~decimal.Decimal`.
        currency: An ISO 4217 currency code (case-insensitive).

    Returns:
        The amount in the smallest currency unit.
    """
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return int((amount * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def convert_amount_for_db(amount: int, currency: str) -> Decimal:
    """Convert a Stripe integer amount back to a Decimal for storage.

    Inverse of :func:`convert_amount_for_api`.

    Args:
        amount: The integer amount in the smallest currency unit.
        currency: An ISO 4217 currency code (case-insensitive).

    Returns:
        The amount as a :class:`~decimal.Decimal`.
    """
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(str(amount))
    return (Decimal(str(amount)) / 100).quantize(Decimal("0.01"))


def amounts_match(expected: Decimal, stripe_amount: object, stripe_currency: object, currency: str) -> bool:
    """Return whether a gateway-reported amount equals the amount we charged.

    Args:
        expected: The amount stored on the local record.
        stripe_amount: The ``amount`` field from the PaymentIntent.
        stripe_currency: The ``currency`` field from the PaymentIntent.
        currency: The portal's configured currency.
    """
    if not isinstance(stripe_amount, int) or not isinstance(stripe_currency, str):
        return False
    if stripe_currency.lower() != currency.lower():
        return False
    return stripe_amount == convert_amount_for_api(expected, currency)


def obfuscate_key(key: str) -> str:
    """Mask an API key for log output, keeping only its last four characters.

    Keys shorter than four characters are masked entirely.
    """
    if len(key) < _OBFUSCATE_VISIBLE_CHARS:
        return "****"
    return "****" + key[-_OBFUSCATE_VISIBLE_CHARS:]
