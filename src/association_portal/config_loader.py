"""TOML loader for event bootstrap configuration.

Loads and validates an events TOML file so that the association's event
calendar can be created programmatically::

    timezone = "America/Nassau"

    [[events]]
    title = "Annual AML Conference"
    start = 2026-11-05T09:00:00
    end = 2026-11-05T17:00:00
    location = "Baha Mar, Nassau"
    price = 350.00
    member_price = 250.00
    max_attendees = 200
"""

import re
import tomllib
from datetime import date, datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_REQUIRED_EVENT_FIELDS: set[str] = {"title", "start", "end"}
_PRICE_FIELDS: tuple[str, ...] = ("price", "member_price", "non_member_price")

_SLUG_RE = re.compile(r"[^\w\s-]")
_WHITESPACE_RE = re.compile(r"[-\s]+")


def _slugify(value: str) -> str:
    """Convert a string to a URL-friendly slug."""
    value = _SLUG_RE.sub("", value.lower())
    return _WHITESPACE_RE.sub("-", value).strip("-")


def _validate_unique_slugs(items: list[dict[str, Any]], label: str) -> None:
    """Ensure each item has a unique, non-empty string slug."""
    seen: set[str] = set()
    duplicates: set[str] = set()

    for idx, item in enumerate(items):
        slug = item.get("slug")
        if not isinstance(slug, str) or not slug:
            msg = f"{label}[{idx}].slug must be a non-empty string"
            raise ValueError(msg)
        if slug in seen:
            duplicates.add(slug)
        seen.add(slug)

    if duplicates:
        msg = f"{label} has duplicate slugs: {', '.join(sorted(duplicates))}"
        raise ValueError(msg)


def _validate_mapping(mapping: object, required: set[str], label: str) -> None:
    """Validate that *mapping* is a dict containing all *required* keys.

    Raises:
        TypeError: If *mapping* is not a dict.
        ValueError: If *mapping* is missing required keys.
    """
    if not isinstance(mapping, dict):
        msg = f"{label} must be a mapping, got {type(mapping).__name__}"
        raise TypeError(msg)
    missing = required - mapping.keys()
    if missing:
        msg = f"{label} is missing required fields: {', '.join(sorted(missing))}"
        raise ValueError(msg)


def _to_datetime(value: object, tz: ZoneInfo, label: str, *, end_of_day: bool = False) -> datetime:
    """Turn a TOML date or datetime into an aware ``datetime``.

    Bare dates become the start of the day, or its last second when
    *end_of_day* is set. Naive datetimes are interpreted in *tz*.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=tz)
    if isinstance(value, date):
        moment = time(23, 59, 59) if end_of_day else time.min
        return datetime.combine(value, moment, tzinfo=tz)
    msg = f"{label} must be a TOML date or datetime"
    raise ValueError(msg)


def _normalize_event(event: dict[str, Any], tz: ZoneInfo, label: str) -> None:
    if not isinstance(event["title"], str) or not event["title"].strip():
        msg = f"{label}.title must be a non-empty string"
        raise ValueError(msg)

    event["start"] = _to_datetime(event["start"], tz, f"{label}.start")
    event["end"] = _to_datetime(event["end"], tz, f"{label}.end", end_of_day=True)
    if event["end"] < event["start"]:
        msg = f"{label} ends before it starts"
        raise ValueError(msg)

    for key in _PRICE_FIELDS:
        if key not in event:
            continue
        value = event[key]
        if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
            msg = f"{label}.{key} must be a number"
            raise ValueError(msg)
        event[key] = Decimal(value).quantize(Decimal("0.01"))
        if event[key] < 0:
            msg = f"{label}.{key} must not be negative"
            raise ValueError(msg)

    capacity = event.get("max_attendees")
    if capacity is not None and (isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1):
        msg = f"{label}.max_attendees must be a positive integer"
        raise ValueError(msg)

    if "slug" not in event:
        event["slug"] = _slugify(event["title"])


def load_events_config(path: str | Path) -> dict[str, Any]:
    """Load and validate an events TOML configuration file.

    Args:
        path: Filesystem path to the TOML file.

    Returns:
        A mapping with ``timezone`` (a string, default ``"UTC"``) and
        ``events`` (a list of event mappings). Dates are converted to aware
        ``datetime`` objects, prices to two-place ``Decimal`` values, and
        slugs are generated from ``title`` when not given.

    Raises:
        FileNotFoundError: If *path* does not exist.
        TypeError: If an ``[[events]]`` entry is not a table.
        ValueError: If required fields are missing, values are invalid, or
            the file is not valid TOML.
    """
    path = Path(path)
    if not path.exists():
        msg = f"Events config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as fh:
        try:
            data: dict[str, Any] = tomllib.load(fh, parse_float=Decimal)
        except tomllib.TOMLDecodeError as exc:
            msg = f"Invalid TOML in {path}: {exc}"
            raise ValueError(msg) from exc

    tz_name = data.get("timezone", "UTC")
    try:
        tz = ZoneInfo(str(tz_name))
    except (ZoneInfoNotFoundError, ValueError) as exc:
        msg = f"Unknown timezone: {tz_name}"
        raise ValueError(msg) from exc

    events = data.get("events")
    if not isinstance(events, list) or not events:
        msg = "Config file must contain at least one [[events]] table"
        raise ValueError(msg)

    for idx, event in enumerate(events):
        label = f"events[{idx}]"
        _validate_mapping(event, _REQUIRED_EVENT_FIELDS, label)
        _normalize_event(event, tz, label)

    _validate_unique_slugs(events, "events")
    return {"timezone": str(tz_name), "events": events}
