"""Pure field checks shared by the orchestrator, the batch importer and the API."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any
from urllib.parse import urlparse

from compendium.core.errors import ValidationError

LAW_ID_PATTERN = re.compile(r"\d+\.\d{5}", re.ASCII)
LAW_ID_HINT = "<number>.<5 digits>, e.g. 100.00001"

# Order matters: the admin form used YYYY/MM/DD, exports use ISO dates.
_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d")


def is_valid_law_id(value: Any) -> bool:
    """Return True when ``value`` is a law identifier such as ``100.00001``."""
    return isinstance(value, str) and LAW_ID_PATTERN.fullmatch(value) is not None


def require_valid_law_id(value: Any) -> str:
    """Return ``value`` unchanged or raise ValidationError without touching the network."""
    if not is_valid_law_id(value):
        raise ValidationError(f"id {value!r} must match {LAW_ID_HINT}", law_id=value)
    return value


def is_absolute_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def parse_reform_date(value: Any) -> datetime | None:
    """
    Parse a last-reform date into an aware UTC datetime.

    Accepts date/datetime objects, ``YYYY-MM-DD``, ``YYYY/MM/DD`` and full
    ISO-8601 date-times (a trailing ``Z`` is understood). Returns None when
    the value cannot be read as a calendar date.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str):
        return None

    cleaned = value.strip()
    if not cleaned:
        return None

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    try:
        parsed = datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_reform_date(value: datetime) -> str:
    """Render as the Record Store's date-time format, e.g. ``2021-03-01T00:00:00.000Z``."""
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
