"""Calendar-date helpers for consultations and follow-ups."""

from __future__ import annotations

import re
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

from fotoderma.core.config import settings

_BARE_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def clinic_timezone() -> ZoneInfo:
    """Return the configured clinic timezone, falling back to UTC."""

    try:
        return ZoneInfo(settings.timezone)
    except ZoneInfoNotFoundError:  # pragma: no cover
        return ZoneInfo("UTC")


def today_local() -> str:
    """Return today's date in the clinic timezone as ``YYYY-MM-DD``."""

    return datetime.now(clinic_timezone()).date().isoformat()


def _to_local_date(value: str) -> date:
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(clinic_timezone())
    return parsed.date()


def normalize_calendar_date(value: str) -> str:
    """Reduce a date or timestamp string to a ``YYYY-MM-DD`` calendar date.

    Bare dates are validated and returned unchanged. Timestamps carrying an
    offset are converted to the clinic timezone before the date is taken, so
    ``2025-03-01T03:00:00Z`` is the 28th of February in El Salvador.

    Raises ``ValueError`` when the value is not a recognizable date.
    """

    value = (value or "").strip()
    if not value:
        raise ValueError("Empty date")
    if _BARE_DATE.match(value):
        return date.fromisoformat(value).isoformat()
    return _to_local_date(value).isoformat()


def format_display_date(value: str) -> str:
    """Format a date for display as ``DD/MM/YYYY``.

    A bare ``YYYY-MM-DD`` is split and reassembled without going through a
    datetime, which would shift the day depending on the timezone.
    """

    value = (value or "").strip()
    if _BARE_DATE.match(value):
        year, month, day = value.split("-")
        return f"{day}/{month}/{year}"
    return _to_local_date(value).strftime("%d/%m/%Y")
