"""Input validation shared by the patient and consultation services."""

from __future__ import annotations

import re
from typing import Any

from fotoderma.errors import BadRequestError
from fotoderma.services.dates import normalize_calendar_date

MIN_AGE = 1
MAX_AGE = 120

_DIGITS = re.compile(r"^\s*\d+\s*$")


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def clean_text(value: str | None) -> str:
    return (value or "").strip()


def parse_age(value: Any) -> int:
    """Return ``value`` as an age in [1, 120] or raise ``BadRequestError``."""

    if isinstance(value, bool):
        age = None
    elif isinstance(value, int):
        age = value
    elif isinstance(value, float) and value.is_integer():
        age = int(value)
    elif isinstance(value, str) and _DIGITS.match(value):
        age = int(value)
    else:
        age = None

    if age is None or not MIN_AGE <= age <= MAX_AGE:
        raise BadRequestError(f"Age must be a number between {MIN_AGE} and {MAX_AGE}")
    return age


def parse_calendar_date(value: str) -> str:
    try:
        return normalize_calendar_date(value)
    except (ValueError, OverflowError) as exc:
        raise BadRequestError(f"Invalid date: {value!r}") from exc


def normalize_photo_refs(photos: Any) -> list[dict[str, Any]]:
    """Validate a client-supplied list of photo references.

    Each entry must be an object with a non-empty ``url``; other keys are kept
    as sent.
    """

    if photos is None:
        return []
    if not isinstance(photos, list):
        raise BadRequestError("Photos must be a list")
    refs: list[dict[str, Any]] = []
    for photo in photos:
        if not isinstance(photo, dict) or is_blank(photo.get("url")):
            raise BadRequestError("Each photo must be an object with a url")
        refs.append(dict(photo))
    return refs
