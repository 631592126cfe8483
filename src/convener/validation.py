from __future__ import annotations

import logging
import re
from datetime import datetime, tzinfo

from .errors import ValidationError
from .models import Address, ConfirmChoice, Coordinates, Location, Step

log = logging.getLogger("convener.validation")

# DD.MM.YYYY, HH:MM
DATETIME_FORMAT_HINT = "DD.MM.YYYY, HH:MM"
_DATETIME_RE = re.compile(
    r"^\s*(?P<day>\d{1,2})\.(?P<month>\d{1,2})\.(?P<year>\d{4}),\s*(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*$"
)

# "50.4501, 30.5234" in decimal degrees
_COORDINATES_RE = re.compile(
    r"^\s*(?P<lat>[-+]?\d{1,2}(?:\.\d+)?)\s*,\s*(?P<lon>[-+]?\d{1,3}(?:\.\d+)?)\s*$"
)


def clean_title(raw: str, max_length: int) -> str:
    title = (raw or "").strip()
    if not title:
        raise ValidationError(Step.TITLE, "Title must not be empty")
    if len(title) > max_length:
        raise ValidationError(Step.TITLE, f"Title must be at most {max_length} characters")
    return title


def parse_event_datetime(raw: str, tz: tzinfo) -> datetime:
    """Parse ``DD.MM.YYYY, HH:MM`` into an aware datetime in ``tz``."""
    m = _DATETIME_RE.match(raw or "")
    if m is None:
        raise ValidationError(Step.DATETIME, f"Expected {DATETIME_FORMAT_HINT}")
    try:
        return datetime(
            int(m.group("year")),
            int(m.group("month")),
            int(m.group("day")),
            int(m.group("hour")),
            int(m.group("minute")),
            tzinfo=tz,
        )
    except ValueError as e:
        raise ValidationError(Step.DATETIME, f"Not a real date/time: {e}") from e


def parse_location(raw: str | Coordinates) -> Location:
    if isinstance(raw, Coordinates):
        return raw
    text = (raw or "").strip()
    if not text:
        raise ValidationError(Step.LOCATION, "Location must not be empty")
    m = _COORDINATES_RE.match(text)
    if m is not None:
        try:
            return Coordinates(float(m.group("lat")), float(m.group("lon")))
        except ValueError:
            # Out-of-range pairs such as "95, 10" are kept as plain text.
            log.debug("Coordinate-like location out of range, storing as address: %r", text)
    return Address(text)


def parse_confirm_choice(raw: str | ConfirmChoice) -> ConfirmChoice:
    if isinstance(raw, ConfirmChoice):
        return raw
    try:
        return ConfirmChoice((raw or "").strip().lower())
    except ValueError as e:
        raise ValidationError(Step.CONFIRM, "Use confirm or cancel") from e
