"""Parsing of the from/to query-string values accepted by the alarm routes."""

import re
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Optional

# ISO-8601 duration subset: PnW, PnD, PTnHnMnS
DURATION_PATTERN = re.compile(
    r"^P(?:(?P<weeks>\d+)W)?(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


def parse_duration(value: str) -> timedelta:
    """
    Parse an ISO-8601 duration such as P1D, PT1H or PT30M.

    Raises:
        ValueError: if value is not a supported duration
    """
    text = value.strip().upper()
    match = DURATION_PATTERN.match(text)
    if not match or not any(match.groupdict().values()) or text.endswith("T"):
        raise ValueError(f"Invalid ISO-8601 duration: '{value}'")
    parts = {name: float(amount) for name, amount in match.groupdict().items() if amount}
    return timedelta(**parts)


def parse_date(value: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse a date query parameter.

    Accepts an ISO-8601 datetime, NOW, or NOW followed by +/- an ISO-8601 duration
    (e.g. NOW-PT1H). "NOW PT1H" is read as NOW+PT1H, since an unencoded "+"
    decodes to a space in a query string. Naive datetimes are taken as UTC.

    Returns:
        Timezone-aware datetime, or None when value is empty

    Raises:
        ValueError: if value cannot be parsed
    """
    if value is None or not value.strip():
        return None

    text = value.strip()
    now = now or datetime.now(timezone.utc)

    if text.upper().startswith("NOW"):
        offset = text[3:].strip()
        if not offset:
            return now
        if offset[0] == "-":
            return now - parse_duration(offset[1:])
        if offset[0] == "+":
            return now + parse_duration(offset[1:])
        if text[3].isspace() and offset[0] in "Pp":
            # An unencoded "+" in a query string arrives as a space
            return now + parse_duration(offset)
        raise ValueError(f"Invalid date: '{value}'")

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"Invalid date: '{value}'. Expected ISO-8601 or NOW[-duration]") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
