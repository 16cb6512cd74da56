# src/utils/timeutil.py

"""Instant handling: everything is normalised to timezone-aware UTC."""

from datetime import datetime, timedelta, timezone

from src.models.errors import ValidationError


def to_utc(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def parse_instant(text: str, field_name: str = "timestamp") -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into UTC."""
    raw = text.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        msg = f"{field_name} is not an ISO-8601 timestamp: {text!r}"
        raise ValidationError(msg) from None
    return to_utc(parsed)


def to_storage(moment: datetime) -> str:
    """Fixed-width UTC text so lexical order equals time order."""
    return to_utc(moment).isoformat(timespec="microseconds")


def from_storage(text: str) -> datetime:
    """Inverse of :func:`to_storage`."""
    return to_utc(datetime.fromisoformat(text))


def within_window(
    first: datetime, second: datetime, window: timedelta,
) -> bool:
    """True when the two instants are at most ``window`` apart."""
    return abs(to_utc(first) - to_utc(second)) <= window


def utc_now() -> datetime:
    """Current instant in UTC."""
    return datetime.now(timezone.utc)
