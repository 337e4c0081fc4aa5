"""UTC clock helpers. Persisted timestamps are integer epoch milliseconds."""

from datetime import datetime, timezone
from typing import Any, Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    return int(as_utc(value).timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Accepts epoch milliseconds, ISO-8601 strings (offset optional, trailing Z allowed)
    or datetimes, and returns an aware UTC datetime. Raises ValueError otherwise.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, (int, float)):
        return from_epoch_ms(value)
    if isinstance(value, str):
        # Python < 3.11 fromisoformat does not accept a trailing Z.
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise ValueError(f"Not a timestamp: {value!r}")
