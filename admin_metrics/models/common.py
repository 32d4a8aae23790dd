from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Optional

from pydantic import BeforeValidator
from typing_extensions import Annotated


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Normalize a timestamp coming from Supabase or a caller.

    Accepts datetimes, dates, ISO-8601 strings (trailing "Z" allowed) and
    date-only strings. Naive values are treated as UTC.

    Raises:
        ValueError: value cannot be read as a timestamp
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}")
    else:
        raise ValueError(f"Invalid timestamp type: {type(value).__name__}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require_timestamp(value: Any) -> datetime:
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValueError("Timestamp is required")
    return parsed


def _none_to_zero(value: Any) -> Any:
    return 0 if value is None else value


Timestamp = Annotated[datetime, BeforeValidator(_require_timestamp)]
OptionalTimestamp = Annotated[Optional[datetime], BeforeValidator(parse_timestamp)]

# Nullable numeric columns read as 0 (e.g. progress before the first update)
NumberOrZero = Annotated[float, BeforeValidator(_none_to_zero)]
