from __future__ import annotations

import calendar
from datetime import date, datetime, timezone
from typing import Any
from urllib.parse import parse_qs


def parse_query(query: str) -> dict[str, str]:
    params = parse_qs(query or "")
    return {k: (v[0] if v else "") for k, v in params.items()}


def query_str(params: dict[str, str], key: str) -> str | None:
    value = params.get(key, "").strip()
    return value or None


def query_int(params: dict[str, str], key: str, default: int | None = None, *, minimum: int | None = None) -> int | None:
    raw = params.get(key, "").strip()
    if not raw:
        return default
    value = int(raw)
    if minimum is not None and value < minimum:
        return minimum
    return value


def query_bool(params: dict[str, str], key: str) -> bool | None:
    raw = params.get(key, "").strip().lower()
    if raw in ("true", "1", "yes"):
        return True
    if raw in ("false", "0", "no"):
        return False
    return None


def optional_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    return int(value)


def parse_timestamp(value: Any) -> int | None:
    """Accept epoch seconds or an ISO-8601 string. Naive datetimes are UTC."""
    if value in (None, ""):
        return None
    if isinstance(value, bool):
        raise ValueError("invalid_timestamp")
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return int(text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValueError("invalid_timestamp") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value[:10])
    except ValueError as e:
        raise ValueError("invalid_date") from e


def day_start(day: date) -> int:
    return calendar.timegm(day.timetuple())


def day_end(day: date) -> int:
    return day_start(day) + 24 * 60 * 60 - 1


def is_iso_date(value: str) -> bool:
    if len(value) != 10:
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True
