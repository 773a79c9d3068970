"""General-purpose helper utilities shared across the application."""

from __future__ import annotations

import numbers
import time
from datetime import datetime, timezone
from typing import Any


__all__ = [
    "coerce_game_id",
    "epoch_ms_from_iso",
    "format_rating",
    "format_release_date",
    "now_ms",
    "now_utc_iso",
]


def coerce_game_id(value: Any) -> int | None:
    """Return ``value`` as a positive catalog id, or ``None`` when invalid."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Integral):
        numeric = int(value)
    elif isinstance(value, numbers.Real):
        if not float(value).is_integer():
            return None
        numeric = int(value)
    else:
        text = str(value).strip()
        if text.endswith(".0") and text[:-2].isdigit():
            text = text[:-2]
        if not text.isdigit():
            return None
        numeric = int(text)
    return numeric if numeric > 0 else None


def format_rating(value: Any) -> str:
    """Return a 0-100 catalog rating as a one-decimal score out of ten."""

    if value in (None, "") or isinstance(value, bool):
        return ""
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return ""
    return f"{rating / 10:.1f}"


def format_release_date(value: Any) -> str:
    if value in (None, "", 0):
        return ""
    try:
        timestamp = float(value)
    except (TypeError, ValueError):
        return ""
    if timestamp <= 0:
        return ""
    try:
        dt = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return ""
    return dt.date().isoformat()


def now_ms() -> int:
    return int(time.time() * 1000)


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def epoch_ms_from_iso(value: Any) -> int | None:
    """Parse an ISO-8601 timestamp into epoch milliseconds."""

    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
