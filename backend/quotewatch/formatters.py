"""Display formatting for quote values."""

from __future__ import annotations

import math
import time
from datetime import datetime

PLACEHOLDER = "--"

Number = float | int | str | None


def _to_number(value: Number) -> float | None:
    """Coerce a number or numeric string; None for missing, NaN or garbage."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def format_price(price: Number) -> str:
    """Price with two decimals and thousands separators: 1234.5 -> "1,234.50"."""
    number = _to_number(price)
    if number is None:
        return PLACEHOLDER
    return f"{number:,.2f}"


def format_percentage(value: Number) -> str:
    """Signed percent with two decimals: 5.25 -> "+5.25%"."""
    number = _to_number(value)
    if number is None:
        return PLACEHOLDER
    return f"{number:+,.2f}%"


def format_change(value: Number) -> str:
    """Signed change with two decimals: -4.56 -> "-4.56", 0 -> "+0.00"."""
    number = _to_number(value)
    if number is None:
        return PLACEHOLDER
    return f"{number:+,.2f}"


def get_price_change_class(value: Number) -> str:
    """'positive', 'negative', or 'neutral'."""
    number = _to_number(value)
    if number is None or number == 0:
        return "neutral"
    return "positive" if number > 0 else "negative"


def format_last_updated(when: datetime | float | None, now: float | None = None) -> str:
    """Relative age of the last update ("Just now", "30s ago", "2m ago"...).

    ``when`` is a datetime or Unix seconds. Older than a day falls back to the
    calendar date (M/D/YYYY).
    """
    if when is None:
        return "Never"

    timestamp = when.timestamp() if isinstance(when, datetime) else float(when)
    current = time.time() if now is None else now
    seconds = math.floor(current - timestamp)

    if seconds < 10:
        return "Just now"
    if seconds < 60:
        return f"{seconds}s ago"

    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"

    day = datetime.fromtimestamp(timestamp)
    return f"{day.month}/{day.day}/{day.year}"
