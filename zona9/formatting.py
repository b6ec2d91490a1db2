"""Indonesian-locale display formatting for currency, counts and litres."""

from __future__ import annotations

import math
from typing import Any


def _safe_float(value: Any, default: float = 0.0) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(out) or math.isinf(out):
        return default
    return out


def format_number(value: Any, decimals: int = 0) -> str:
    """Group thousands with '.' and use ',' for decimals (id-ID)."""
    number = _safe_float(value)
    text = f"{abs(number):,.{max(0, int(decimals))}f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"-{text}" if number < 0 and round(abs(number), int(decimals)) != 0 else text


def format_currency(value: Any) -> str:
    number = _safe_float(value)
    body = format_number(abs(number))
    return f"-Rp {body}" if number < 0 and body != "0" else f"Rp {body}"


def format_flow(value: Any) -> str:
    """Currency for positive flows; a dash for zero so idle sites read as empty."""
    return format_currency(value) if _safe_float(value) > 0 else "-"


def format_litres(value: Any) -> str:
    return f"{format_number(value)} L"


def trend_tone(trend: str | None, *, higher_is_good: bool = True) -> str:
    if not trend or trend == "+0.00%":
        return "neutral"
    rising = trend.startswith("+")
    return "good" if rising == higher_is_good else "bad"
