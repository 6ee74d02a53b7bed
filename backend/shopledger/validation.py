from __future__ import annotations

import math
from datetime import date
from typing import Any

from .errors import InvalidInput
from .time_utils import parse_iso_date


# Largest amount accepted in any currency; guards float columns against nonsense input.
MAX_AMOUNT = 1_000_000_000_000.0


def coerce_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """Strict integer: rejects floats, decimals and scientific notation."""
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidInput(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise InvalidInput(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise InvalidInput(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise InvalidInput(f"{field} must be an integer")
    elif isinstance(value, float):
        raise InvalidInput(f"{field} must be an integer, not a decimal")
    else:
        raise InvalidInput(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise InvalidInput(f"{field} must be >= {minimum}", details={field: result})
    return result


def coerce_amount(value: Any, field: str, *, allow_negative: bool = False, default: float | None = None) -> float:
    if value is None or value == "":
        if default is not None:
            return default
        raise InvalidInput(f"{field} is required")
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be a number")
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be a number")
    if not math.isfinite(result):
        raise InvalidInput(f"{field} must be a finite number")
    if not allow_negative and result < 0:
        raise InvalidInput(f"{field} must be >= 0", details={field: result})
    if abs(result) > MAX_AMOUNT:
        raise InvalidInput(f"{field} is out of range", details={field: result})
    return result


def require_str(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{field} is required")
    return value.strip()


def optional_str(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def coerce_date(value: Any, field: str) -> date | None:
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be an ISO date", details={field: value})
