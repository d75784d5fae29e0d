"""Spanish display formatting."""

from __future__ import annotations

import math
from typing import Any

from .parsing import parse_locale_number


def _group_thousands(digits: str) -> str:
    # es-ES leaves four-digit numbers ungrouped.
    if len(digits) <= 4:
        return digits
    groups = []
    while digits:
        groups.append(digits[-3:])
        digits = digits[:-3]
    return ".".join(reversed(groups))


def _format_es(number: float, decimals: int) -> str:
    sign = "-" if number < 0 else ""
    text = f"{abs(number):.{decimals}f}"
    integer, _, fraction = text.partition(".")
    formatted = _group_thousands(integer)
    if fraction:
        formatted += f",{fraction}"
    return f"{sign}{formatted}"


def format_percent_es(value: Any) -> Any:
    """``45.7`` → ``"45,70"``, ``50`` → ``"50"``; junk is returned as given."""

    number = parse_locale_number(value, default=float("nan"))
    if math.isnan(number):
        return value
    decimals = 0 if float(number).is_integer() else 2
    return _format_es(number, decimals)


def format_number_es(value: Any) -> str:
    number = parse_locale_number(value, default=float("nan"))
    if math.isnan(number):
        return "0"
    return _format_es(number, 0)
