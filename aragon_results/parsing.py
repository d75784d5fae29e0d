"""Text normalization and locale-aware number parsing for spreadsheet cells."""

from __future__ import annotations

import datetime as dt
import math
import re
import unicodedata
from typing import Any, Mapping, Optional, Sequence

from .config import DEFAULT_PARTY_COLOR

KEY_SEPARATOR = "|"

SPANISH_MONTHS = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)

_thousands_pattern = re.compile(r"^[+-]?\d{1,3}(?:\.\d{3})+$")
_integer_pattern = re.compile(r"^[+-]?\d+$")
_date_separator_pattern = re.compile(r"[/\-.]")


def normalize_text(value: Any) -> str:
    """Lowercase, strip accents and trim a label so it can be used as a key."""

    if value is None:
        return ""
    decomposed = unicodedata.normalize("NFD", str(value).lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip()


def municipality_key(name: Any, province: Any) -> str:
    return f"{normalize_text(name)}{KEY_SEPARATOR}{normalize_text(province)}"


def is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def pick(row: Mapping[str, Any], aliases: Sequence[str], default: str = "") -> Any:
    """Return the first non-blank value found under any of ``aliases``.

    Spreadsheet headers drift between ``lado``/``Lado`` and similar
    spellings, so each logical field is looked up through an ordered list of
    candidate column names.
    """

    for alias in aliases:
        value = row.get(alias)
        if not is_blank(value):
            return value
    return default


def _clean_numeric_text(value: Any) -> str:
    text = str(value).strip().replace("%", "").replace("\u00a0", "").replace(" ", "")
    if "," in text:
        return text.replace(".", "").replace(",", ".")
    if _thousands_pattern.match(text):
        return text.replace(".", "")
    return text


def parse_locale_number(value: Any, default: float = 0.0) -> float:
    """Convert ``"45,7%"``, ``"1.234"`` or a plain number to ``float``.

    Never raises: anything that does not yield a finite number returns
    ``default``.
    """

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else default
    text = _clean_numeric_text(value)
    if not text:
        return default
    try:
        number = float(text)
    except ValueError:
        return default
    return number if math.isfinite(number) else default


def parse_locale_int(value: Any, default: int = 0) -> int:
    """Strict integer variant of :func:`parse_locale_number`."""

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else default
    text = _clean_numeric_text(value)
    if not _integer_pattern.match(text):
        return default
    return int(text)


def normalize_color(value: Any, default: str = DEFAULT_PARTY_COLOR) -> str:
    if is_blank(value):
        return default
    return f"#{str(value).strip().lstrip('#')}"


def parse_day_month_year(value: Any) -> Optional[dt.date]:
    """Parse ``dd/mm/yyyy`` (also ``-`` or ``.`` separated) into a date.

    Two-digit years, missing components and impossible dates are rejected
    with ``None``.
    """

    if is_blank(value):
        return None
    parts = _date_separator_pattern.split(str(value).strip())
    if len(parts) != 3:
        return None
    day_text, month_text, year_text = (part.strip() for part in parts)
    if not all(part.isdecimal() for part in (day_text, month_text, year_text)):
        return None
    if len(year_text) != 4:
        return None
    try:
        return dt.date(int(year_text), int(month_text), int(day_text))
    except ValueError:
        return None


def format_update_timestamp(day: Any, time_label: Any) -> str:
    """Build ``"15 de junio de 2026 a las 20:30"`` or ``""`` when unparseable."""

    if is_blank(day) or is_blank(time_label):
        return ""
    date = parse_day_month_year(day)
    if date is None:
        return ""
    month = SPANISH_MONTHS[date.month - 1]
    return f"{date.day} de {month} de {date.year} a las {str(time_label).strip()}"
