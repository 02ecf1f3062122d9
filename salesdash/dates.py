from __future__ import annotations

from datetime import date, datetime, time
from typing import Literal, Optional

import pandas as pd

DatePreset = Literal["all", "today", "7days", "15days", "30days", "custom"]
DATE_PRESETS = ("all", "today", "7days", "15days", "30days", "custom")
PRESET_DAYS = {"7days": 7, "15days": 15, "30days": 30}

END_OF_DAY = time(23, 59, 59, 999000)


def start_of_day(value: date) -> datetime:
    return datetime.combine(value if not isinstance(value, datetime) else value.date(), time.min)


def end_of_day(value: date) -> datetime:
    return datetime.combine(value if not isinstance(value, datetime) else value.date(), END_OF_DAY)


def _parse_day_month_year(parts: list[str]) -> Optional[datetime]:
    try:
        day, month, year = (int(p.strip()) for p in parts)
    except ValueError:
        return None
    if 0 <= year < 100:
        year += 2000
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def parse_sale_date(value: object) -> Optional[datetime]:
    """Parse a sale-date cell into a naive local datetime.

    ``dd/mm/yyyy`` (optionally followed by a time of day) is read day first.
    Two-digit years are taken as 20xx, so ``01/03/24`` is 2024 and not 1924.
    Anything else goes through ``pd.to_datetime``. Returns None when the cell
    is not a string or cannot be parsed.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    parts = text.split(" ")[0].split("/")
    if len(parts) == 3:
        return _parse_day_month_year(parts)
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_localize(None)
    return parsed.to_pydatetime()


def parse_input_date(value: object) -> Optional[date]:
    """Parse a date picked in the UI (``YYYY-MM-DD`` or a date object)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = pd.to_datetime(str(value).strip(), errors="coerce", format="%Y-%m-%d")
    if pd.isna(parsed):
        return None
    return parsed.date()


def sale_date_key(value: object) -> Optional[str]:
    """Date portion of a raw cell, cut at the first space; not parsed."""
    if value is None or (isinstance(value, float) and value != value):
        return None
    text = str(value).split(" ")[0]
    return text or None
