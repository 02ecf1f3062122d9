from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from salesdash.cells import cell_to_str, string_column
from salesdash.dates import (
    DATE_PRESETS,
    PRESET_DAYS,
    DatePreset,
    end_of_day,
    parse_input_date,
    parse_sale_date,
    start_of_day,
)
from salesdash.schema import ColumnRoles


@dataclass(frozen=True)
class DashboardFilters:
    column_filters: Dict[str, List[str]] = field(default_factory=dict)
    date_preset: DatePreset = "all"
    custom_start: Optional[date] = None
    custom_end: Optional[date] = None
    search: str = ""
    chart_dimension: Optional[str] = None
    chart_metric: Optional[str] = None

    def active_column_filters(self) -> Dict[str, List[str]]:
        return {col: vals for col, vals in self.column_filters.items() if vals}


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v)
        if s not in out:
            out.append(s)
    return out


def normalize_filters(raw: dict) -> DashboardFilters:
    column_filters: Dict[str, List[str]] = {}
    for col, vals in (raw.get("column_filters") or {}).items():
        selected = _as_str_list(vals)
        if selected:
            column_filters[str(col)] = selected

    date_preset = raw.get("date_preset") or "all"
    if date_preset not in DATE_PRESETS:
        date_preset = "all"

    search = raw.get("search") or ""
    chart_dimension = raw.get("chart_dimension") or None
    chart_metric = raw.get("chart_metric") or None

    return DashboardFilters(
        column_filters=column_filters,
        date_preset=date_preset,
        custom_start=parse_input_date(raw.get("custom_start")),
        custom_end=parse_input_date(raw.get("custom_end")),
        search=str(search),
        chart_dimension=str(chart_dimension) if chart_dimension else None,
        chart_metric=str(chart_metric) if chart_metric else None,
    )


# ---------------- Explicit actions ----------------
def toggle_filter_value(filters: DashboardFilters, column: str, value: str) -> DashboardFilters:
    current = list(filters.column_filters.get(column, []))
    if value in current:
        current.remove(value)
    else:
        current.append(value)
    column_filters = dict(filters.column_filters)
    column_filters[column] = current
    return replace(filters, column_filters=column_filters)


def set_column_filter(filters: DashboardFilters, column: str, values: Iterable[object]) -> DashboardFilters:
    column_filters = dict(filters.column_filters)
    column_filters[column] = _as_str_list(values)
    return replace(filters, column_filters=column_filters)


def set_date_preset(filters: DashboardFilters, preset: str) -> DashboardFilters:
    if preset not in DATE_PRESETS:
        raise ValueError(f"Unknown date preset: {preset!r}")
    return replace(filters, date_preset=preset)


def set_custom_range(filters: DashboardFilters, start: object, end: object) -> DashboardFilters:
    return replace(filters, date_preset="custom", custom_start=parse_input_date(start), custom_end=parse_input_date(end))


def set_search(filters: DashboardFilters, search: str) -> DashboardFilters:
    return replace(filters, search=search or "")


def set_chart_axes(filters: DashboardFilters, dimension: Optional[str], metric: Optional[str]) -> DashboardFilters:
    return replace(filters, chart_dimension=dimension or None, chart_metric=metric or None)


def clear_all_filters(filters: DashboardFilters) -> DashboardFilters:
    """Back to defaults. Investments live elsewhere and are not touched."""
    return DashboardFilters()


# ---------------- Predicates ----------------
def date_matches(value: object, filters: DashboardFilters, now: datetime) -> bool:
    row_date = parse_sale_date(value)
    if row_date is None:
        return False
    preset = filters.date_preset
    if preset == "today":
        return row_date.date() == now.date()
    if preset in PRESET_DAYS:
        return row_date >= end_of_day(now) - timedelta(days=PRESET_DAYS[preset])
    if preset == "custom":
        if filters.custom_start is None or filters.custom_end is None:
            return True
        return start_of_day(filters.custom_start) <= row_date <= end_of_day(filters.custom_end)
    return True


def include_row(
    row: Mapping[str, object],
    filters: DashboardFilters,
    roles: ColumnRoles,
    headers: Sequence[str],
    now: datetime,
) -> bool:
    if roles.date and filters.date_preset != "all":
        if not date_matches(row.get(roles.date), filters, now):
            return False
    for col, selected in filters.active_column_filters().items():
        if cell_to_str(row.get(col)) not in selected:
            return False
    if filters.search:
        q = filters.search.lower()
        return any(q in cell_to_str(row.get(h)).lower() for h in headers)
    return True


def filter_mask(
    frame: pd.DataFrame,
    filters: DashboardFilters,
    roles: ColumnRoles,
    headers: Sequence[str],
    now: datetime,
) -> pd.Series:
    """Vectorized ``include_row`` over a rows frame."""
    mask = pd.Series(True, index=frame.index, dtype=bool)
    if frame.empty:
        return mask

    if roles.date and filters.date_preset != "all":
        if roles.date in frame.columns:
            mask &= frame[roles.date].map(lambda v: date_matches(v, filters, now)).astype(bool)
        else:
            mask &= False

    for col, selected in filters.active_column_filters().items():
        mask &= string_column(frame, col).isin(set(selected))

    if filters.search:
        q = filters.search.lower()
        hits = pd.Series(False, index=frame.index, dtype=bool)
        for h in headers:
            hits |= string_column(frame, h).str.lower().str.contains(q, regex=False)
        mask &= hits
    return mask
