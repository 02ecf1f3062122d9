from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from salesdash.cells import number_column
from salesdash.schema import ColumnRoles
from salesdash.filters import DashboardFilters

TAX_RATE = 0.06


def kpi_summary(revenue: float, investment: float) -> Dict[str, float]:
    tax = revenue * TAX_RATE
    profit = revenue - investment - tax
    roas = revenue / investment if investment > 0 else 0.0
    margin_pct = profit / revenue * 100 if revenue > 0 else 0.0
    return {
        "revenue": revenue,
        "investment": investment,
        "tax": tax,
        "profit": profit,
        "roas": roas,
        "margin_pct": margin_pct,
    }


def total_revenue(frame: pd.DataFrame, roles: ColumnRoles) -> float:
    if frame.empty or not roles.revenue:
        return 0.0
    return float(number_column(frame, roles.revenue).sum())


def compute_kpis(filters: DashboardFilters, ctx: Dict[str, Any], *, investment: float = 0.0) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    roles: ColumnRoles = ctx.get("roles") or ColumnRoles()

    revenue = total_revenue(df, roles)
    kpis = kpi_summary(revenue, float(investment or 0.0))
    kpis["sales"] = int(len(df))
    return {
        "filters": asdict(filters),
        "kpis": kpis,
        "revenue_available": roles.revenue is not None,
    }
