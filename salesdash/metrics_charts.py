from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

from salesdash.cells import category_label, cell_to_str, number_column
from salesdash.charts import palette_scale, to_vega_spec
from salesdash.dates import parse_sale_date
from salesdash.filters import DashboardFilters, date_matches
from salesdash.schema import ColumnRoles

TOP_N_CHART = 15
TOP_N_DISTRIBUTION = 5
PLACEHOLDER = "N/A"
VOLUME_PRESETS = ("today", "7days", "30days")


def chart_axes(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """Selected cross-tab axes, falling back to the product and revenue roles."""
    headers: List[str] = ctx.get("headers", [])
    header_types: Dict[str, str] = ctx.get("header_types", {})
    roles: ColumnRoles = ctx.get("roles") or ColumnRoles()

    dimension = filters.chart_dimension if filters.chart_dimension in headers else roles.product
    metric = filters.chart_metric if filters.chart_metric in headers else None
    if metric is None:
        if roles.revenue and header_types.get(roles.revenue) == "number":
            metric = roles.revenue
        else:
            metric = next((h for h in headers if header_types.get(h) == "number"), roles.revenue)
    return {"dimension": dimension, "metric": metric}


def crosstab(frame: pd.DataFrame, dimension: Optional[str], metric: Optional[str], *, top_n: int = TOP_N_CHART) -> pd.DataFrame:
    if frame.empty or not dimension:
        return pd.DataFrame(columns=["name", "value"])
    if dimension in frame.columns:
        names = frame[dimension].map(lambda v: cell_to_str(v) or PLACEHOLDER)
    else:
        names = pd.Series(PLACEHOLDER, index=frame.index)
    values = number_column(frame, metric) if metric else pd.Series(0.0, index=frame.index)
    out = (
        pd.DataFrame({"name": names.astype(object), "value": values})
        .groupby("name", sort=False)["value"]
        .sum()
        .reset_index()
        .sort_values("value", ascending=False, kind="mergesort")
    )
    return out.head(top_n).reset_index(drop=True)


def sales_by_day(frame: pd.DataFrame, roles: ColumnRoles) -> pd.DataFrame:
    columns = ["date", "sales", "full"]
    if frame.empty or not roles.date or roles.date not in frame.columns:
        return pd.DataFrame(columns=columns)
    days = [d.date().isoformat() for d in (parse_sale_date(v) for v in frame[roles.date]) if d is not None]
    if not days:
        return pd.DataFrame(columns=columns)
    counts = pd.Series(days, dtype=object).value_counts().sort_index()
    out = counts.rename_axis("full").reset_index(name="sales")
    out["sales"] = out["sales"].astype(int)
    out["date"] = out["full"].map(lambda iso: f"{iso[8:10]}/{iso[5:7]}")
    return out[columns]


def distribution(frame: pd.DataFrame, col: Optional[str], *, top_n: int = TOP_N_DISTRIBUTION) -> pd.DataFrame:
    if frame.empty or not col:
        return pd.DataFrame(columns=["name", "value"])
    if col in frame.columns:
        names = frame[col].map(lambda v: category_label(v, PLACEHOLDER))
    else:
        names = pd.Series(PLACEHOLDER, index=frame.index)
    counts = names.astype(object).groupby(names.astype(object), sort=False).size()
    out = counts.rename_axis("name").reset_index(name="value").sort_values("value", ascending=False, kind="mergesort")
    out["value"] = out["value"].astype(int)
    return out.head(top_n).reset_index(drop=True)


def volume_stats(frame: pd.DataFrame, roles: ColumnRoles, now: datetime) -> Dict[str, int]:
    """Row counts for today / 7 days / 30 days over the whole dataset."""
    stats = {preset: 0 for preset in VOLUME_PRESETS}
    if frame.empty or not roles.date or roles.date not in frame.columns:
        return stats
    cells = frame[roles.date].tolist()
    for preset in VOLUME_PRESETS:
        window = DashboardFilters(date_preset=preset)
        stats[preset] = sum(1 for v in cells if date_matches(v, window, now))
    return stats


def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    return df.to_dict(orient="records") if not df.empty else []


def compute_charts(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    all_rows: pd.DataFrame = ctx.get("rows", pd.DataFrame())
    roles: ColumnRoles = ctx.get("roles") or ColumnRoles()
    now: datetime = ctx.get("now") or datetime.now()

    axes = chart_axes(filters, ctx)
    bars = crosstab(df, axes["dimension"], axes["metric"])
    daily = sales_by_day(df, roles)
    distributions = {
        "campaign": distribution(df, roles.campaign),
        "term": distribution(df, roles.term),
        "product": distribution(df, roles.product),
    }

    charts: Dict[str, Any] = {}
    if not bars.empty:
        hover = alt.selection_point(fields=["name"], on="mouseover", empty="all")
        bar = (
            alt.Chart(bars)
            .mark_bar(cornerRadiusTopLeft=4, cornerRadiusTopRight=4)
            .encode(
                x=alt.X("name:N", title=axes["dimension"], sort="-y", axis=alt.Axis(labelLimit=140, grid=False)),
                y=alt.Y("value:Q", title=axes["metric"], axis=alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)),
                color=alt.value("#6366f1"),
                opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
                tooltip=[alt.Tooltip("name:N", title=axes["dimension"]), alt.Tooltip("value:Q", title=axes["metric"], format=",.2f")],
            )
            .add_params(hover)
            .properties(height=300)
        )
        charts["crosstab"] = to_vega_spec(bar)

    if not daily.empty:
        area = (
            alt.Chart(daily)
            .mark_area(line={"color": "#6366f1", "strokeWidth": 3}, point={"filled": True, "size": 50, "color": "#6366f1"}, opacity=0.3, color="#6366f1")
            .encode(
                x=alt.X("full:T", title="Day", axis=alt.Axis(format="%d/%m", grid=False)),
                y=alt.Y("sales:Q", title="Sales", axis=alt.Axis(format="d", gridDash=[4, 4], domain=False, ticks=False)),
                tooltip=[alt.Tooltip("date:N", title="Day"), alt.Tooltip("sales:Q", title="Sales")],
            )
            .properties(height=300)
        )
        charts["sales_by_day"] = to_vega_spec(area)

    for name, dist in distributions.items():
        if dist.empty:
            continue
        domain = [str(x) for x in dist["name"].tolist()]
        donut = (
            alt.Chart(dist)
            .mark_arc(innerRadius=50, outerRadius=70, padAngle=0.05)
            .encode(
                theta=alt.Theta("value:Q"),
                color=alt.Color("name:N", scale=palette_scale(domain), sort=domain, legend=alt.Legend(orient="bottom")),
                tooltip=[alt.Tooltip("name:N"), alt.Tooltip("value:Q", title="Sales")],
            )
        )
        charts[f"{name}_distribution"] = to_vega_spec(donut)

    return {
        "filters": asdict(filters),
        "axes": axes,
        "crosstab": _records(bars),
        "sales_by_day": _records(daily),
        "distributions": {name: _records(dist) for name, dist in distributions.items()},
        "volume": volume_stats(all_rows, roles, now),
        "charts": charts,
    }
