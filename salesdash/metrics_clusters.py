from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional, Set, Tuple

import pandas as pd

from salesdash.cells import category_label, number_column
from salesdash.dates import sale_date_key
from salesdash.filters import DashboardFilters
from salesdash.investments import Investments
from salesdash.metrics_kpis import TAX_RATE
from salesdash.schema import ColumnRoles

KEY_SEPARATOR = "\x1f"
PLACEHOLDER_PRODUCT = "Sem Produto"
PLACEHOLDER_CAMPAIGN = "Orgânico"
PLACEHOLDER_TERM = "N/A"

CLUSTER_DIMS = ["product", "campaign", "term"]


def cluster_key(product: object, campaign: object, term: object) -> str:
    return KEY_SEPARATOR.join(
        [
            category_label(product, PLACEHOLDER_PRODUCT),
            category_label(campaign, PLACEHOLDER_CAMPAIGN),
            category_label(term, PLACEHOLDER_TERM),
        ]
    )


def _label_column(frame: pd.DataFrame, col: Optional[str], placeholder: str) -> pd.Series:
    if not col or col not in frame.columns:
        return pd.Series(placeholder, index=frame.index, dtype=object)
    return frame[col].map(lambda v: category_label(v, placeholder)).astype(object)


def cluster_metrics(sales: int, revenue: float, investment: Optional[float]) -> Dict[str, Any]:
    spend = float(investment or 0.0)
    tax = revenue * TAX_RATE
    profit = revenue - spend - tax
    return {
        "investment": investment,
        "investment_pending": investment is None,
        "tax": tax,
        "profit": profit,
        "roi": revenue / spend if spend > 0 else 0.0,
        "cpa": spend / sales if sales > 0 else 0.0,
        "margin_pct": profit / revenue * 100 if revenue > 0 else 0.0,
    }


def group_clusters(frame: pd.DataFrame, roles: ColumnRoles) -> pd.DataFrame:
    """One row per (product, campaign, term) with sales, revenue and sale dates.

    Sorted by sales, then revenue (both descending), then key.
    """
    columns = ["key"] + CLUSTER_DIMS + ["sales", "revenue", "sale_dates"]
    if frame.empty:
        return pd.DataFrame(columns=columns)

    work = pd.DataFrame(
        {
            "product": _label_column(frame, roles.product, PLACEHOLDER_PRODUCT),
            "campaign": _label_column(frame, roles.campaign, PLACEHOLDER_CAMPAIGN),
            "term": _label_column(frame, roles.term, PLACEHOLDER_TERM),
            "revenue": number_column(frame, roles.revenue) if roles.revenue else 0.0,
        },
        index=frame.index,
    )

    sale_dates: Dict[Tuple[str, str, str], Set[str]] = {}
    if roles.date and roles.date in frame.columns:
        days = frame[roles.date].map(sale_date_key)
        for group, day in zip(zip(work["product"], work["campaign"], work["term"]), days):
            bucket = sale_dates.setdefault(group, set())
            if day:
                bucket.add(day)

    grouped = (
        work.groupby(CLUSTER_DIMS, sort=False)
        .agg(sales=("revenue", "size"), revenue=("revenue", "sum"))
        .reset_index()
    )
    grouped["key"] = [KEY_SEPARATOR.join(t) for t in zip(grouped["product"], grouped["campaign"], grouped["term"])]
    grouped["sale_dates"] = [
        sorted(sale_dates.get(t, set())) for t in zip(grouped["product"], grouped["campaign"], grouped["term"])
    ]
    grouped = grouped.sort_values(["sales", "revenue", "key"], ascending=[False, False, True], kind="mergesort")
    return grouped[columns].reset_index(drop=True)


def compute_clusters(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    *,
    investments: Optional[Investments] = None,
) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    roles: ColumnRoles = ctx.get("roles") or ColumnRoles()
    investments = investments or Investments()

    grouped = group_clusters(df, roles)
    clusters: List[Dict[str, Any]] = []
    for rank, r in enumerate(grouped.itertuples(index=False), start=1):
        sales = int(r.sales)
        revenue = float(r.revenue)
        record: Dict[str, Any] = {
            "rank": rank,
            "key": r.key,
            "product": r.product,
            "campaign": r.campaign,
            "term": r.term,
            "sales": sales,
            "revenue": revenue,
            "sale_dates": list(r.sale_dates),
        }
        record.update(cluster_metrics(sales, revenue, investments.for_cluster(r.key)))
        clusters.append(record)

    return {
        "filters": asdict(filters),
        "clusters": clusters,
        "totals": {
            "clusters": len(clusters),
            "sales": int(sum(c["sales"] for c in clusters)),
            "revenue": float(sum(c["revenue"] for c in clusters)),
        },
    }
