from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from salesdash.cells import cell_to_str, is_missing, to_number
from salesdash.dates import parse_sale_date
from salesdash.filters import DashboardFilters
from salesdash.schema import ROLE_SPECS, ColumnRoles


def compute_debug(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    rows: pd.DataFrame = ctx.get("rows", pd.DataFrame())
    filtered: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    roles: ColumnRoles = ctx.get("roles") or ColumnRoles()

    payload = {
        "filters": asdict(filters),
        "row_counts": {
            "rows": int(len(rows)),
            "filtered_rows": int(len(filtered)),
            "headers": len(ctx.get("headers", []) or []),
        },
        "roles": {role: getattr(roles, role) for role in ROLE_SPECS},
        "unresolved_roles": roles.unresolved(),
        "cleaning_checks": {
            "unparseable_dates": 0,
            "non_numeric_revenue": 0,
        },
        "header_types": dict(ctx.get("header_types", {}) or {}),
    }

    if rows.empty:
        return payload

    if roles.date and roles.date in rows.columns:
        payload["cleaning_checks"]["unparseable_dates"] = int(
            sum(1 for v in rows[roles.date] if parse_sale_date(v) is None)
        )
    if roles.revenue and roles.revenue in rows.columns:
        # Zero-valued cells are legitimate; count cells that only coerce to 0.
        payload["cleaning_checks"]["non_numeric_revenue"] = int(
            sum(
                1
                for v in rows[roles.revenue]
                if to_number(v) == 0.0 and not is_missing(v) and cell_to_str(v).strip() not in {"0", "0.0", ""}
            )
        )
    return payload
