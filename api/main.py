from __future__ import annotations

import logging
import math
from typing import Literal, Optional

import numpy as np
import pandas as pd
from fastapi import Body, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DashboardFiltersModel, InvestmentsModel, MetaHeadersResponse, MetaOptionsResponse
from salesdash.data import filter_options, load_dashboard_data, prepare_context, rows_to_records
from salesdash.filters import DashboardFilters, normalize_filters
from salesdash.investments import Investments, normalize_investments
from salesdash.metrics_charts import compute_charts
from salesdash.metrics_clusters import compute_clusters, group_clusters
from salesdash.metrics_debug import compute_debug
from salesdash.metrics_kpis import compute_kpis
from salesdash.schema import ROLE_SPECS


app = FastAPI(title="Sales Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: DashboardFiltersModel) -> DashboardFilters:
    return normalize_filters(model.model_dump())


def _investments_from_model(model: Optional[InvestmentsModel]) -> Investments:
    return normalize_investments(model.model_dump() if model is not None else None)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/headers")
def meta_headers():
    try:
        data_ctx = load_dashboard_data()
        roles = data_ctx["roles"]
        payload = MetaHeadersResponse(
            headers=data_ctx.get("headers", []),
            header_types=data_ctx.get("header_types", {}),
            roles={role: getattr(roles, role) for role in ROLE_SPECS},
        )
        return _json(payload.model_dump())
    except Exception as exc:
        logger.exception("meta_headers failed")
        return _error(exc)


@app.get("/meta/options")
def meta_options(column: Optional[str] = Query(default=None), q: str = Query(default="")):
    try:
        data_ctx = load_dashboard_data()
        search = {column: q} if column and q else None
        options = filter_options(data_ctx, search=search)
        if column:
            options = {column: options.get(column, [])}
        return _json(MetaOptionsResponse(options=options).model_dump())
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


@app.post("/rows")
def rows(filters: DashboardFiltersModel, limit: int = Query(default=500, ge=1, le=10000)):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        filtered = ctx["filtered_rows"]
        return _json(
            {
                "total": int(len(filtered)),
                "headers": ctx["headers"],
                "rows": rows_to_records(filtered.head(limit), ctx["headers"]),
            }
        )
    except Exception as exc:
        logger.exception("rows failed")
        return _error(exc)


@app.post("/kpis")
def kpis(filters: DashboardFiltersModel, investments: Optional[InvestmentsModel] = Body(default=None)):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_kpis(f, ctx, investment=_investments_from_model(investments).manual))
    except Exception as exc:
        logger.exception("kpis failed")
        return _error(exc)


@app.post("/clusters")
def clusters(filters: DashboardFiltersModel, investments: Optional[InvestmentsModel] = Body(default=None)):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_clusters(f, ctx, investments=_investments_from_model(investments)))
    except Exception as exc:
        logger.exception("clusters failed")
        return _error(exc)


@app.post("/charts")
def charts(filters: DashboardFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_charts(f, ctx))
    except Exception as exc:
        logger.exception("charts failed")
        return _error(exc)


@app.post("/debug")
def debug(filters: DashboardFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_debug(f, ctx))
    except Exception as exc:
        logger.exception("debug failed")
        return _error(exc)


@app.post("/export/{view}")
def export_view(view: Literal["rows", "clusters"], filters: DashboardFiltersModel):
    data_ctx = load_dashboard_data()
    f = _filters_from_model(filters)
    ctx = prepare_context(f, data_ctx)

    if view == "clusters":
        export_df = group_clusters(ctx["filtered_rows"], ctx["roles"])
        export_df = export_df.assign(sale_dates=export_df["sale_dates"].map(lambda days: ", ".join(days)))
    else:
        export_df = pd.DataFrame(rows_to_records(ctx["filtered_rows"], ctx["headers"]))
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={view}.csv"})
