from __future__ import annotations

from datetime import date
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class DashboardFiltersModel(BaseModel):
    column_filters: Dict[str, List[str]] = Field(default_factory=dict)
    date_preset: Literal["all", "today", "7days", "15days", "30days", "custom"] = "all"
    custom_start: Optional[date] = None
    custom_end: Optional[date] = None
    search: str = ""
    chart_dimension: Optional[str] = None
    chart_metric: Optional[str] = None


class InvestmentsModel(BaseModel):
    manual: float = 0.0
    by_cluster: Dict[str, float] = Field(default_factory=dict)


class MetaHeadersResponse(BaseModel):
    headers: List[str]
    header_types: Dict[str, str]
    roles: Dict[str, Optional[str]]


class MetaOptionsResponse(BaseModel):
    options: Dict[str, List[str]]
