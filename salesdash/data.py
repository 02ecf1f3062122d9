from __future__ import annotations

import logging
import os
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from salesdash.cells import cell_to_str, is_missing
from salesdash.filters import DashboardFilters, filter_mask, normalize_filters
from salesdash.schema import ColumnRoles, resolve_roles

logger = logging.getLogger(__name__)

DATA_DIR = Path(os.getenv("SALESDASH_DATA_DIR", Path(__file__).resolve().parents[1] / "data"))
FILE_GLOBS = ("*.csv", "*.xlsx")
POSITION_HINTS = os.getenv("SALESDASH_POSITION_HINTS", "1").strip().lower() not in {"0", "false", "no", "off"}

ROW_ID = "_id"
HEADER_TYPES = ("string", "number")


# ---------------- Dataset ----------------
def build_dataset(
    headers: Sequence[str],
    header_types: Mapping[str, str],
    rows: Iterable[Mapping[str, object]],
    *,
    position_hints: bool = POSITION_HINTS,
    source: Optional[str] = None,
) -> Dict[str, object]:
    """Freeze parsed rows into the data context used by every page.

    Each row gets ``_id`` equal to its position in the input; ids are never
    reassigned. Column roles are resolved once here.
    """
    headers = [str(h) for h in headers]
    if ROW_ID in headers:
        # row positions replace a source id column
        logger.info("Dropping source column %r; row ids are positional", ROW_ID)
        headers = [h for h in headers if h != ROW_ID]
    records = [dict(r) for r in rows]
    frame = pd.DataFrame(records, columns=headers) if records else pd.DataFrame(columns=headers)
    frame = frame.astype(object)
    frame.insert(0, ROW_ID, range(len(frame)))
    frame.index = frame[ROW_ID].to_numpy()

    types = {h: (header_types.get(h) if header_types.get(h) in HEADER_TYPES else "string") for h in headers}
    roles = resolve_roles(headers, position_hints=position_hints)
    if roles.unresolved():
        logger.debug("Unresolved column roles: %s", ", ".join(roles.unresolved()))

    return {
        "files": [source] if source else [],
        "headers": headers,
        "header_types": types,
        "rows": frame,
        "roles": roles,
    }


def _frame_to_rows(df: pd.DataFrame) -> Tuple[List[str], Dict[str, str], List[Dict[str, object]]]:
    headers = [str(c).strip() for c in df.columns]
    df = df.copy()
    df.columns = headers
    header_types: Dict[str, str] = {}
    for col in headers:
        series = df[col]
        if pd.api.types.is_datetime64_any_dtype(series):
            df[col] = series.dt.strftime("%d/%m/%Y %H:%M:%S")
            header_types[col] = "string"
        elif pd.api.types.is_bool_dtype(series):
            df[col] = series.astype(str)
            header_types[col] = "string"
        elif pd.api.types.is_numeric_dtype(series):
            header_types[col] = "number"
        else:
            df[col] = series.map(lambda v: None if is_missing(v) else cell_to_str(v))
            header_types[col] = "string"
    rows = []
    for record in df.to_dict(orient="records"):
        rows.append({k: v for k, v in record.items() if not is_missing(v)})
    return headers, header_types, rows


def load_dataset(
    source: Union[Path, str, BinaryIO],
    *,
    name: Optional[str] = None,
    position_hints: bool = POSITION_HINTS,
) -> Dict[str, object]:
    """Read a CSV or XLSX export (a path or an uploaded buffer)."""
    name = name or Path(str(getattr(source, "name", source))).name
    if Path(name).suffix.lower() in {".xlsx", ".xls"}:
        df = pd.read_excel(source, engine="openpyxl")
    else:
        df = pd.read_csv(source, sep=None, engine="python", encoding="utf-8-sig")
    df = df.dropna(how="all")
    headers, header_types, rows = _frame_to_rows(df)
    logger.info("Loaded %d rows x %d columns from %s", len(rows), len(headers), name)
    return build_dataset(headers, header_types, rows, position_hints=position_hints, source=name)


def get_source_files() -> List[Path]:
    files: List[Path] = []
    for pattern in FILE_GLOBS:
        files.extend(DATA_DIR.glob(pattern))
    return sorted(files, key=lambda f: (f.stat().st_mtime, f.name))


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((f.name, f.stat().st_mtime) for f in files)


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(files_sig: Tuple[Tuple[str, float], ...]) -> Dict[str, object]:
    latest_name, _ = files_sig[-1]
    return load_dataset(DATA_DIR / latest_name)


def load_dashboard_data() -> Dict[str, object]:
    files = get_source_files()
    if not files:
        logger.info("No dataset found in %s", DATA_DIR)
        return build_dataset([], {}, [])
    return _load_dashboard_data_cached(file_signature(files))


# ---------------- Compute helpers ----------------
def filter_options(data_ctx: Dict[str, object], *, search: Optional[Mapping[str, str]] = None) -> Dict[str, List[str]]:
    """Distinct non-empty values per categorical filter column, over all rows."""
    frame: pd.DataFrame = data_ctx.get("rows", pd.DataFrame())
    roles: ColumnRoles = data_ctx.get("roles") or ColumnRoles()
    search = search or {}
    options: Dict[str, List[str]] = {}
    for col in roles.categorical_filter_columns():
        if col not in frame.columns:
            options[col] = []
            continue
        values = sorted({v for v in frame[col].map(cell_to_str) if v != ""})
        q = (search.get(col) or "").lower()
        if q:
            values = [v for v in values if q in v.lower()]
        options[col] = values
    return options


def rows_to_records(frame: pd.DataFrame, headers: Sequence[str]) -> List[Dict[str, object]]:
    if frame.empty:
        return []
    cols = [ROW_ID] + [h for h in headers if h in frame.columns]
    records = frame[cols].to_dict(orient="records")
    return [{k: (None if is_missing(v) else v) for k, v in r.items()} for r in records]


def format_brl(value: object) -> str:
    if value is None or is_missing(value):
        return "R$ 0,00"
    s = f"{float(value):,.2f}"
    return "R$ " + s.replace(",", "_").replace(".", ",").replace("_", ".")


def prepare_context(
    filters: dict | DashboardFilters,
    data_ctx: Dict[str, object],
    *,
    now: Optional[datetime] = None,
) -> Dict[str, object]:
    frame: pd.DataFrame = data_ctx.get("rows", pd.DataFrame())
    headers: List[str] = list(data_ctx.get("headers", []) or [])
    header_types: Dict[str, str] = dict(data_ctx.get("header_types", {}) or {})
    roles: ColumnRoles = data_ctx.get("roles") or resolve_roles(headers)
    now = now or datetime.now()

    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters)

    mask = filter_mask(frame, filt, roles, headers, now)
    filtered_rows = frame[mask]

    return {
        "filters": filt,
        "now": now,
        "headers": headers,
        "header_types": header_types,
        "roles": roles,
        "rows": frame,
        "filtered_rows": filtered_rows,
    }
