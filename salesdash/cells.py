"""Cell coercion shared by the filter engine and the reducers.

Cells arrive as strings or numbers; pandas adds NaN for missing cells and
turns integer columns with gaps into floats. These helpers give every cell a
stable string form and a numeric form.
"""

from __future__ import annotations

import math

import numpy as np
import pandas as pd


def is_missing(value: object) -> bool:
    if value is None or value is pd.NA or value is pd.NaT:
        return True
    return isinstance(value, (float, np.floating)) and math.isnan(value)


def cell_to_str(value: object) -> str:
    if is_missing(value):
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, np.bool_)):
        return "true" if value else "false"
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        f = float(value)
        if math.isinf(f):
            return "Infinity" if f > 0 else "-Infinity"
        if f.is_integer():
            return str(int(f))
        return repr(f)
    return str(value)


def to_number(value: object) -> float:
    """Numeric value of a metric cell; anything non-numeric counts as 0."""
    if is_missing(value):
        return 0.0
    if isinstance(value, (bool, np.bool_)):
        return float(value)
    if isinstance(value, (int, float, np.integer, np.floating)):
        out = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            out = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(out) or math.isinf(out):
        return 0.0
    return out


def category_label(value: object, placeholder: str) -> str:
    text = cell_to_str(value).strip()
    return text or placeholder


def string_column(frame: pd.DataFrame, col: str) -> pd.Series:
    if col not in frame.columns:
        return pd.Series("", index=frame.index, dtype=object)
    return frame[col].map(cell_to_str).astype(object)


def number_column(frame: pd.DataFrame, col: str) -> pd.Series:
    if col not in frame.columns:
        return pd.Series(0.0, index=frame.index, dtype=float)
    return frame[col].map(to_number).astype(float)
