"""
Standardization Utilities
=========================

Mean-centering for regression predictors.

- NaN-safe: pandas mean skips NaN by default
- Column mapping: aq_score -> aq_c, age -> age_c
"""

from __future__ import annotations

import pandas as pd


CENTERED_COLUMN_MAPPING: dict[str, str] = {
    "aq_score": "aq_c",
    "age": "age_c",
}

DEFAULT_CENTER_COLUMNS: list[str] = ["aq_score", "age"]


def center_predictors(
    df: pd.DataFrame,
    columns: list[str] | None = None,
    column_mapping: dict[str, str] | None = None,
) -> pd.DataFrame:
    """
    Add mean-centered copies of continuous predictors.

    Returns a copy with ``<col>_c`` columns (or the names in
    ``column_mapping``); the means used are stored in ``attrs["centering"]``.
    """
    if columns is None:
        columns = DEFAULT_CENTER_COLUMNS
    if column_mapping is None:
        column_mapping = CENTERED_COLUMN_MAPPING

    result = df.copy()
    means: dict[str, float] = dict(result.attrs.get("centering", {}))
    for col in columns:
        if col not in result.columns:
            raise KeyError(f"Cannot center missing column '{col}'")
        c_col = column_mapping.get(col, f"{col}_c")
        mean_val = float(pd.to_numeric(result[col], errors="coerce").mean())
        result[c_col] = result[col] - mean_val
        means[col] = mean_val

    result.attrs["centering"] = means
    return result
