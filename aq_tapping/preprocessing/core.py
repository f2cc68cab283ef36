"""
Core column helpers shared by the loaders.
"""

from __future__ import annotations

import warnings

import pandas as pd

from ..errors import DataValidationError, GenderRecodingError
from .constants import (
    COLUMN_ALIASES,
    GENDER_LABELS,
    GENDER_RAW_CODES,
    PARTICIPANT_ID_ALIASES,
)


def ensure_participant_id(df: pd.DataFrame, warn_threshold: float = 1.0) -> pd.DataFrame:
    """
    Ensure there is exactly one 'participant_id' column.
    Prefers an existing participant_id column, otherwise renames common aliases.
    """
    canonical = "participant_id"
    if canonical not in df.columns:
        for col in df.columns:
            if col in PARTICIPANT_ID_ALIASES and col != canonical:
                df = df.rename(columns={col: canonical})
                break
    if canonical not in df.columns:
        raise KeyError("No participant id column found in dataframe.")

    missing_count = df[canonical].isna().sum()
    missing_pct = missing_count / len(df) * 100 if len(df) > 0 else 0

    if missing_pct > warn_threshold:
        warnings.warn(
            f"participant_id column has {missing_pct:.1f}% missing values ({missing_count}/{len(df)} rows). "
            "This may cause silent data loss in downstream analyses.",
            UserWarning,
        )

    aliases = [col for col in df.columns if col in PARTICIPANT_ID_ALIASES and col != canonical]
    if aliases:
        df = df.drop(columns=aliases)
    return df


def normalize_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """Strip whitespace from headers and map known aliases to canonical names."""
    df = df.rename(columns=lambda c: str(c).strip())
    rename_map = {
        col: canonical
        for col, canonical in COLUMN_ALIASES.items()
        if col in df.columns and canonical not in df.columns
    }
    return df.rename(columns=rename_map)


def recode_gender(df: pd.DataFrame, column: str = "gender") -> pd.DataFrame:
    """
    Recode the raw 1/2 gender field to a 0/1 dummy (1 -> 0 male, 2 -> 1 female).

    Recoding is only defined on the raw scale. A frame that has already been
    recoded (tracked in ``df.attrs``) or that contains a 0 is rejected, so the
    mapping can never be applied twice.
    """
    if df.attrs.get("gender_recoded"):
        raise GenderRecodingError(f"'{column}' has already been recoded to 0/1.")

    values = pd.to_numeric(df[column], errors="coerce")
    if (values == 0).any():
        raise GenderRecodingError(
            f"'{column}' contains 0; expected raw codes {sorted(GENDER_RAW_CODES)}."
        )

    unknown = sorted(set(values.dropna().unique()) - set(GENDER_RAW_CODES))
    if unknown or values.isna().any():
        shown = unknown if unknown else ["<missing>"]
        raise DataValidationError(
            f"'{column}' has codes outside {sorted(GENDER_RAW_CODES)}: {shown}"
        )

    result = df.copy()
    result[column] = values.astype(int).map(GENDER_RAW_CODES).astype(int)
    result.attrs["gender_recoded"] = True
    return result


def attach_gender_label(df: pd.DataFrame, column: str = "gender") -> pd.DataFrame:
    """Add a human-readable 'gender_label' column for a recoded 0/1 gender field."""
    if not df.attrs.get("gender_recoded"):
        raise GenderRecodingError(f"'{column}' must be recoded before labelling.")
    result = df.copy()
    result["gender_label"] = result[column].map(GENDER_LABELS)
    return result
