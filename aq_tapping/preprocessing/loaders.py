"""
Participant-level loader for the AQ-10 / finger-tapping dataset.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from ..errors import DataValidationError
from .constants import (
    ANALYSIS_COLUMNS,
    AQ_SCORE_RANGE,
    MIN_TAP_COUNT,
    NUMERIC_COLUMNS,
    REQUIRED_COLUMNS,
)
from .core import attach_gender_label, ensure_participant_id, normalize_column_names, recode_gender


TAB_SUFFIXES = {".tsv", ".tab"}


def _infer_separator(path: Path) -> str:
    return "\t" if path.suffix.lower() in TAB_SUFFIXES else ","


def read_participant_table(path: Path | str, sep: str | None = None) -> pd.DataFrame:
    """Read the raw delimited file; any read/parse failure is a DataValidationError."""
    path = Path(path)
    if not path.exists():
        raise DataValidationError(f"Input file not found: {path}")
    if sep is None:
        sep = _infer_separator(path)

    try:
        df = pd.read_csv(path, sep=sep, encoding="utf-8-sig")
    except pd.errors.EmptyDataError as exc:
        raise DataValidationError(f"Input file is empty: {path}") from exc
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise DataValidationError(f"Could not parse {path} as delimited data: {exc}") from exc

    if df.empty:
        raise DataValidationError(f"Input file has a header but no rows: {path}")
    return df


def validate_schema(df: pd.DataFrame, source: str = "input") -> pd.DataFrame:
    """Normalize column names and fail if any required column is absent."""
    df = normalize_column_names(df)
    try:
        df = ensure_participant_id(df)
    except KeyError as exc:
        raise DataValidationError(f"{source} missing required columns: ['participant_id']") from exc

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise DataValidationError(f"{source} missing required columns: {missing}")
    return df


def coerce_numeric_columns(df: pd.DataFrame, source: str = "input", verbose: bool = False) -> pd.DataFrame:
    """
    Convert numeric columns, rejecting non-numeric tokens.

    Blank cells are not an error: rows with missing values in a required
    numeric column are dropped and reported.
    """
    df = df.copy()
    bad: dict[str, list] = {}
    for col in NUMERIC_COLUMNS:
        raw = df[col]
        converted = pd.to_numeric(raw, errors="coerce")
        invalid = converted.isna() & raw.notna() & (raw.astype(str).str.strip() != "")
        if invalid.any():
            bad[col] = raw[invalid].astype(str).unique().tolist()[:5]
        df[col] = converted

    if bad:
        raise DataValidationError(f"{source} has non-numeric values: {bad}")

    incomplete = df[NUMERIC_COLUMNS].isna().any(axis=1)
    if incomplete.any():
        if verbose:
            print(f"  [WARN] Dropping {int(incomplete.sum())} rows with missing values")
        df = df[~incomplete].copy()
    return df


def filter_min_taps(df: pd.DataFrame, min_taps: float = MIN_TAP_COUNT) -> pd.DataFrame:
    """Drop participants whose dominant-hand score is at or below ``min_taps``."""
    return df[df["ftt_dominant"] > min_taps].copy()


def _check_values(df: pd.DataFrame, source: str) -> None:
    # age and aq_score are whole numbers; cast to int only after this check
    for col in ("age", "aq_score"):
        fractional = df.loc[df[col] % 1 != 0, col]
        if not fractional.empty:
            raise DataValidationError(
                f"{source} has non-integer {col} values: {sorted(fractional.unique().tolist())[:5]}"
            )

    lo, hi = AQ_SCORE_RANGE
    out_of_range = df[(df["aq_score"] < lo) | (df["aq_score"] > hi)]
    if not out_of_range.empty:
        raise DataValidationError(
            f"{source} has aq_score values outside [{lo}, {hi}]: "
            f"{sorted(out_of_range['aq_score'].unique().tolist())}"
        )
    dup_n = int(df["participant_id"].astype(str).duplicated().sum())
    if dup_n > 0:
        raise DataValidationError(f"{source} contains duplicated participant_id values: {dup_n}")


def prepare_participants(
    raw: pd.DataFrame,
    min_taps: float = MIN_TAP_COUNT,
    source: str = "input",
    verbose: bool = False,
) -> pd.DataFrame:
    """
    Clean a raw participant table.

    Steps: schema check, numeric coercion, tap-count filter, gender
    recoding (1/2 -> 0/1), gender label, projection to ANALYSIS_COLUMNS.
    """
    df = validate_schema(raw, source=source)
    df = coerce_numeric_columns(df, source=source, verbose=verbose)
    _check_values(df, source)

    n_before = len(df)
    df = filter_min_taps(df, min_taps=min_taps)
    if verbose:
        print(f"  Excluded {n_before - len(df)} participants with dominant-hand taps <= {min_taps}")
    if df.empty:
        raise DataValidationError(f"{source}: no participants left after the tap-count filter")

    df = recode_gender(df)
    df = attach_gender_label(df)

    df["age"] = df["age"].astype(int)
    df["aq_score"] = df["aq_score"].astype(int)
    df["participant_id"] = df["participant_id"].astype(str)

    result = df[ANALYSIS_COLUMNS].reset_index(drop=True)
    result.attrs["gender_recoded"] = True
    return result


def load_tapping_data(
    path: Path | str,
    min_taps: float = MIN_TAP_COUNT,
    sep: str | None = None,
    verbose: bool = False,
) -> pd.DataFrame:
    """
    Load the participant file and return the cleaned analysis frame.

    Raises
    ------
    DataValidationError
        If the file is missing or unparsable, or does not match the schema.
    """
    path = Path(path)
    if verbose:
        print(f"\n  Loading data from {path}")
    raw = read_participant_table(path, sep=sep)
    df = prepare_participants(raw, min_taps=min_taps, source=path.name, verbose=verbose)
    if verbose:
        n_male = int((df["gender"] == 0).sum())
        n_female = int((df["gender"] == 1).sum())
        print(f"  Total participants: N = {len(df)} (Male: n = {n_male}, Female: n = {n_female})")
    return df
