"""
Descriptive Statistics Analysis
===============================

Generates Table-1 style descriptive summaries (N, Mean, SD, Min, Max) for
age, AQ-10 score and both finger-tapping scores, overall and by gender.

Output:
    outputs/tables/table1_descriptives_by_gender.csv   (with --save-tables)
    outputs/tables/table1_descriptives.csv
    outputs/tables/table1_categorical.csv
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from aq_tapping.basic_analysis.utils import (
    DESCRIPTIVE_VARS,
    filter_vars,
    print_section_header,
)
from aq_tapping.preprocessing.constants import GENDER_ORDER


def compute_descriptive_stats(
    df: pd.DataFrame,
    variables: list[tuple[str, str]],
    group_label: str = "Total"
) -> pd.DataFrame:
    """
    Compute descriptive statistics for specified variables.

    Parameters
    ----------
    df : pd.DataFrame
        Input dataframe
    variables : list of (column_name, display_label) tuples
        Variables to analyze
    group_label : str
        Label for this group (e.g., "Total", "Male", "Female")

    Returns
    -------
    pd.DataFrame
        Descriptive statistics table
    """
    results = []

    for col, label in variables:
        if col not in df.columns:
            print(f"  [WARNING] Variable '{col}' not found in dataset")
            continue

        series = df[col].dropna()

        results.append({
            'Group': group_label,
            'Variable': label,
            'Column': col,
            'N': len(series),
            'Mean': series.mean() if len(series) else np.nan,
            'SD': series.std(ddof=1) if len(series) > 1 else np.nan,
            'Min': series.min() if len(series) else np.nan,
            'Max': series.max() if len(series) else np.nan,
            'Median': series.median() if len(series) else np.nan,
        })

    return pd.DataFrame(results)


def compute_descriptives_by_group(
    df: pd.DataFrame,
    variables: list[tuple[str, str]],
    group_col: str = "gender_label",
    group_order: list[str] | None = None,
) -> pd.DataFrame:
    """Total block followed by one block per stratum of ``group_col``."""
    if group_order is None:
        group_order = GENDER_ORDER
    frames = [compute_descriptive_stats(df, variables, group_label="Total")]
    for group in group_order:
        frames.append(
            compute_descriptive_stats(df[df[group_col] == group], variables, group_label=group)
        )
    return pd.concat(frames, ignore_index=True)


def build_descriptive_table(
    desc_by_group: pd.DataFrame,
    group_order: list[str] | None = None,
) -> pd.DataFrame:
    """
    Pivot the long descriptives into one row per variable.

    Columns are ``Variable`` followed by ``<Group> N``, ``<Group> M`` and
    ``<Group> SD`` for Total and each stratum.
    """
    if group_order is None:
        group_order = GENDER_ORDER
    groups = ["Total"] + list(group_order)
    labels = list(dict.fromkeys(desc_by_group["Variable"]))

    rows = []
    for label in labels:
        row = {"Variable": label}
        for group in groups:
            sub = desc_by_group[(desc_by_group["Group"] == group) & (desc_by_group["Variable"] == label)]
            if sub.empty:
                row[f"{group} N"] = 0
                row[f"{group} M"] = np.nan
                row[f"{group} SD"] = np.nan
            else:
                row[f"{group} N"] = int(sub["N"].iloc[0])
                row[f"{group} M"] = float(sub["Mean"].iloc[0])
                row[f"{group} SD"] = float(sub["SD"].iloc[0])
        rows.append(row)
    return pd.DataFrame(rows)


def compute_categorical_stats(df: pd.DataFrame) -> pd.DataFrame:
    """
    Compute categorical variable statistics (gender frequency/percentage).

    Parameters
    ----------
    df : pd.DataFrame
        Input dataframe with 'gender_label' column

    Returns
    -------
    pd.DataFrame
        Categorical statistics with N and Percent
    """
    results = []

    if 'gender_label' in df.columns:
        n_total = int(df['gender_label'].notna().sum())
        for category in GENDER_ORDER:
            n = int((df['gender_label'] == category).sum())
            results.append({
                'Variable': 'Gender',
                'Category': category,
                'N': n,
                'Percent': n / n_total * 100 if n_total > 0 else np.nan,
            })

    return pd.DataFrame(results)


def print_apa_table(table: pd.DataFrame, cat_df: pd.DataFrame | None = None) -> None:
    """Print descriptive statistics in APA-style format."""
    print("\n  Table 1. Descriptive Statistics")
    print("  " + "-" * 65)

    if cat_df is not None and len(cat_df) > 0:
        print(f"  {'Variable':<35} {'N':>6} {'%':>10}")
        print("  " + "-" * 65)
        for _, row in cat_df.iterrows():
            print(f"  {row['Category']:<35} {row['N']:>6} {row['Percent']:>10.1f}")
        print("  " + "-" * 65)

    print(f"  {'Variable':<35} {'N':>6} {'M':>10} {'SD':>10}")
    print("  " + "-" * 65)
    for _, row in table.iterrows():
        print(f"  {row['Variable']:<35} {row['Total N']:>6} {row['Total M']:>10.2f} {row['Total SD']:>10.2f}")
    print("  " + "-" * 65)
    print("  Note. M = Mean; SD = Standard Deviation")


def run(
    df: pd.DataFrame,
    tables_dir: Path | None = None,
    verbose: bool = True,
) -> dict[str, pd.DataFrame]:
    """
    Run descriptive statistics analysis.

    Returns
    -------
    dict
        'by_group' (long), 'table' (wide, one row per variable), 'categorical'
    """
    if verbose:
        print_section_header("DESCRIPTIVE STATISTICS")

    variables = filter_vars(df, DESCRIPTIVE_VARS)
    desc_by_group = compute_descriptives_by_group(df, variables)
    table = build_descriptive_table(desc_by_group)
    cat_stats = compute_categorical_stats(df)

    if tables_dir is not None:
        desc_by_group.to_csv(tables_dir / "table1_descriptives_by_gender.csv", index=False, encoding='utf-8-sig')
        table.to_csv(tables_dir / "table1_descriptives.csv", index=False, encoding='utf-8-sig')
        cat_stats.to_csv(tables_dir / "table1_categorical.csv", index=False, encoding='utf-8-sig')

    if verbose:
        print_apa_table(table, cat_stats)

    return {
        'by_group': desc_by_group,
        'table': table,
        'categorical': cat_stats,
    }
