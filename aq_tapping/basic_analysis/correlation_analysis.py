"""
Correlation Analysis
====================

Computes the Spearman correlation matrix (with p-values and pairwise N)
across age, gender, AQ-10 score and both finger-tapping scores.

Output:
    outputs/figures/correlation_heatmap.png
    outputs/tables/correlation_matrix.csv      (with --save-tables)
    outputs/tables/correlation_pvalues.csv
    outputs/tables/correlation_table.csv
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
from scipy import stats

from aq_tapping.basic_analysis.utils import (
    CORRELATION_VARS,
    filter_vars,
    print_section_header,
    significance_marker,
)

CORRELATION_METHODS = {
    "spearman": stats.spearmanr,
    "pearson": stats.pearsonr,
}

DIAGONAL_MARK = "—"


@dataclass(frozen=True)
class CorrelationResult:
    r_matrix: pd.DataFrame
    p_matrix: pd.DataFrame
    n_matrix: pd.DataFrame
    labels: list[str]
    method: str
    table: pd.DataFrame

    def get(self, row: str, col: str) -> tuple[float, float, int]:
        """(r, p, n) for a pair of display labels."""
        return (
            float(self.r_matrix.loc[row, col]),
            float(self.p_matrix.loc[row, col]),
            int(self.n_matrix.loc[row, col]),
        )


def compute_correlation_matrix(
    df: pd.DataFrame,
    variables: list[tuple[str, str]],
    method: str = "spearman",
) -> tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """
    Compute a rank (or Pearson) correlation matrix on pairwise complete cases.

    Parameters
    ----------
    df : pd.DataFrame
        Input dataframe
    variables : list of (column_name, display_label) tuples
        Variables to correlate
    method : {"spearman", "pearson"}

    Returns
    -------
    tuple of (r_matrix, p_matrix, n_matrix), indexed by display label
    """
    if method not in CORRELATION_METHODS:
        raise ValueError(f"Unknown correlation method: {method}. Valid methods: {sorted(CORRELATION_METHODS)}")
    corr_func = CORRELATION_METHODS[method]

    cols = [c for c, _ in variables if c in df.columns]
    labels = [l for c, l in variables if c in df.columns]

    n_vars = len(cols)
    r_matrix = np.full((n_vars, n_vars), np.nan)
    p_matrix = np.full((n_vars, n_vars), np.nan)
    n_matrix = np.zeros((n_vars, n_vars), dtype=int)

    for i, col_i in enumerate(cols):
        for j, col_j in enumerate(cols):
            # Get pairwise complete cases
            mask = df[[col_i, col_j]].notna().all(axis=1)
            n_matrix[i, j] = int(mask.sum())
            if i == j:
                r_matrix[i, j] = 1.0
                p_matrix[i, j] = 0.0
                continue
            if j > i:
                continue

            x = df.loc[mask, col_i].astype(float)
            y = df.loc[mask, col_j].astype(float)

            # Constant columns have no defined rank correlation
            if len(x) < 3 or x.nunique() < 2 or y.nunique() < 2:
                continue

            r, p = corr_func(x, y)
            r_matrix[i, j] = r_matrix[j, i] = float(r)
            p_matrix[i, j] = p_matrix[j, i] = float(p)

    r_df = pd.DataFrame(r_matrix, index=labels, columns=labels)
    p_df = pd.DataFrame(p_matrix, index=labels, columns=labels)
    n_df = pd.DataFrame(n_matrix, index=labels, columns=labels)
    return r_df, p_df, n_df


def format_correlation_table(r_matrix: pd.DataFrame, p_matrix: pd.DataFrame) -> pd.DataFrame:
    """
    Lower-triangle correlation table for publication.

    Cells below the diagonal hold ``r`` to two decimals plus significance
    stars, the diagonal holds an em dash and the upper triangle is blank.
    """
    labels = r_matrix.columns.tolist()
    cells = np.full((len(labels), len(labels)), "", dtype=object)
    for i in range(len(labels)):
        for j in range(len(labels)):
            if i == j:
                cells[i, j] = DIAGONAL_MARK
            elif j < i:
                r_val = r_matrix.iloc[i, j]
                if pd.isna(r_val):
                    cells[i, j] = "NA"
                else:
                    r_text = f"{r_val:.2f}".replace("0.", ".", 1)
                    cells[i, j] = f"{r_text}{significance_marker(p_matrix.iloc[i, j])}"
    row_labels = [f"{k + 1}. {label}" for k, label in enumerate(labels)]
    col_labels = [str(k + 1) for k in range(len(labels))]
    return pd.DataFrame(cells, index=row_labels, columns=col_labels)


def run(
    df: pd.DataFrame,
    figures_dir: Path | None = None,
    tables_dir: Path | None = None,
    method: str = "spearman",
    verbose: bool = True,
) -> dict[str, object]:
    """
    Run correlation analysis.

    Returns
    -------
    dict
        'result' (CorrelationResult), 'figure' (path or None)
    """
    from aq_tapping.figures_tables.plotting import create_correlation_heatmap

    if verbose:
        print_section_header("CORRELATION ANALYSIS")

    variables = filter_vars(df, CORRELATION_VARS)
    r_matrix, p_matrix, n_matrix = compute_correlation_matrix(df, variables, method=method)
    table = format_correlation_table(r_matrix, p_matrix)
    result = CorrelationResult(
        r_matrix=r_matrix,
        p_matrix=p_matrix,
        n_matrix=n_matrix,
        labels=r_matrix.columns.tolist(),
        method=method,
        table=table,
    )

    if tables_dir is not None:
        r_matrix.to_csv(tables_dir / "correlation_matrix.csv", encoding='utf-8-sig')
        p_matrix.to_csv(tables_dir / "correlation_pvalues.csv", encoding='utf-8-sig')
        table.to_csv(tables_dir / "correlation_table.csv", encoding='utf-8-sig')

    figure_path = None
    if figures_dir is not None:
        figure_path = figures_dir / "correlation_heatmap.png"
        create_correlation_heatmap(
            r_matrix, p_matrix, figure_path,
            title=f"{method.capitalize()} Correlations: Age, Gender, AQ-10 and Finger Tapping",
            method=method,
        )

    if verbose:
        print(f"\n  Correlation Matrix ({method.capitalize()}, pairwise N = {n_matrix.values.min()}-{n_matrix.values.max()})")
        print("  " + "-" * 65)
        print("  " + f"{'':<18}" + "".join(f"{c:>9}" for c in table.columns))
        for label, row in table.iterrows():
            print("  " + f"{label:<18}" + "".join(f"{cell:>9}" for cell in row))
        print("  " + "-" * 65)
        print("  Note. *p < .05, **p < .01, ***p < .001")

    return {
        'result': result,
        'figure': figure_path,
    }
