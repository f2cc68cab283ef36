"""
Paired Hand Comparison
======================

Compares dominant- and non-dominant-hand tapping scores within participants.

Steps:
    1. Reshape wide (one row per participant) to long (participant x hand)
    2. Shapiro-Wilk test on the dominant - non-dominant differences
    3. Wilcoxon signed-rank if normality is rejected (p < alpha),
       paired t-test otherwise

Output:
    outputs/figures/paired_hands_raincloud.png
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
from scipy import stats

from aq_tapping.basic_analysis.utils import format_pvalue, print_section_header
from aq_tapping.errors import StatisticalPreconditionError
from aq_tapping.preprocessing.constants import ALPHA, HAND_COLUMNS, HAND_ORDER

COVARIATE_COLUMNS = ["age", "gender", "gender_label", "aq_score"]

TEST_LABELS = {
    "wilcoxon": "Wilcoxon signed-rank test",
    "paired_t": "Paired-samples t-test",
}


@dataclass(frozen=True)
class PairedComparisonResult:
    n: int
    normality_w: float
    normality_p: float
    normal: bool
    test: str
    statistic: float
    p_value: float
    mean_difference: float
    median_difference: float
    effect_size: float
    effect_size_label: str
    favors: str

    @property
    def test_label(self) -> str:
        return TEST_LABELS[self.test]

    @property
    def significant(self) -> bool:
        return self.p_value < ALPHA


# =============================================================================
# RESHAPING
# =============================================================================

def reshape_long(df: pd.DataFrame) -> pd.DataFrame:
    """One row per (participant, hand) with the covariates carried along."""
    id_vars = ["participant_id"] + [c for c in COVARIATE_COLUMNS if c in df.columns]
    value_vars = [HAND_COLUMNS[hand] for hand in HAND_ORDER]
    long_df = df.melt(id_vars=id_vars, value_vars=value_vars, var_name="hand", value_name="score")
    long_df["hand"] = long_df["hand"].map({col: hand for hand, col in HAND_COLUMNS.items()})
    long_df["hand"] = pd.Categorical(long_df["hand"], categories=HAND_ORDER, ordered=True)
    return long_df.sort_values(["participant_id", "hand"]).reset_index(drop=True)


def reshape_wide(long_df: pd.DataFrame) -> pd.DataFrame:
    """Invert reshape_long back to participant_id + one score column per hand."""
    wide = long_df.assign(hand=long_df["hand"].astype(str)).pivot(
        index="participant_id", columns="hand", values="score"
    )
    wide = wide.rename(columns=HAND_COLUMNS)
    wide.columns.name = None
    missing = [col for col in HAND_COLUMNS.values() if col not in wide.columns]
    if missing:
        raise StatisticalPreconditionError(f"Long-form data has no rows for {missing}")
    return wide[list(HAND_COLUMNS.values())].reset_index()


def hand_differences(df: pd.DataFrame) -> pd.Series:
    """Within-participant difference, dominant minus non-dominant."""
    diff = df[HAND_COLUMNS["dominant"]] - df[HAND_COLUMNS["non-dominant"]]
    return diff.rename("difference")


# =============================================================================
# TESTS
# =============================================================================

def test_difference_normality(differences: pd.Series, alpha: float = ALPHA) -> tuple[float, float]:
    """
    Shapiro-Wilk test on paired differences.

    Raises StatisticalPreconditionError when the test is undefined: fewer
    than three pairs, all differences zero, or all differences identical.
    """
    values = pd.Series(differences).dropna().to_numpy(dtype=float)
    if len(values) < 3:
        raise StatisticalPreconditionError(
            f"Shapiro-Wilk needs at least 3 paired differences (got {len(values)})"
        )
    if np.all(values == 0):
        raise StatisticalPreconditionError(
            "All dominant - non-dominant differences are zero; normality test is undefined"
        )
    if np.ptp(values) == 0:
        raise StatisticalPreconditionError(
            f"All paired differences equal {values[0]:g}; normality test is undefined for zero variance"
        )
    w_stat, p_value = stats.shapiro(values)
    return float(w_stat), float(p_value)


def select_paired_test(normality_p: float, alpha: float = ALPHA) -> str:
    """Non-parametric test when normality is rejected."""
    if pd.isna(normality_p):
        raise StatisticalPreconditionError("Normality p-value is undefined; cannot choose a paired test")
    return "wilcoxon" if normality_p < alpha else "paired_t"


def _rank_biserial(differences: np.ndarray) -> float:
    nonzero = differences[differences != 0]
    if len(nonzero) == 0:
        return np.nan
    ranks = stats.rankdata(np.abs(nonzero))
    r_plus = ranks[nonzero > 0].sum()
    r_minus = ranks[nonzero < 0].sum()
    return float((r_plus - r_minus) / (r_plus + r_minus))


def _favored_hand(center: float) -> str:
    if center > 0:
        return "dominant"
    if center < 0:
        return "non-dominant"
    return "none"


def run_paired_test(
    long_df: pd.DataFrame,
    test: str,
    normality: tuple[float, float] = (np.nan, np.nan),
    alpha: float = ALPHA,
) -> PairedComparisonResult:
    """
    Run the selected paired test on long-form data with hand as the factor.

    Parameters
    ----------
    test : {"wilcoxon", "paired_t"}
    normality : (W, p) from the Shapiro-Wilk step, carried into the result

    For the Wilcoxon test ``statistic`` is T = min(R+, R-), the smaller of
    the two signed-rank sums.
    """
    if test not in TEST_LABELS:
        raise ValueError(f"Unknown paired test: {test}. Valid tests: {sorted(TEST_LABELS)}")

    wide = reshape_wide(long_df).dropna()
    if len(wide) < 2:
        raise StatisticalPreconditionError(f"Paired test needs at least 2 complete pairs (got {len(wide)})")

    dominant = wide[HAND_COLUMNS["dominant"]].to_numpy(dtype=float)
    non_dominant = wide[HAND_COLUMNS["non-dominant"]].to_numpy(dtype=float)
    diff = dominant - non_dominant
    if np.all(diff == 0):
        raise StatisticalPreconditionError("All paired differences are zero; paired test is undefined")

    if test == "wilcoxon":
        res = stats.wilcoxon(dominant, non_dominant)
        effect, effect_label = _rank_biserial(diff), "rank-biserial r"
        center = float(np.median(diff))
    else:
        res = stats.ttest_rel(dominant, non_dominant)
        sd_diff = diff.std(ddof=1)
        effect = float(diff.mean() / sd_diff) if sd_diff > 0 else np.nan
        effect_label = "Cohen's d_z"
        center = float(diff.mean())

    w_stat, normality_p = normality
    return PairedComparisonResult(
        n=len(wide),
        normality_w=float(w_stat),
        normality_p=float(normality_p),
        normal=bool(normality_p >= alpha) if not pd.isna(normality_p) else False,
        test=test,
        statistic=float(res.statistic),
        p_value=float(res.pvalue),
        mean_difference=float(diff.mean()),
        median_difference=float(np.median(diff)),
        effect_size=effect,
        effect_size_label=effect_label,
        favors=_favored_hand(center),
    )


def compare_hands(df: pd.DataFrame, alpha: float = ALPHA) -> PairedComparisonResult:
    """Reshape, test normality of the differences, pick and run the paired test."""
    long_df = reshape_long(df)
    w_stat, normality_p = test_difference_normality(hand_differences(df), alpha=alpha)
    test = select_paired_test(normality_p, alpha=alpha)
    return run_paired_test(long_df, test, normality=(w_stat, normality_p), alpha=alpha)


def run(
    df: pd.DataFrame,
    figures_dir: Path | None = None,
    alpha: float = ALPHA,
    verbose: bool = True,
) -> dict[str, object]:
    """
    Run the paired hand comparison and draw the raincloud figure.

    Returns
    -------
    dict
        'result' (PairedComparisonResult), 'long' (long-form frame),
        'figure' (path or None)
    """
    from aq_tapping.figures_tables.plotting import create_paired_raincloud

    if verbose:
        print_section_header("PRELIMINARY ANALYSIS: DOMINANT vs NON-DOMINANT HAND")

    long_df = reshape_long(df)
    result = compare_hands(df, alpha=alpha)

    figure_path = None
    if figures_dir is not None:
        figure_path = figures_dir / "paired_hands_raincloud.png"
        create_paired_raincloud(long_df, figure_path)

    if verbose:
        print(f"\n  Shapiro-Wilk on differences: W = {result.normality_w:.3f}, p = {format_pvalue(result.normality_p)}")
        print(f"  Test used: {result.test_label}")
        print(f"  Statistic = {result.statistic:.2f}, p = {format_pvalue(result.p_value)}, "
              f"{result.effect_size_label} = {result.effect_size:.2f}")
        print(f"  Median difference (dominant - non-dominant) = {result.median_difference:.2f}")

    return {
        'result': result,
        'long': long_df,
        'figure': figure_path,
    }
