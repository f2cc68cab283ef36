"""
Common Utilities for Basic Analysis Scripts
============================================

Shared variable definitions and formatting helpers.
"""

from __future__ import annotations

import pandas as pd

from aq_tapping.preprocessing.constants import SIGNIFICANCE_THRESHOLDS

# =============================================================================
# VARIABLE DEFINITIONS
# =============================================================================

# Variables for descriptive statistics (Table 1)
DESCRIPTIVE_VARS = [
    ('age', 'Age (years)'),
    ('aq_score', 'AQ-10 Score'),
    ('ftt_dominant', 'FTT Dominant Hand (taps)'),
    ('ftt_nondominant', 'FTT Non-Dominant Hand (taps)'),
]

# Variables for the correlation matrix
CORRELATION_VARS = [
    ('age', 'Age'),
    ('gender', 'Gender'),
    ('aq_score', 'AQ-10'),
    ('ftt_dominant', 'FTT Dom'),
    ('ftt_nondominant', 'FTT Non-Dom'),
]

# Regression outcomes (one model per hand)
REGRESSION_OUTCOMES = [
    ('ftt_dominant', 'Dominant Hand'),
    ('ftt_nondominant', 'Non-Dominant Hand'),
]

# Display labels for model terms
TERM_LABELS = {
    'Intercept': 'Intercept',
    'aq_c': 'AQ-10 (centered)',
    'age_c': 'Age (centered)',
    'gender': 'Gender (Female)',
    'aq_c:age_c': 'AQ-10 x Age',
    'aq_c:gender': 'AQ-10 x Gender',
}


def filter_vars(
    df: pd.DataFrame,
    var_list: list[tuple[str, str]],
) -> list[tuple[str, str]]:
    """Filter variable list to only include columns present in the dataframe."""
    return [(col, label) for col, label in var_list if col in df.columns]


# =============================================================================
# FORMATTING UTILITIES
# =============================================================================

def format_pvalue(p: float, threshold: float = 0.001) -> str:
    """Format p-value APA style: '< .001' or three decimals without leading zero."""
    if pd.isna(p):
        return "NA"
    if p < threshold:
        return f"< {threshold:.3f}".replace("0.", ".", 1)
    return f"{p:.3f}".replace("0.", ".", 1)


def format_coefficient(value: float, decimals: int = 3) -> str:
    """Format coefficient for publication."""
    if pd.isna(value):
        return "NA"
    return f"{value:.{decimals}f}"


def significance_marker(p: float) -> str:
    """Stars for p < .001 / .01 / .05; empty otherwise."""
    if pd.isna(p):
        return ""
    for n_stars, threshold in zip((3, 2, 1), SIGNIFICANCE_THRESHOLDS):
        if p < threshold:
            return "*" * n_stars
    return ""


def print_section_header(title: str, width: int = 70) -> None:
    """Print formatted section header."""
    print("\n" + "=" * width)
    print(title)
    print("=" * width)
