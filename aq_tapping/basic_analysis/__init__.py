"""
Basic Analysis Suite
====================

Descriptive, paired, correlational and moderation-regression analyses of
AQ-10 score and finger-tapping performance.

Modules:
    descriptive_statistics.py   - Descriptive summary (N, Mean, SD, Min, Max) by gender
    paired_comparison.py        - Dominant vs non-dominant hand (Wilcoxon / paired t)
    correlation_analysis.py     - Spearman correlation matrix
    moderation_regression.py    - AQ-10 x Age OLS moderation, simple slopes, Johnson-Neyman
"""

from .utils import (
    CORRELATION_VARS,
    DESCRIPTIVE_VARS,
    REGRESSION_OUTCOMES,
    TERM_LABELS,
    filter_vars,
    format_coefficient,
    format_pvalue,
    print_section_header,
    significance_marker,
)
from .paired_comparison import PairedComparisonResult, compare_hands
from .correlation_analysis import CorrelationResult, compute_correlation_matrix
from .moderation_regression import (
    MODEL_FORMULAS,
    JohnsonNeymanResult,
    ModelFitResult,
    ModerationAnalysis,
    SimpleSlopeResult,
    run_moderation,
)

__all__ = [
    'CORRELATION_VARS',
    'DESCRIPTIVE_VARS',
    'REGRESSION_OUTCOMES',
    'TERM_LABELS',
    'filter_vars',
    'format_coefficient',
    'format_pvalue',
    'print_section_header',
    'significance_marker',
    'PairedComparisonResult',
    'compare_hands',
    'CorrelationResult',
    'compute_correlation_matrix',
    'MODEL_FORMULAS',
    'JohnsonNeymanResult',
    'ModelFitResult',
    'ModerationAnalysis',
    'SimpleSlopeResult',
    'run_moderation',
]
