"""
Preprocessing Module
====================

Loading, cleaning and recoding of the participant file.

    from aq_tapping.preprocessing import load_tapping_data
    df = load_tapping_data("data/aq_ftt_data.csv")
"""

from .constants import (
    ALPHA,
    ANALYSIS_COLUMNS,
    DEFAULT_DATA_FILE,
    GENDER_LABELS,
    GENDER_ORDER,
    GENDER_RAW_CODES,
    HAND_COLUMNS,
    HAND_ORDER,
    MIN_TAP_COUNT,
    OUTPUT_DIR,
    REQUIRED_COLUMNS,
    get_output_dir,
)
from .core import (
    attach_gender_label,
    ensure_participant_id,
    normalize_column_names,
    recode_gender,
)
from .loaders import (
    filter_min_taps,
    load_tapping_data,
    prepare_participants,
    read_participant_table,
)
from .standardization import center_predictors

__all__ = [
    'ALPHA',
    'ANALYSIS_COLUMNS',
    'DEFAULT_DATA_FILE',
    'GENDER_LABELS',
    'GENDER_ORDER',
    'GENDER_RAW_CODES',
    'HAND_COLUMNS',
    'HAND_ORDER',
    'MIN_TAP_COUNT',
    'OUTPUT_DIR',
    'REQUIRED_COLUMNS',
    'get_output_dir',
    'attach_gender_label',
    'ensure_participant_id',
    'normalize_column_names',
    'recode_gender',
    'filter_min_taps',
    'load_tapping_data',
    'prepare_participants',
    'read_participant_table',
    'center_predictors',
]
