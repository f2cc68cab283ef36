"""
Shared constants for data loading and analysis.
"""

from pathlib import Path

# Directory paths
BASE_DIR = Path(__file__).resolve().parents[2]
DATA_DIR = BASE_DIR / "data"
DEFAULT_DATA_FILE = DATA_DIR / "aq_ftt_data.csv"

OUTPUT_DIR = BASE_DIR / "outputs"
OUTPUT_FIGURES_SUBDIR = "figures"
OUTPUT_TABLES_SUBDIR = "tables"
REPORT_FILENAME = "report.md"

# Input schema (one row per participant)
REQUIRED_COLUMNS = [
    "participant_id",
    "gender",
    "age",
    "aq_score",
    "platform",
    "ftt_dominant",
    "ftt_nondominant",
]
NUMERIC_COLUMNS = ["gender", "age", "aq_score", "ftt_dominant", "ftt_nondominant"]

# Columns kept after loading
ANALYSIS_COLUMNS = [
    "participant_id",
    "age",
    "gender",
    "gender_label",
    "aq_score",
    "ftt_dominant",
    "ftt_nondominant",
]

# Participant ID aliases
PARTICIPANT_ID_ALIASES = {"participant_id", "participantId", "participantid", "public_id", "id", "ID"}

# Alternate spellings seen in exported sheets
COLUMN_ALIASES = {
    "aq10": "aq_score",
    "AQ10": "aq_score",
    "aq_10": "aq_score",
    "AQ": "aq_score",
    "aq": "aq_score",
    "sex": "gender",
    "Gender": "gender",
    "Age": "age",
    "Platform": "platform",
    "dominant": "ftt_dominant",
    "ftt_dom": "ftt_dominant",
    "non_dominant": "ftt_nondominant",
    "nondominant": "ftt_nondominant",
    "ftt_nondom": "ftt_nondominant",
}

# Data-quality filter: dominant-hand tap counts at or below this are dropped
MIN_TAP_COUNT = 3

# Gender recoding: 1 (male) -> 0, 2 (female) -> 1
GENDER_RAW_CODES = {1: 0, 2: 1}
GENDER_LABELS = {0: "Male", 1: "Female"}
GENDER_ORDER = ["Male", "Female"]

# AQ-10 bounds
AQ_SCORE_RANGE = (0, 10)

# Hands
HAND_COLUMNS = {"dominant": "ftt_dominant", "non-dominant": "ftt_nondominant"}
HAND_ORDER = ["dominant", "non-dominant"]

# Inference
ALPHA = 0.05
SIGNIFICANCE_THRESHOLDS = (0.001, 0.01, 0.05)


def get_output_dir(output_dir: Path = OUTPUT_DIR, subdir: str | None = None) -> Path:
    """Return (and create) an output directory."""
    path = Path(output_dir)
    if subdir:
        path = path / subdir
    path.mkdir(parents=True, exist_ok=True)
    return path
