"""Shared synthetic datasets for the analysis tests."""

import numpy as np
import pandas as pd
import pytest

from aq_tapping.preprocessing.loaders import prepare_participants


def make_raw_participants(n: int = 120, seed: int = 42, n_low_taps: int = 4) -> pd.DataFrame:
    """
    Raw participant table on the input scale (gender coded 1/2).

    Tapping falls with AQ-10, more steeply at older ages. The last
    ``n_low_taps`` rows have dominant-hand scores at or below 3.
    """
    rng = np.random.default_rng(seed)
    age = rng.integers(18, 66, size=n)
    aq = rng.integers(0, 11, size=n)
    gender = rng.choice([1, 2], size=n)
    age_c = age - age.mean()
    aq_c = aq - aq.mean()
    dominant = 50 - 0.8 * aq_c - 0.15 * age_c - 0.04 * aq_c * age_c + rng.normal(0, 4, size=n)
    non_dominant = dominant - 4 + rng.normal(0, 3, size=n)

    raw = pd.DataFrame({
        "participant_id": [f"P{i:03d}" for i in range(n)],
        "gender": gender,
        "age": age,
        "aq_score": aq,
        "platform": rng.choice(["web", "ios", "android"], size=n),
        "ftt_dominant": np.round(dominant, 1),
        "ftt_nondominant": np.round(non_dominant, 1),
    })
    if n_low_taps:
        raw.loc[raw.index[-n_low_taps:], "ftt_dominant"] = [3, 2, 0, 1][:n_low_taps]
    return raw


@pytest.fixture
def raw_participants() -> pd.DataFrame:
    return make_raw_participants()


@pytest.fixture
def participants(raw_participants) -> pd.DataFrame:
    return prepare_participants(raw_participants)


@pytest.fixture
def participants_csv(tmp_path, raw_participants):
    path = tmp_path / "aq_ftt_data.csv"
    raw_participants.to_csv(path, index=False)
    return path


@pytest.fixture
def ten_participants() -> pd.DataFrame:
    """Ten recoded rows with round numbers for hand-computed descriptives."""
    return pd.DataFrame({
        "participant_id": [f"S{i:02d}" for i in range(10)],
        "age": list(range(20, 30)),
        "gender": [0, 0, 0, 0, 0, 1, 1, 1, 1, 1],
        "gender_label": ["Male"] * 5 + ["Female"] * 5,
        "aq_score": list(range(10)),
        "ftt_dominant": [40.0, 42.0, 44.0, 46.0, 48.0, 50.0, 52.0, 54.0, 56.0, 58.0],
        "ftt_nondominant": [35.0, 38.0, 41.0, 44.0, 47.0, 50.0, 53.0, 56.0, 59.0, 62.0],
    })
