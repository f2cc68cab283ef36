"""Tests for the Spearman correlation matrix and its table."""

import numpy as np
import pandas as pd
import pytest

from aq_tapping.basic_analysis import correlation_analysis as ca
from aq_tapping.basic_analysis.utils import significance_marker

VARIABLES = [("x", "X"), ("y", "Y"), ("z", "Z")]


@pytest.fixture
def monotone_frame() -> pd.DataFrame:
    x = np.arange(1, 31, dtype=float)
    return pd.DataFrame({
        "x": x,
        "y": x ** 3,          # monotone: rho = 1
        "z": -np.sqrt(x),     # monotone decreasing: rho = -1
    })


class TestCorrelationMatrix:

    def test_monotone_relations(self, monotone_frame):
        r, p, n = ca.compute_correlation_matrix(monotone_frame, VARIABLES)
        assert r.loc["X", "Y"] == pytest.approx(1.0)
        assert r.loc["X", "Z"] == pytest.approx(-1.0)
        assert p.loc["X", "Y"] < 0.001

    def test_symmetric_with_unit_diagonal(self, participants):
        r, p, n = ca.compute_correlation_matrix(
            participants, [("age", "Age"), ("aq_score", "AQ-10"), ("ftt_dominant", "FTT Dom")]
        )
        assert np.allclose(np.diag(r.values), 1.0)
        assert np.allclose(r.values, r.values.T, equal_nan=True)
        assert np.allclose(p.values, p.values.T, equal_nan=True)

    def test_pairwise_complete_cases(self, monotone_frame):
        df = monotone_frame.copy()
        df.loc[[0, 1, 2], "z"] = np.nan
        r, p, n = ca.compute_correlation_matrix(df, VARIABLES)
        assert n.loc["X", "Y"] == 30
        assert n.loc["X", "Z"] == 27
        assert r.loc["X", "Z"] == pytest.approx(-1.0)

    def test_matches_pandas_spearman(self, participants):
        cols = [("aq_score", "AQ-10"), ("ftt_dominant", "FTT Dom")]
        r, _, _ = ca.compute_correlation_matrix(participants, cols)
        expected = participants["aq_score"].corr(participants["ftt_dominant"], method="spearman")
        assert r.loc["AQ-10", "FTT Dom"] == pytest.approx(expected)

    def test_constant_column_gives_nan(self, monotone_frame):
        df = monotone_frame.assign(z=1.0)
        r, p, _ = ca.compute_correlation_matrix(df, VARIABLES)
        assert np.isnan(r.loc["X", "Z"])
        assert np.isnan(p.loc["X", "Z"])

    def test_unknown_method(self, monotone_frame):
        with pytest.raises(ValueError, match="Unknown correlation method"):
            ca.compute_correlation_matrix(monotone_frame, VARIABLES, method="kendall")


class TestCorrelationTable:

    def test_lower_triangle_layout(self, monotone_frame):
        r, p, _ = ca.compute_correlation_matrix(monotone_frame, VARIABLES)
        table = ca.format_correlation_table(r, p)
        assert list(table.index) == ["1. X", "2. Y", "3. Z"]
        assert (np.diag(table.values) == "—").all()
        assert table.iloc[0, 1] == ""
        assert table.iloc[0, 2] == ""
        assert table.iloc[1, 0] == "1.00***"
        assert table.iloc[2, 0] == "-1.00***"

    def test_significance_markers(self):
        assert significance_marker(0.0004) == "***"
        assert significance_marker(0.004) == "**"
        assert significance_marker(0.04) == "*"
        assert significance_marker(0.2) == ""
        assert significance_marker(float("nan")) == ""


class TestCorrelationRun:

    def test_run_returns_result_and_heatmap(self, participants, tmp_path):
        out = ca.run(participants, figures_dir=tmp_path, verbose=False)
        result = out["result"]
        assert result.method == "spearman"
        assert result.labels == ["Age", "Gender", "AQ-10", "FTT Dom", "FTT Non-Dom"]
        assert out["figure"].exists()

    def test_get_returns_r_p_n(self, participants):
        result = ca.run(participants, verbose=False)["result"]
        r, p, n = result.get("AQ-10", "FTT Dom")
        assert -1 <= r <= 1
        assert 0 <= p <= 1
        assert n == len(participants)
