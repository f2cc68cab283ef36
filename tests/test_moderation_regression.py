"""Tests for the AQ-10 x Age moderation models."""

from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from aq_tapping.basic_analysis import moderation_regression as mr
from aq_tapping.errors import StatisticalPreconditionError


def grid_frame(n: int = 60) -> pd.DataFrame:
    """Deterministic, non-collinear AQ-10 / age / gender design."""
    i = np.arange(n)
    return pd.DataFrame({
        "participant_id": [f"G{k:03d}" for k in i],
        "aq_score": i % 11,
        "age": 18 + (i * 7) % 40,
        "gender": i % 2,
    })


def interaction_frame(n: int = 200, seed: int = 3) -> pd.DataFrame:
    """AQ-10 effect that is zero at mean age and grows with age."""
    rng = np.random.default_rng(seed)
    df = pd.DataFrame({
        "aq_score": rng.integers(0, 11, size=n),
        "age": rng.integers(18, 66, size=n),
        "gender": rng.choice([0, 1], size=n),
    })
    aq_c = df["aq_score"] - df["aq_score"].mean()
    age_c = df["age"] - df["age"].mean()
    df["ftt_dominant"] = 50 + 0.2 * aq_c * age_c + rng.normal(0, 1, size=n)
    df["ftt_nondominant"] = df["ftt_dominant"] - 4
    return df


def stub_fit(b1, b3, v11, v33, c13=0.0, df_resid=10_000):
    """Minimal fit exposing the pieces Johnson-Neyman reads."""
    terms = ["aq_c", "aq_c:age_c"]
    params = pd.Series([b1, b3], index=terms)
    cov = pd.DataFrame([[v11, c13], [c13, v33]], index=terms, columns=terms)
    results = SimpleNamespace(params=params, cov_params=lambda: cov)
    return SimpleNamespace(results=results, df_resid=df_resid)


AGE_FRAME = pd.DataFrame({"age": [20.0, 30.0, 40.0, 50.0, 60.0]})


class TestPerfectFit:

    def test_recovers_linear_coefficient(self):
        df = grid_frame()
        df["ftt_dominant"] = 2.0 * df["aq_score"]
        data = mr.prepare_moderation_data(df, outcomes=["ftt_dominant"])
        fit = mr.fit_moderation_model(data, "ftt_dominant")
        assert fit.coefficient("aq_c")["estimate"] == pytest.approx(2.0, abs=1e-8)
        assert fit.coefficient("aq_c:age_c")["estimate"] == pytest.approx(0.0, abs=1e-8)
        assert fit.r2 == pytest.approx(1.0)

    def test_centering_is_required(self):
        df = grid_frame()
        df["ftt_dominant"] = 2.0 * df["aq_score"]
        with pytest.raises(StatisticalPreconditionError, match="centered"):
            mr.fit_moderation_model(df, "ftt_dominant")


class TestModelFit:

    @pytest.fixture
    def fit_and_data(self, participants):
        data = mr.prepare_moderation_data(participants)
        return mr.fit_moderation_model(data, "ftt_dominant"), data

    def test_primary_formula_terms(self, fit_and_data):
        fit, _ = fit_and_data
        assert fit.formula == "ftt_dominant ~ aq_c * age_c + gender"
        assert set(fit.coefficients["term"]) == {"Intercept", "aq_c", "age_c", "gender", "aq_c:age_c"}
        assert fit.coefficients["term"].iloc[0] == "Intercept"
        assert fit.outcome_label == "Dominant Hand"

    def test_exploratory_formula_adds_gender_interaction(self, participants):
        data = mr.prepare_moderation_data(participants)
        fit = mr.fit_moderation_model(data, "ftt_nondominant", name="exploratory")
        assert "aq_c:gender" in fit.coefficients["term"].tolist()

    def test_standardized_beta(self, fit_and_data):
        fit, data = fit_and_data
        row = fit.coefficient("aq_c")
        expected = row["estimate"] * data["aq_c"].std() / data["ftt_dominant"].std()
        assert row["std_beta"] == pytest.approx(expected)
        assert np.isnan(fit.coefficient("Intercept")["std_beta"])

    def test_confidence_interval_contains_estimate(self, fit_and_data):
        fit, _ = fit_and_data
        coefs = fit.coefficients
        assert ((coefs["ci_lower"] < coefs["estimate"]) & (coefs["estimate"] < coefs["ci_upper"])).all()

    def test_fit_statistics(self, fit_and_data):
        fit, data = fit_and_data
        assert fit.n == len(data)
        assert fit.df_resid == len(data) - 5
        assert 0 <= fit.adj_r2 <= fit.r2 <= 1
        assert fit.f_p < 0.05

    def test_unknown_term(self, fit_and_data):
        fit, _ = fit_and_data
        with pytest.raises(KeyError):
            fit.coefficient("platform")

    def test_assumption_checks_are_reported(self, fit_and_data):
        fit, _ = fit_and_data
        diagnostics = mr.check_model_assumptions(fit, verbose=False)
        for key in ("shapiro_p", "breusch_pagan_p", "max_vif", "vif"):
            assert key in diagnostics
        assert set(diagnostics["vif"]) == {"aq_c", "age_c", "aq_c:age_c", "gender"}
        assert fit.diagnostics is diagnostics

    def test_raw_gender_codes_rejected(self, raw_participants):
        with pytest.raises(StatisticalPreconditionError, match="0/1"):
            mr.prepare_moderation_data(raw_participants)


class TestSimpleSlopes:

    @pytest.fixture
    def fit_and_data(self, participants):
        data = mr.prepare_moderation_data(participants)
        return mr.fit_moderation_model(data, "ftt_dominant"), data

    def test_slope_at_mean_age_equals_main_effect(self, fit_and_data):
        fit, data = fit_and_data
        slopes = {s.level: s for s in mr.compute_simple_slopes(fit, data)}
        main = fit.coefficient("aq_c")
        assert slopes["Mean"].slope == pytest.approx(main["estimate"])
        assert slopes["Mean"].se == pytest.approx(main["se"])
        assert slopes["Mean"].p == pytest.approx(main["p"])

    def test_slopes_at_plus_minus_one_sd(self, fit_and_data):
        fit, data = fit_and_data
        slopes = {s.level: s for s in mr.compute_simple_slopes(fit, data)}
        b1 = fit.coefficient("aq_c")["estimate"]
        b3 = fit.coefficient("aq_c:age_c")["estimate"]
        sd_age = data["age_c"].std()
        assert slopes["-1 SD"].slope == pytest.approx(b1 - b3 * sd_age)
        assert slopes["+1 SD"].slope == pytest.approx(b1 + b3 * sd_age)
        assert slopes["+1 SD"].moderator_value == pytest.approx(data["age"].mean() + sd_age)

    def test_level_order(self, fit_and_data):
        fit, data = fit_and_data
        assert [s.level for s in mr.compute_simple_slopes(fit, data)] == ["-1 SD", "Mean", "+1 SD"]

    def test_simple_slope_test_uses_residual_df(self):
        slope, se, t_stat, p = mr.simple_slope_test(1.0, 0.0, 0.25, 0.0, 0.0, 0.0, df_resid=8)
        assert slope == 1.0
        assert se == pytest.approx(0.5)
        assert t_stat == pytest.approx(2.0)
        assert p == pytest.approx(2 * stats.t.sf(2.0, df=8))


class TestJohnsonNeyman:

    def test_bounds_have_critical_t(self):
        df = interaction_frame()
        data = mr.prepare_moderation_data(df)
        fit = mr.fit_moderation_model(data, "ftt_dominant")
        jn = mr.johnson_neyman(fit, data)
        assert len(jn.bounds) == 2
        assert jn.significant_region == "outside"

        t_crit = stats.t.ppf(0.975, df=fit.df_resid)
        b1 = fit.coefficient("aq_c")["estimate"]
        b3 = fit.coefficient("aq_c:age_c")["estimate"]
        cov = fit.results.cov_params()
        for w in jn.bounds_centered:
            slope, se, t_stat, _ = mr.simple_slope_test(
                b1, b3, cov.loc["aq_c", "aq_c"], cov.loc["aq_c:age_c", "aq_c:age_c"],
                cov.loc["aq_c", "aq_c:age_c"], w, fit.df_resid,
            )
            assert abs(t_stat) == pytest.approx(t_crit, rel=1e-6)

    def test_bounds_reported_in_raw_age_units(self):
        df = interaction_frame()
        data = mr.prepare_moderation_data(df)
        fit = mr.fit_moderation_model(data, "ftt_dominant")
        jn = mr.johnson_neyman(fit, data)
        mean_age = data["age"].mean()
        assert jn.bounds == pytest.approx(tuple(w + mean_age for w in jn.bounds_centered))
        assert list(jn.bounds) == sorted(jn.bounds)
        assert jn.observed_range == (data["age"].min(), data["age"].max())

    def test_nowhere_significant(self):
        jn = mr.johnson_neyman(stub_fit(b1=0.1, b3=0.1, v11=1.0, v33=1.0), AGE_FRAME, moderator="age_c")
        assert jn.significant_region == "nowhere"
        assert jn.bounds == ()

    def test_significant_inside_interval(self):
        jn = mr.johnson_neyman(stub_fit(b1=1.0, b3=0.0, v11=0.01, v33=0.0001), AGE_FRAME, moderator="age_c")
        assert jn.significant_region == "inside"
        low, high = jn.bounds_centered
        assert low < 0 < high

    def test_linear_case_single_bound(self):
        t2 = stats.t.ppf(0.975, df=10_000) ** 2
        jn = mr.johnson_neyman(stub_fit(b1=1.0, b3=1.0, v11=0.01, v33=1.0 / t2), AGE_FRAME, moderator="age_c")
        assert jn.significant_region == "above"
        assert len(jn.bounds) == 1
        assert jn.bounds_centered[0] == pytest.approx(-(1.0 - t2 * 0.01) / 2.0)

    def test_within_range_flags(self):
        jn = mr.johnson_neyman(stub_fit(b1=1.0, b3=0.0, v11=0.01, v33=0.0001), AGE_FRAME, moderator="age_c")
        low, high = jn.bounds
        assert jn.within_range == (20.0 <= low <= 60.0, 20.0 <= high <= 60.0)


class TestRunModeration:

    def test_run_moderation_bundle(self, participants):
        analysis = mr.run_moderation(participants, "ftt_nondominant", verbose=False)
        assert analysis.fit.outcome == "ftt_nondominant"
        assert len(analysis.simple_slopes) == 3
        assert analysis.johnson_neyman.alpha == 0.05
        assert "shapiro_p" in analysis.fit.diagnostics

    def test_run_fits_both_hands_and_writes_figures(self, participants, tmp_path):
        out = mr.run(participants, figures_dir=tmp_path, tables_dir=tmp_path, verbose=False)
        assert set(out["primary"]) == {"ftt_dominant", "ftt_nondominant"}
        assert set(out["exploratory"]) == {"ftt_dominant", "ftt_nondominant"}
        for path in out["figures"].values():
            assert path.exists()
        assert (tmp_path / "moderation_coefficients.csv").exists()
