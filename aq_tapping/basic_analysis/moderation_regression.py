"""
Moderation Regression Analysis
==============================

Tests whether the association between AQ-10 score and finger-tapping speed
depends on age, controlling for gender, separately for each hand.

Model Structure:
    primary:     outcome ~ aq_c * age_c + gender
    exploratory: outcome ~ aq_c * age_c + aq_c * gender

AQ-10 and age are mean-centered before fitting; gender is dummy-coded
(0 = Male, 1 = Female). The AQ x Age interaction is probed with simple slopes
at the mean and +/- 1 SD of age and with the Johnson-Neyman technique.

Output:
    outputs/figures/simple_slopes_<outcome>.png
    outputs/figures/johnson_neyman_<outcome>.png
    outputs/tables/moderation_coefficients.csv   (with --save-tables)
    outputs/tables/simple_slopes.csv
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import numpy as np
import pandas as pd
from scipy import stats
import statsmodels.formula.api as smf
from statsmodels.stats.diagnostic import het_breuschpagan
from statsmodels.stats.outliers_influence import variance_inflation_factor

from aq_tapping.basic_analysis.utils import (
    REGRESSION_OUTCOMES,
    TERM_LABELS,
    format_coefficient,
    format_pvalue,
    print_section_header,
    significance_marker,
)
from aq_tapping.errors import StatisticalPreconditionError
from aq_tapping.preprocessing.constants import ALPHA
from aq_tapping.preprocessing.standardization import CENTERED_COLUMN_MAPPING, center_predictors


# =============================================================================
# MODEL FORMULAS
# =============================================================================

MODEL_FORMULAS = {
    "primary": "{outcome} ~ aq_c * age_c + gender",
    "exploratory": "{outcome} ~ aq_c * age_c + aq_c * gender",
}

MODEL_LABELS = {
    "primary": "AQ-10 x Age moderation (controlling for gender)",
    "exploratory": "AQ-10 x Age and AQ-10 x Gender moderation",
}

PREDICTOR_COLUMNS = ["aq_score", "age", "gender"]

# VIF above this is flagged; centering keeps product terms well below it
VIF_WARN_THRESHOLD = 5.0


@dataclass
class ModelFitResult:
    name: str
    outcome: str
    outcome_label: str
    formula: str
    n: int
    coefficients: pd.DataFrame
    r2: float
    adj_r2: float
    f_stat: float
    f_p: float
    aic: float
    df_resid: float
    diagnostics: dict[str, Any] = field(default_factory=dict)
    results: Any = None

    def coefficient(self, term: str) -> pd.Series:
        """Row of the coefficient table for one model term."""
        rows = self.coefficients[self.coefficients["term"] == term]
        if rows.empty:
            raise KeyError(f"Term '{term}' not in model {self.name} ({self.formula})")
        return rows.iloc[0]


@dataclass(frozen=True)
class SimpleSlopeResult:
    level: str
    moderator_value: float
    moderator_centered: float
    slope: float
    std_slope: float
    se: float
    t: float
    p: float
    ci_lower: float
    ci_upper: float


@dataclass(frozen=True)
class JohnsonNeymanResult:
    bounds: tuple[float, ...]
    bounds_centered: tuple[float, ...]
    within_range: tuple[bool, ...]
    observed_range: tuple[float, float]
    significant_region: str
    alpha: float

    @property
    def describe(self) -> str:
        """Plain-language summary of where the focal slope is significant."""
        if self.significant_region == "everywhere":
            return "significant at every age"
        if self.significant_region == "nowhere":
            return "not significant at any age"
        if self.significant_region == "above":
            return f"significant for age above {self.bounds[0]:.1f}"
        if self.significant_region == "below":
            return f"significant for age below {self.bounds[0]:.1f}"
        low, high = self.bounds
        if self.significant_region == "inside":
            return f"significant for age between {low:.1f} and {high:.1f}"
        return f"significant for age below {low:.1f} or above {high:.1f}"


@dataclass
class ModerationAnalysis:
    fit: ModelFitResult
    simple_slopes: list[SimpleSlopeResult]
    johnson_neyman: JohnsonNeymanResult


# =============================================================================
# DATA PREPARATION
# =============================================================================

def prepare_moderation_data(df: pd.DataFrame, outcomes: Optional[list[str]] = None) -> pd.DataFrame:
    """
    Drop incomplete rows and add mean-centered AQ-10 and age.

    Gender must already be dummy-coded 0/1.
    """
    if outcomes is None:
        outcomes = [col for col, _ in REGRESSION_OUTCOMES]
    required = PREDICTOR_COLUMNS + list(outcomes)
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise StatisticalPreconditionError(f"Moderation data is missing columns: {missing}")

    data = df.dropna(subset=required).copy()
    gender_values = set(pd.unique(data["gender"]))
    if not gender_values <= {0, 1}:
        raise StatisticalPreconditionError(
            f"Gender must be dummy-coded 0/1 before modelling (found {sorted(gender_values)})"
        )
    return center_predictors(data)


def _require_centered(data: pd.DataFrame) -> None:
    missing = [c for c in CENTERED_COLUMN_MAPPING.values() if c not in data.columns]
    if missing:
        raise StatisticalPreconditionError(
            f"Predictors must be mean-centered before fitting (missing {missing}); "
            "use prepare_moderation_data()"
        )


# =============================================================================
# MODEL FITTING
# =============================================================================

def _standardized_betas(model: Any) -> pd.Series:
    """b * SD(design column) / SD(outcome); undefined for the intercept."""
    exog = pd.DataFrame(model.model.exog, columns=model.model.exog_names)
    sd_y = np.std(model.model.endog, ddof=1)
    betas = {}
    for term in model.params.index:
        if term == "Intercept" or sd_y == 0:
            betas[term] = np.nan
        else:
            betas[term] = model.params[term] * exog[term].std(ddof=1) / sd_y
    return pd.Series(betas)


def fit_moderation_model(
    data: pd.DataFrame,
    outcome: str,
    formula: Optional[str] = None,
    name: str = "primary",
    outcome_label: Optional[str] = None,
    alpha: float = ALPHA,
) -> ModelFitResult:
    """
    Fit an OLS moderation model.

    Parameters
    ----------
    data : pd.DataFrame
        Output of prepare_moderation_data (centered predictors required)
    outcome : str
        Outcome column
    formula : str, optional
        Formula template with an ``{outcome}`` placeholder; defaults to
        MODEL_FORMULAS[name]
    name : str
        Model name ("primary" / "exploratory")
    """
    _require_centered(data)
    if formula is None:
        formula = MODEL_FORMULAS[name]
    formula = formula.format(outcome=outcome)
    if outcome_label is None:
        outcome_label = dict(REGRESSION_OUTCOMES).get(outcome, outcome)

    model = smf.ols(formula, data=data).fit()
    if model.df_resid < 1:
        raise StatisticalPreconditionError(
            f"{outcome_label}: N={int(model.nobs)} is too small for {len(model.params)} parameters"
        )

    ci = model.conf_int(alpha=alpha)
    std_betas = _standardized_betas(model)
    coefficients = pd.DataFrame({
        'term': model.params.index,
        'label': [TERM_LABELS.get(t, t) for t in model.params.index],
        'estimate': model.params.values,
        'se': model.bse.values,
        'std_beta': std_betas.reindex(model.params.index).values,
        'ci_lower': ci.iloc[:, 0].values,
        'ci_upper': ci.iloc[:, 1].values,
        't': model.tvalues.values,
        'p': model.pvalues.values,
    })

    return ModelFitResult(
        name=name,
        outcome=outcome,
        outcome_label=outcome_label,
        formula=formula,
        n=int(model.nobs),
        coefficients=coefficients,
        r2=float(model.rsquared),
        adj_r2=float(model.rsquared_adj),
        f_stat=float(model.fvalue),
        f_p=float(model.f_pvalue),
        aic=float(model.aic),
        df_resid=float(model.df_resid),
        results=model,
    )


def check_model_assumptions(fit: ModelFitResult, alpha: float = ALPHA, verbose: bool = True) -> dict[str, Any]:
    """
    Residual normality (Shapiro-Wilk), homoscedasticity (Breusch-Pagan) and
    multicollinearity (VIF) for a fitted model.

    Violations are reported, never enforced.
    """
    model = fit.results
    residuals = np.asarray(model.resid)
    exog = model.model.exog
    names = model.model.exog_names

    diagnostics: dict[str, Any] = {}

    if len(residuals) >= 3:
        w_stat, p_shapiro = stats.shapiro(residuals)
        diagnostics['shapiro_w'] = float(w_stat)
        diagnostics['shapiro_p'] = float(p_shapiro)
        diagnostics['normality_ok'] = bool(p_shapiro >= alpha)

    _, p_bp, _, _ = het_breuschpagan(residuals, exog)
    diagnostics['breusch_pagan_p'] = float(p_bp)
    diagnostics['homoscedasticity_ok'] = bool(p_bp >= alpha)

    vifs = {
        names[i]: float(variance_inflation_factor(exog, i))
        for i in range(len(names)) if names[i] != "Intercept"
    }
    diagnostics['vif'] = vifs
    diagnostics['max_vif'] = max(vifs.values()) if vifs else np.nan
    diagnostics['multicollinearity_ok'] = bool(diagnostics['max_vif'] < VIF_WARN_THRESHOLD)

    if verbose:
        label = f"{fit.outcome_label} ({fit.name})"
        if not diagnostics.get('normality_ok', True):
            print(f"  [WARN] {label}: residuals not normally distributed "
                  f"(Shapiro-Wilk p = {format_pvalue(diagnostics['shapiro_p'])})")
        if not diagnostics['homoscedasticity_ok']:
            print(f"  [WARN] {label}: heteroscedasticity detected "
                  f"(Breusch-Pagan p = {format_pvalue(p_bp)})")
        if not diagnostics['multicollinearity_ok']:
            print(f"  [WARN] {label}: max VIF = {diagnostics['max_vif']:.2f}")

    fit.diagnostics = diagnostics
    return diagnostics


# =============================================================================
# PROBING THE INTERACTION
# =============================================================================

def find_interaction_term(param_names: pd.Index, term1: str, term2: str) -> str:
    """Name of the ``term1:term2`` product in the fitted parameters."""
    for candidate in (f"{term1}:{term2}", f"{term2}:{term1}"):
        if candidate in param_names:
            return candidate
    raise StatisticalPreconditionError(f"Model has no {term1} x {term2} interaction term")


def _slope_components(fit: ModelFitResult, focal: str, moderator: str) -> tuple[float, float, float, float, float]:
    model = fit.results
    interaction = find_interaction_term(model.params.index, focal, moderator)
    cov = model.cov_params()
    return (
        float(model.params[focal]),
        float(model.params[interaction]),
        float(cov.loc[focal, focal]),
        float(cov.loc[interaction, interaction]),
        float(cov.loc[focal, interaction]),
    )


def simple_slope_test(
    beta_main: float,
    beta_interaction: float,
    var_main: float,
    var_interaction: float,
    cov_main_interaction: float,
    moderator_value: float,
    df_resid: float,
) -> tuple[float, float, float, float]:
    """
    Test the focal slope at a specific moderator value.

    Returns
    -------
    (simple_slope, se, t_stat, p_value); SE by the delta method, p two-tailed
    against t with the model's residual df.
    """
    simple_slope = beta_main + beta_interaction * moderator_value

    var_simple = (
        var_main
        + (moderator_value ** 2) * var_interaction
        + 2 * moderator_value * cov_main_interaction
    )
    se_simple = float(np.sqrt(max(var_simple, 0.0)))

    if se_simple == 0:
        t_stat = np.inf if simple_slope != 0 else np.nan
        p_value = 0.0 if simple_slope != 0 else np.nan
    else:
        t_stat = simple_slope / se_simple
        p_value = float(2 * stats.t.sf(abs(t_stat), df=df_resid))

    return simple_slope, se_simple, t_stat, p_value


def compute_simple_slopes(
    fit: ModelFitResult,
    data: pd.DataFrame,
    focal: str = "aq_c",
    moderator: str = "age_c",
    alpha: float = ALPHA,
) -> list[SimpleSlopeResult]:
    """
    Conditional effect of ``focal`` at the mean and +/- 1 SD of ``moderator``.

    The slope at the mean of a centered moderator equals the focal main-effect
    coefficient.
    """
    b_main, b_int, var_main, var_int, cov_mi = _slope_components(fit, focal, moderator)
    raw_focal = _raw_column(focal)
    raw_moderator = _raw_column(moderator)
    moderator_mean = float(data[raw_moderator].mean())
    moderator_sd = float(data[moderator].std(ddof=1))
    sd_focal = float(data[raw_focal].std(ddof=1))
    sd_outcome = float(data[fit.outcome].std(ddof=1))
    t_crit = stats.t.ppf(1 - alpha / 2, df=fit.df_resid)

    slopes = []
    for level, offset in (("-1 SD", -moderator_sd), ("Mean", 0.0), ("+1 SD", moderator_sd)):
        slope, se, t_stat, p_value = simple_slope_test(
            b_main, b_int, var_main, var_int, cov_mi, offset, fit.df_resid
        )
        slopes.append(SimpleSlopeResult(
            level=level,
            moderator_value=moderator_mean + offset,
            moderator_centered=offset,
            slope=slope,
            std_slope=slope * sd_focal / sd_outcome if sd_outcome > 0 else np.nan,
            se=se,
            t=t_stat,
            p=p_value,
            ci_lower=slope - t_crit * se,
            ci_upper=slope + t_crit * se,
        ))
    return slopes


def _raw_column(centered: str) -> str:
    for raw, c_col in CENTERED_COLUMN_MAPPING.items():
        if c_col == centered:
            return raw
    return centered


def johnson_neyman(
    fit: ModelFitResult,
    data: pd.DataFrame,
    focal: str = "aq_c",
    moderator: str = "age_c",
    alpha: float = ALPHA,
) -> JohnsonNeymanResult:
    """
    Johnson-Neyman region of significance for the focal slope.

    Solves (b1 + b3*w)^2 = t_crit^2 * (V11 + 2*w*C13 + w^2*V33) for the
    centered moderator w. The slope is significant wherever the left side is
    larger. Bounds are returned in raw moderator units.
    """
    b1, b3, v11, v33, c13 = _slope_components(fit, focal, moderator)
    t_crit = stats.t.ppf(1 - alpha / 2, df=fit.df_resid)
    t2 = t_crit ** 2

    # g(w) = a*w^2 + b*w + c > 0  <=>  slope significant at w
    a = b3 ** 2 - t2 * v33
    b = 2 * (b1 * b3 - t2 * c13)
    c = b1 ** 2 - t2 * v11

    if np.isclose(a, 0.0, rtol=0.0, atol=1e-12 * max(b3 ** 2, t2 * v33, 1e-300)):
        if b == 0:
            roots: list[float] = []
            region = "everywhere" if c > 0 else "nowhere"
        else:
            roots = [-c / b]
            region = "above" if b > 0 else "below"
    else:
        discriminant = b ** 2 - 4 * a * c
        if discriminant < 0:
            roots = []
            region = "everywhere" if a > 0 else "nowhere"
        else:
            sqrt_disc = np.sqrt(discriminant)
            roots = sorted([(-b - sqrt_disc) / (2 * a), (-b + sqrt_disc) / (2 * a)])
            region = "outside" if a > 0 else "inside"

    raw_moderator = _raw_column(moderator)
    moderator_mean = float(data[raw_moderator].mean())
    observed = (float(data[raw_moderator].min()), float(data[raw_moderator].max()))
    bounds = tuple(float(w + moderator_mean) for w in roots)

    return JohnsonNeymanResult(
        bounds=bounds,
        bounds_centered=tuple(float(w) for w in roots),
        within_range=tuple(bool(observed[0] <= bound <= observed[1]) for bound in bounds),
        observed_range=observed,
        significant_region=region,
        alpha=alpha,
    )


# =============================================================================
# DRIVER
# =============================================================================

def run_moderation(
    df: pd.DataFrame,
    outcome: str,
    name: str = "primary",
    formula: Optional[str] = None,
    alpha: float = ALPHA,
    verbose: bool = True,
) -> ModerationAnalysis:
    """Fit, check assumptions, probe with simple slopes and Johnson-Neyman."""
    data = prepare_moderation_data(df, outcomes=[outcome])
    fit = fit_moderation_model(data, outcome, formula=formula, name=name, alpha=alpha)
    check_model_assumptions(fit, alpha=alpha, verbose=verbose)
    slopes = compute_simple_slopes(fit, data, alpha=alpha)
    jn = johnson_neyman(fit, data, alpha=alpha)
    return ModerationAnalysis(fit=fit, simple_slopes=slopes, johnson_neyman=jn)


def coefficients_table(analyses: dict[str, dict[str, ModerationAnalysis]]) -> pd.DataFrame:
    """Stack coefficient tables of every model into one frame."""
    frames = []
    for name, by_outcome in analyses.items():
        for analysis in by_outcome.values():
            coefs = analysis.fit.coefficients.copy()
            coefs.insert(0, 'model', name)
            coefs.insert(1, 'outcome', analysis.fit.outcome_label)
            frames.append(coefs)
    return pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()


def simple_slopes_table(analyses: dict[str, ModerationAnalysis]) -> pd.DataFrame:
    rows = []
    for analysis in analyses.values():
        for s in analysis.simple_slopes:
            rows.append({'outcome': analysis.fit.outcome_label, **s.__dict__})
    return pd.DataFrame(rows)


def _print_model(analysis: ModerationAnalysis) -> None:
    fit = analysis.fit
    print(f"\n  {fit.outcome_label}: {fit.formula}")
    print(f"  N = {fit.n}, R² = {fit.r2:.3f}, adj. R² = {fit.adj_r2:.3f}, "
          f"F = {fit.f_stat:.2f}, p = {format_pvalue(fit.f_p)}")
    print("  " + "-" * 65)
    print(f"  {'Term':<22} {'b':>9} {'SE':>8} {'beta':>8} {'t':>8} {'p':>8}")
    for _, row in fit.coefficients.iterrows():
        print(f"  {row['label']:<22} {format_coefficient(row['estimate']):>9} "
              f"{format_coefficient(row['se']):>8} {format_coefficient(row['std_beta']):>8} "
              f"{format_coefficient(row['t'], 2):>8} {format_pvalue(row['p']):>8}{significance_marker(row['p'])}")
    print("  " + "-" * 65)
    for s in analysis.simple_slopes:
        print(f"  Simple slope at {s.level:<6} age ({s.moderator_value:.1f}): "
              f"b = {s.slope:.3f}, SE = {s.se:.3f}, p = {format_pvalue(s.p)}")
    print(f"  Johnson-Neyman: AQ-10 slope {analysis.johnson_neyman.describe}")


def run(
    df: pd.DataFrame,
    figures_dir: Path | None = None,
    tables_dir: Path | None = None,
    alpha: float = ALPHA,
    verbose: bool = True,
) -> dict[str, Any]:
    """
    Fit primary and exploratory models for both hands.

    Returns
    -------
    dict
        'primary' and 'exploratory' ({outcome: ModerationAnalysis}),
        'figures' ({name: path})
    """
    from aq_tapping.figures_tables.plotting import (
        create_johnson_neyman_plot,
        create_simple_slopes_plot,
    )

    if verbose:
        print_section_header("MODERATION REGRESSION: AQ-10 x AGE")

    analyses: dict[str, dict[str, ModerationAnalysis]] = {}
    for name in MODEL_FORMULAS:
        analyses[name] = {}
        if verbose:
            print(f"\n  [{name.upper()}] {MODEL_LABELS[name]}")
        for outcome, _ in REGRESSION_OUTCOMES:
            analysis = run_moderation(df, outcome, name=name, alpha=alpha, verbose=verbose)
            analyses[name][outcome] = analysis
            if verbose:
                _print_model(analysis)

    figures: dict[str, Path] = {}
    if figures_dir is not None:
        data = prepare_moderation_data(df)
        for outcome, analysis in analyses["primary"].items():
            slopes_path = figures_dir / f"simple_slopes_{outcome}.png"
            create_simple_slopes_plot(analysis, data, slopes_path)
            figures[f"simple_slopes_{outcome}"] = slopes_path

            jn_path = figures_dir / f"johnson_neyman_{outcome}.png"
            create_johnson_neyman_plot(analysis, data, jn_path)
            figures[f"johnson_neyman_{outcome}"] = jn_path

    if tables_dir is not None:
        coefficients_table(analyses).to_csv(
            tables_dir / "moderation_coefficients.csv", index=False, encoding='utf-8-sig'
        )
        simple_slopes_table(analyses["primary"]).to_csv(
            tables_dir / "simple_slopes.csv", index=False, encoding='utf-8-sig'
        )

    return {
        'primary': analyses["primary"],
        'exploratory': analyses["exploratory"],
        'figures': figures,
    }
