"""
Report Rendering
================

Renders the analysis results as one Markdown document with numbered tables,
figures and captions. Sections, in order:

    1. Descriptive statistics
    2. Preliminary analysis (dominant vs non-dominant hand)
    3. Correlations
    4. Moderation regression (AQ-10 x Age)
    5. Exploratory regression (AQ-10 x Gender)

Every number in the narrative is read from a result object. A result that
lacks a field a section needs raises RenderError naming that field.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from aq_tapping.basic_analysis.utils import format_pvalue, significance_marker
from aq_tapping.errors import DataConsistencyWarning, RenderError
from aq_tapping.preprocessing.constants import ALPHA, GENDER_ORDER, HAND_COLUMNS

# Half a percentage point: prose R² values are stated to the nearest percent
R2_TOLERANCE = 0.005

INTERACTION_TERMS = [
    ('aq_c:age_c', "AQ-10 x Age"),
    ('aq_c:gender', "AQ-10 x Gender"),
]

SECTION_TITLES = {
    'descriptives': "1. Descriptive Statistics",
    'paired': "2. Preliminary Analysis: Dominant vs Non-Dominant Hand",
    'correlation': "3. Correlations",
    'primary': "4. Moderation Regression: AQ-10 x Age",
    'exploratory': "5. Exploratory Regression: AQ-10 x Gender",
}


# =============================================================================
# FORMATTING
# =============================================================================

def format_percent(value: float, decimals: int = 1) -> str:
    """0.2234 -> '22.3%'."""
    if pd.isna(value):
        return "NA"
    return f"{value * 100:.{decimals}f}%"


def format_number(value: float, decimals: int = 2) -> str:
    if value is None or pd.isna(value):
        return "NA"
    return f"{value:.{decimals}f}"


def _format_stat(value: float, decimals: int = 3) -> str:
    """Statistic bounded by 1 in APA style: no leading zero."""
    text = format_number(value, decimals)
    return text.replace("0.", ".", 1) if text.startswith(("0.", "-0.")) else text


def _markdown_table(df: pd.DataFrame, index: bool = False) -> str:
    frame = df.reset_index() if index else df
    header = [str(c) for c in frame.columns]
    lines = [
        "| " + " | ".join(header) + " |",
        "| " + " | ".join("---" for _ in header) + " |",
    ]
    for row in frame.itertuples(index=False):
        lines.append("| " + " | ".join(str(cell) for cell in row) + " |")
    return "\n".join(lines)


def _field(obj: Any, name: str, section: str) -> Any:
    """Fetch a required field from a result object or dict."""
    if isinstance(obj, dict):
        value = obj.get(name)
    else:
        value = getattr(obj, name, None)
    if value is None:
        raise RenderError(section, name)
    return value


class _Numbering:
    """Running table and figure numbers across sections."""

    def __init__(self):
        self.table = 0
        self.figure = 0

    def next_table(self) -> int:
        self.table += 1
        return self.table

    def next_figure(self) -> int:
        self.figure += 1
        return self.figure


def _figure_block(number: int, path: Path, caption: str, report_dir: Optional[Path]) -> str:
    target = Path(path)
    if report_dir is not None:
        target = Path(os.path.relpath(target, report_dir))
    return f"![Figure {number}]({target.as_posix()})\n\n*Figure {number}.* {caption}"


# =============================================================================
# SECTIONS
# =============================================================================

def render_descriptives_section(
    descriptives: dict[str, pd.DataFrame],
    numbering: Optional[_Numbering] = None,
) -> str:
    section = "descriptives"
    numbering = numbering or _Numbering()
    table = _field(descriptives, 'table', section)
    categorical = _field(descriptives, 'categorical', section)

    groups = ["Total"] + GENDER_ORDER
    rows = []
    for _, row in table.iterrows():
        cells = {'Variable': row['Variable']}
        for group in groups:
            for col in (f"{group} N", f"{group} M", f"{group} SD"):
                if col not in row.index:
                    raise RenderError(section, col)
            cells[f"{group} (n = {int(row[f'{group} N'])})"] = (
                f"{format_number(row[f'{group} M'])} ({format_number(row[f'{group} SD'])})"
            )
        rows.append(cells)

    for col in ('Category', 'N', 'Percent'):
        if col not in categorical.columns:
            raise RenderError(section, col)
    n_total = int(categorical['N'].sum())
    counts = {r['Category']: (int(r['N']), r['Percent']) for _, r in categorical.iterrows()}
    gender_text = ", ".join(
        f"{counts[g][0]} {g.lower()} ({format_percent(counts[g][1] / 100)})"
        for g in GENDER_ORDER if g in counts
    )
    age_row = table[table['Variable'].str.startswith('Age')]
    age_text = ""
    if not age_row.empty:
        age_text = (f" Mean age was {format_number(age_row['Total M'].iloc[0])} years "
                    f"(SD = {format_number(age_row['Total SD'].iloc[0])}).")

    t_num = numbering.next_table()
    return "\n\n".join([
        f"## {SECTION_TITLES[section]}",
        f"The analytic sample comprised N = {n_total} participants: {gender_text}.{age_text}",
        f"*Table {t_num}.* Means (standard deviations) for the total sample and by gender.",
        _markdown_table(pd.DataFrame(rows)),
    ])


def render_paired_section(
    paired: Any,
    figure_path: Optional[Path] = None,
    numbering: Optional[_Numbering] = None,
    report_dir: Optional[Path] = None,
) -> str:
    section = "paired"
    numbering = numbering or _Numbering()
    n = _field(paired, 'n', section)
    w_stat = _field(paired, 'normality_w', section)
    normality_p = _field(paired, 'normality_p', section)
    normal = _field(paired, 'normal', section)
    test = _field(paired, 'test', section)
    statistic = _field(paired, 'statistic', section)
    p_value = _field(paired, 'p_value', section)
    median_diff = _field(paired, 'median_difference', section)
    mean_diff = _field(paired, 'mean_difference', section)
    effect = _field(paired, 'effect_size', section)
    effect_label = _field(paired, 'effect_size_label', section)
    favors = _field(paired, 'favors', section)

    normality_text = (
        f"A Shapiro-Wilk test on the dominant minus non-dominant differences "
        f"(W = {_format_stat(w_stat)}, p {_p_clause(normality_p)}) "
        + ("did not reject normality, so a paired-samples t-test was used."
           if normal else "rejected normality, so a Wilcoxon signed-rank test was used.")
    )
    if test == "wilcoxon":
        stat_text = f"T = {format_number(statistic, 1)}"
        center_text = f"median difference = {format_number(median_diff)} taps"
    else:
        stat_text = f"t({n - 1}) = {format_number(statistic)}"
        center_text = f"mean difference = {format_number(mean_diff)} taps"

    if p_value < ALPHA and favors != "none":
        outcome_text = f"Tapping was significantly faster with the {favors} hand"
    else:
        outcome_text = "Tapping did not differ significantly between hands"

    parts = [
        f"## {SECTION_TITLES[section]}",
        normality_text,
        f"{outcome_text} ({stat_text}, p {_p_clause(p_value)}, {effect_label} = "
        f"{format_number(effect)}, {center_text}, N = {n}).",
    ]
    if figure_path is not None:
        f_num = numbering.next_figure()
        parts.append(_figure_block(
            f_num, figure_path,
            "Finger-tapping scores for the dominant and non-dominant hand. "
            "Lines connect the two scores of each participant.",
            report_dir,
        ))
    return "\n\n".join(parts)


def _p_clause(p: float) -> str:
    """'= .034' or '< .001'."""
    text = format_pvalue(p)
    return text if text.startswith("<") else f"= {text}"


def render_correlation_section(
    correlation: Any,
    figure_path: Optional[Path] = None,
    numbering: Optional[_Numbering] = None,
    report_dir: Optional[Path] = None,
) -> str:
    section = "correlation"
    numbering = numbering or _Numbering()
    table = _field(correlation, 'table', section)
    labels = _field(correlation, 'labels', section)
    r_matrix = _field(correlation, 'r_matrix', section)
    p_matrix = _field(correlation, 'p_matrix', section)
    n_matrix = _field(correlation, 'n_matrix', section)
    method = _field(correlation, 'method', section)

    symbol = "ρ" if method == "spearman" else "r"
    sentences = []
    for hand_label in ("FTT Dom", "FTT Non-Dom"):
        if "AQ-10" in labels and hand_label in labels:
            r_val = r_matrix.loc["AQ-10", hand_label]
            p_val = p_matrix.loc["AQ-10", hand_label]
            hand_text = "dominant" if hand_label == "FTT Dom" else "non-dominant"
            sentences.append(
                f"AQ-10 scores correlated {symbol} = {_format_stat(r_val, 2)} "
                f"(p {_p_clause(p_val)}) with {hand_text}-hand tapping."
            )

    t_num = numbering.next_table()
    parts = [
        f"## {SECTION_TITLES[section]}",
        f"{method.capitalize()} correlations were computed on pairwise complete cases "
        f"(N = {int(n_matrix.values.min())}-{int(n_matrix.values.max())}). " + " ".join(sentences),
        f"*Table {t_num}.* {method.capitalize()} correlations. "
        "*p < .05, **p < .01, ***p < .001.",
        _markdown_table(table, index=True).replace("| index |", "| Variable |", 1),
    ]
    if figure_path is not None:
        f_num = numbering.next_figure()
        parts.append(_figure_block(
            f_num, figure_path, f"{method.capitalize()} correlation heatmap (lower triangle).", report_dir,
        ))
    return "\n\n".join(parts)


def _coefficient_rows(coefficients: pd.DataFrame, section: str) -> pd.DataFrame:
    for col in ('label', 'estimate', 'se', 'std_beta', 'ci_lower', 'ci_upper', 't', 'p'):
        if col not in coefficients.columns:
            raise RenderError(section, col)
    return pd.DataFrame({
        'Predictor': coefficients['label'],
        'b': coefficients['estimate'].map(lambda v: format_number(v, 3)),
        'SE': coefficients['se'].map(lambda v: format_number(v, 3)),
        'β': coefficients['std_beta'].map(lambda v: "—" if pd.isna(v) else format_number(v, 3)),
        '95% CI': [
            f"[{format_number(lo)}, {format_number(hi)}]"
            for lo, hi in zip(coefficients['ci_lower'], coefficients['ci_upper'])
        ],
        't': coefficients['t'].map(format_number),
        'p': [format_pvalue(p) + significance_marker(p) for p in coefficients['p']],
    })


def _slope_row(s: Any, section: str) -> dict[str, str]:
    p = _field(s, 'p', section)
    return {
        'Age level': _field(s, 'level', section),
        'Age (years)': format_number(_field(s, 'moderator_value', section), 1),
        'b': format_number(_field(s, 'slope', section), 3),
        'β': format_number(_field(s, 'std_slope', section), 3),
        'SE': format_number(_field(s, 'se', section), 3),
        '95% CI': f"[{format_number(_field(s, 'ci_lower', section))}, "
                  f"{format_number(_field(s, 'ci_upper', section))}]",
        't': format_number(_field(s, 't', section)),
        'p': format_pvalue(p) + significance_marker(p),
    }


def render_regression_section(
    analyses: dict[str, Any],
    key: str = "primary",
    figures: Optional[dict[str, Path]] = None,
    numbering: Optional[_Numbering] = None,
    report_dir: Optional[Path] = None,
    notes: Optional[list[str]] = None,
) -> str:
    """One subsection per outcome: coefficient table, R², probing of AQ x Age."""
    section = key
    numbering = numbering or _Numbering()
    figures = figures or {}
    if not analyses:
        raise RenderError(section, 'analyses')

    parts = [f"## {SECTION_TITLES[key]}"]
    for outcome, analysis in analyses.items():
        fit = _field(analysis, 'fit', section)
        label = _field(fit, 'outcome_label', section)
        coefficients = _field(fit, 'coefficients', section)
        formula = _field(fit, 'formula', section)
        n = _field(fit, 'n', section)
        r2 = _field(fit, 'r2', section)
        adj_r2 = _field(fit, 'adj_r2', section)
        f_stat = _field(fit, 'f_stat', section)
        f_p = _field(fit, 'f_p', section)
        df_resid = _field(fit, 'df_resid', section)
        df_model = len(coefficients) - 1

        parts.append(f"### {label}")
        parts.append(
            f"The model explained {format_percent(r2)} of the variance in {label.lower()} tapping "
            f"(R² = {_format_stat(r2)}, adjusted R² = {_format_stat(adj_r2)}, "
            f"F({df_model}, {int(df_resid)}) = {format_number(f_stat)}, p {_p_clause(f_p)}, N = {n})."
        )

        for term, term_text in INTERACTION_TERMS:
            interaction = coefficients[coefficients['term'] == term]
            if interaction.empty:
                continue
            row = interaction.iloc[0]
            verdict = "was significant" if row['p'] < ALPHA else "was not significant"
            parts.append(
                f"The {term_text} interaction {verdict} "
                f"(b = {format_number(row['estimate'], 3)}, t({int(df_resid)}) = {format_number(row['t'])}, "
                f"p {_p_clause(row['p'])})."
            )

        t_num = numbering.next_table()
        parts.append(f"*Table {t_num}.* OLS regression of {label.lower()} tapping: `{formula}`. "
                     "AQ-10 and age are mean-centered; gender is coded 0 = Male, 1 = Female.")
        parts.append(_markdown_table(_coefficient_rows(coefficients, section)))

        slopes = getattr(analysis, 'simple_slopes', None)
        if key == "primary":
            if slopes is None:
                raise RenderError(section, 'simple_slopes')
            jn = _field(analysis, 'johnson_neyman', section)
            slope_rows = pd.DataFrame([_slope_row(s, section) for s in slopes])
            t_num = numbering.next_table()
            parts.append(f"*Table {t_num}.* Simple slopes of AQ-10 on {label.lower()} tapping "
                         "at -1 SD, the mean and +1 SD of age.")
            parts.append(_markdown_table(slope_rows))

            bounds = _field(jn, 'bounds', section)
            within_range = _field(jn, 'within_range', section)
            low, high = _field(jn, 'observed_range', section)
            describe = _field(jn, 'describe', section)
            in_range = [f"{b:.1f}" for b, inside in zip(bounds, within_range) if inside]
            range_text = (f"bounds within the observed age range ({low:.0f}-{high:.0f}): "
                          f"{', '.join(in_range)}" if in_range
                          else f"no bound falls within the observed age range ({low:.0f}-{high:.0f})")
            parts.append(f"Johnson-Neyman analysis: the AQ-10 slope is {describe}; {range_text}.")

            for kind, caption in (
                ('simple_slopes', f"Simple slopes of AQ-10 on {label.lower()} tapping by age."),
                ('johnson_neyman', f"Johnson-Neyman plot for {label.lower()} tapping. "
                                   "Shaded band is the confidence interval of the AQ-10 slope."),
            ):
                path = figures.get(f"{kind}_{outcome}")
                if path is not None:
                    parts.append(_figure_block(numbering.next_figure(), path, caption, report_dir))

    for note in notes or []:
        parts.append(f"> **Data consistency note.** {note}")
    return "\n\n".join(parts)


# =============================================================================
# CONSISTENCY CHECKS
# =============================================================================

def check_reported_values(
    expected_r2: Optional[dict[str, float]],
    analyses: dict[str, Any],
    tolerance: float = R2_TOLERANCE,
) -> list[str]:
    """
    Compare prose-stated R² values with the fitted ones.

    ``expected_r2`` maps a hand ("dominant" / "non-dominant") or an outcome
    column to a proportion in [0, 1] (22% is 0.22). Each mismatch larger
    than ``tolerance`` emits a DataConsistencyWarning and is returned as a note.
    """
    notes = []
    for key, expected_prop in (expected_r2 or {}).items():
        outcome = HAND_COLUMNS.get(key, key)
        if outcome not in analyses:
            raise ValueError(f"Expected R² given for unknown outcome '{key}'. "
                             f"Valid: {sorted(HAND_COLUMNS) + sorted(analyses)}")
        if not 0 <= expected_prop <= 1:
            raise ValueError(f"Expected R² for '{key}' must be a proportion in [0, 1], got {expected_prop}")
        fit = analyses[outcome].fit
        if abs(fit.r2 - expected_prop) > tolerance:
            message = (f"{fit.outcome_label}: stated R² of {format_percent(expected_prop)} "
                       f"does not match the fitted R² of {format_percent(fit.r2)}.")
            warnings.warn(message, DataConsistencyWarning, stacklevel=2)
            notes.append(message)
    return notes


# =============================================================================
# DOCUMENT
# =============================================================================

def render_report(
    results: dict[str, Any],
    figures: Optional[dict[str, Path]] = None,
    expected_r2: Optional[dict[str, float]] = None,
    report_dir: Optional[Path] = None,
    title: str = "Autistic Traits, Age and Finger-Tapping Performance",
) -> str:
    """
    Assemble all sections in order.

    Parameters
    ----------
    results : dict
        'descriptives', 'paired', 'correlation', 'moderation'
        ({'primary': ..., 'exploratory': ...})
    figures : dict, optional
        Figure paths keyed by name
    expected_r2 : dict, optional
        Prose-stated R² values to cross-check against the primary models
    report_dir : Path, optional
        Directory of the report; figure links are written relative to it
    """
    figures = figures or {}
    numbering = _Numbering()
    moderation = _field(results, 'moderation', 'report')
    primary = _field(moderation, 'primary', 'moderation')
    exploratory = _field(moderation, 'exploratory', 'moderation')
    notes = check_reported_values(expected_r2, primary)

    sections = [
        f"# {title}",
        render_descriptives_section(_field(results, 'descriptives', 'report'), numbering),
        render_paired_section(_field(results, 'paired', 'report'),
                              figures.get('paired_raincloud'), numbering, report_dir),
        render_correlation_section(_field(results, 'correlation', 'report'),
                                   figures.get('correlation_heatmap'), numbering, report_dir),
        render_regression_section(primary, 'primary', figures, numbering, report_dir, notes),
        render_regression_section(exploratory, 'exploratory', figures, numbering, report_dir),
    ]
    return "\n\n".join(sections) + "\n"


def write_report(text: str, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding='utf-8')
    return path
