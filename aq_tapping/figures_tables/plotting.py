"""
Plotting Utilities
==================

Publication figures for the report.

This module provides:
- Publication-quality plot styling
- Paired raincloud of both hands
- Lower-triangle correlation heatmap
- Simple-slopes and Johnson-Neyman plots for the moderation models

All figures are written as 300-dpi PNG and closed after saving.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

import matplotlib
matplotlib.use("Agg")  # Headless backend

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from scipy import stats

from aq_tapping.basic_analysis.utils import significance_marker
from aq_tapping.preprocessing.constants import HAND_ORDER

if TYPE_CHECKING:
    from aq_tapping.basic_analysis.moderation_regression import ModerationAnalysis


# =============================================================================
# STYLE CONFIGURATION
# =============================================================================

# Color palette for consistent styling
COLORS = {
    'primary': '#2E86AB',      # Blue
    'secondary': '#A23B72',    # Magenta
    'accent': '#F18F01',       # Orange
    'neutral': '#95A5A6',      # Gray

    # Hands
    'dominant': '#2E86AB',
    'non-dominant': '#F18F01',

    # Moderator levels
    '-1 SD': '#3498DB',
    'Mean': '#2C3E50',
    '+1 SD': '#E74C3C',

    'significant': '#2ECC71',
}


def set_publication_style():
    """Set matplotlib style for publication-quality figures."""
    plt.rcParams.update({
        'figure.dpi': 150,
        'savefig.dpi': 300,
        'font.size': 11,
        'font.family': 'sans-serif',
        'axes.titlesize': 12,
        'axes.labelsize': 11,
        'axes.titleweight': 'bold',
        'axes.labelweight': 'bold',
        'axes.spines.top': False,
        'axes.spines.right': False,
        'legend.fontsize': 10,
        'legend.frameon': False,
        'xtick.labelsize': 10,
        'ytick.labelsize': 10,
        'figure.figsize': (8, 6),
        'figure.facecolor': 'white',
        'axes.facecolor': 'white',
        'axes.grid': True,
        'grid.alpha': 0.3,
        'grid.linestyle': '--',
    })


def save_figure(fig: plt.Figure, output_path: Path) -> Path:
    """Save as 300-dpi PNG and release the figure."""
    output_path = Path(output_path).with_suffix('.png')
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=300, bbox_inches='tight', format='png')
    plt.close(fig)
    return output_path


# =============================================================================
# DISTRIBUTION PLOTS
# =============================================================================

def create_paired_raincloud(
    long_df: pd.DataFrame,
    output_path: Path,
    title: str = "Finger Tapping by Hand",
) -> Path:
    """
    Raincloud of tapping scores per hand with within-participant lines.

    Args:
        long_df: Long-form frame with participant_id, hand, score
        output_path: Path to save figure
        title: Plot title
    """
    set_publication_style()

    fig, ax = plt.subplots(figsize=(7, 6))
    palette = {hand: COLORS[hand] for hand in HAND_ORDER}

    sns.violinplot(data=long_df, x='hand', y='score', hue='hand', order=HAND_ORDER,
                   palette=palette, inner=None, cut=0, linewidth=0, legend=False, ax=ax)
    for collection in ax.collections:
        collection.set_alpha(0.35)
    sns.boxplot(data=long_df, x='hand', y='score', hue='hand', order=HAND_ORDER,
                palette=palette, width=0.15, showfliers=False, legend=False,
                boxprops={'zorder': 3}, ax=ax)

    # Within-participant lines
    wide = long_df.assign(hand=long_df['hand'].astype(str)).pivot(
        index='participant_id', columns='hand', values='score'
    )
    for _, row in wide.iterrows():
        ax.plot([0, 1], [row[HAND_ORDER[0]], row[HAND_ORDER[1]]],
                color=COLORS['neutral'], alpha=0.3, linewidth=0.8, zorder=1)

    sns.stripplot(data=long_df, x='hand', y='score', hue='hand', order=HAND_ORDER,
                  palette=palette, size=3, jitter=0.05, alpha=0.6, legend=False, ax=ax)

    ax.set_xticks([0, 1])
    ax.set_xticklabels(['Dominant', 'Non-Dominant'])
    ax.set_xlabel('Hand', fontweight='bold')
    ax.set_ylabel('Taps (FTT)', fontweight='bold')
    ax.set_title(title, fontweight='bold')

    plt.tight_layout()
    return save_figure(fig, output_path)


# =============================================================================
# HEATMAPS
# =============================================================================

def create_correlation_heatmap(
    r_matrix: pd.DataFrame,
    p_matrix: pd.DataFrame,
    output_path: Path,
    title: str = "Correlation Matrix",
    method: str = "spearman",
) -> Path:
    """
    Lower-triangle correlation heatmap annotated with r and significance stars.

    Args:
        r_matrix: Correlation coefficients
        p_matrix: P-values
        output_path: Path to save figure
        title: Plot title
        method: Correlation method, used in the colorbar label
    """
    set_publication_style()

    fig, ax = plt.subplots(figsize=(8, 7))

    # Mask upper triangle
    mask = np.triu(np.ones_like(r_matrix, dtype=bool), k=1)

    annot_matrix = pd.DataFrame("", index=r_matrix.index, columns=r_matrix.columns)
    for i in range(len(r_matrix)):
        for j in range(i):
            r_val = r_matrix.iloc[i, j]
            if pd.isna(r_val):
                annot_matrix.iloc[i, j] = "NA"
            else:
                annot_matrix.iloc[i, j] = f"{r_val:.2f}{significance_marker(p_matrix.iloc[i, j])}"

    cbar_label = "Spearman ρ" if method == "spearman" else "Pearson r"
    sns.heatmap(
        r_matrix,
        mask=mask,
        annot=annot_matrix,
        fmt="",
        cmap="RdBu_r",
        center=0,
        vmin=-1,
        vmax=1,
        square=True,
        linewidths=0.5,
        cbar_kws={"shrink": 0.8, "label": cbar_label},
        ax=ax,
    )
    ax.grid(False)
    ax.set_title(title, fontweight='bold', pad=20)

    fig.text(0.5, 0.01, "Note. *p < .05, **p < .01, ***p < .001",
             ha='center', fontsize=10, style='italic')

    plt.tight_layout(rect=[0, 0.04, 1, 1])
    return save_figure(fig, output_path)


# =============================================================================
# MODERATION PLOTS
# =============================================================================

def create_simple_slopes_plot(
    analysis: "ModerationAnalysis",
    data: pd.DataFrame,
    output_path: Path,
    title: Optional[str] = None,
) -> Path:
    """
    Predicted tapping score across AQ-10 at -1 SD, mean and +1 SD of age.

    Gender is held at its sample proportion.
    """
    set_publication_style()

    fit = analysis.fit
    aq_mean = float(data['aq_score'].mean())
    aq_grid = np.linspace(data['aq_score'].min(), data['aq_score'].max(), 50)

    fig, ax = plt.subplots(figsize=(8, 6))
    ax.scatter(data['aq_score'], data[fit.outcome], color=COLORS['neutral'], alpha=0.4, s=18)

    for s in analysis.simple_slopes:
        grid = pd.DataFrame({
            'aq_c': aq_grid - aq_mean,
            'age_c': s.moderator_centered,
            'gender': float(data['gender'].mean()),
        })
        predicted = fit.results.predict(grid)
        ax.plot(aq_grid, predicted, color=COLORS[s.level], linewidth=2,
                label=f"{s.level} age ({s.moderator_value:.1f}): b = {s.slope:.2f}{significance_marker(s.p)}")

    ax.set_xlabel('AQ-10 Score', fontweight='bold')
    ax.set_ylabel(f'FTT {fit.outcome_label} (taps)', fontweight='bold')
    ax.set_title(title or f"Simple Slopes of AQ-10: {fit.outcome_label}", fontweight='bold')
    ax.legend(title='Age')

    plt.tight_layout()
    return save_figure(fig, output_path)


def create_johnson_neyman_plot(
    analysis: "ModerationAnalysis",
    data: pd.DataFrame,
    output_path: Path,
    title: Optional[str] = None,
) -> Path:
    """Conditional AQ-10 slope across age with its confidence band and J-N bounds."""
    set_publication_style()

    fit = analysis.fit
    jn = analysis.johnson_neyman
    model = fit.results
    cov = model.cov_params()
    interaction = 'aq_c:age_c' if 'aq_c:age_c' in model.params.index else 'age_c:aq_c'

    age_mean = float(data['age'].mean())
    age_grid = np.linspace(jn.observed_range[0], jn.observed_range[1], 200)
    w = age_grid - age_mean
    slope = model.params['aq_c'] + model.params[interaction] * w
    se = np.sqrt(np.maximum(
        cov.loc['aq_c', 'aq_c'] + 2 * w * cov.loc['aq_c', interaction] + w ** 2 * cov.loc[interaction, interaction],
        0.0,
    ))
    t_crit = stats.t.ppf(1 - jn.alpha / 2, df=fit.df_resid)
    lower, upper = slope - t_crit * se, slope + t_crit * se

    fig, ax = plt.subplots(figsize=(8, 6))
    ax.plot(age_grid, slope, color=COLORS['primary'], linewidth=2, label='Conditional slope of AQ-10')
    ax.fill_between(age_grid, lower, upper, color=COLORS['primary'], alpha=0.2,
                    label=f'{int(round((1 - jn.alpha) * 100))}% CI')
    significant = (lower > 0) | (upper < 0)
    ax.fill_between(age_grid, lower, upper, where=significant, color=COLORS['significant'],
                    alpha=0.3, label='Significant region')
    ax.axhline(0, color='black', linewidth=1)

    for bound, inside in zip(jn.bounds, jn.within_range):
        if inside:
            ax.axvline(bound, color=COLORS['secondary'], linestyle='--', linewidth=1.5)
            ax.annotate(f"{bound:.1f}", xy=(bound, ax.get_ylim()[1]), ha='center', va='bottom',
                        fontsize=9, color=COLORS['secondary'])

    ax.set_xlabel('Age (years)', fontweight='bold')
    ax.set_ylabel('Slope of AQ-10 on FTT', fontweight='bold')
    ax.set_title(title or f"Johnson-Neyman Plot: {fit.outcome_label}", fontweight='bold')
    ax.legend(loc='best')

    plt.tight_layout()
    return save_figure(fig, output_path)
