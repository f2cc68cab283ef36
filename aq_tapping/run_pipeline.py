"""Load the participant file, run every analysis and write the report."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Optional

from aq_tapping.basic_analysis import (
    correlation_analysis,
    descriptive_statistics,
    moderation_regression,
    paired_comparison,
)
from aq_tapping.basic_analysis.utils import print_section_header
from aq_tapping.figures_tables.report import render_report, write_report
from aq_tapping.preprocessing.constants import (
    DEFAULT_DATA_FILE,
    HAND_COLUMNS,
    MIN_TAP_COUNT,
    OUTPUT_DIR,
    OUTPUT_FIGURES_SUBDIR,
    OUTPUT_TABLES_SUBDIR,
    REPORT_FILENAME,
    get_output_dir,
)
from aq_tapping.preprocessing.loaders import load_tapping_data


def main(
    data_path: Path = DEFAULT_DATA_FILE,
    output_dir: Path = OUTPUT_DIR,
    min_taps: float = MIN_TAP_COUNT,
    expected_r2: Optional[dict[str, float]] = None,
    save_tables: bool = False,
    verbose: bool = True,
) -> dict[str, Any]:
    """
    Run load -> describe -> paired test -> correlate -> model -> render.

    Returns the result objects of every stage plus the report path.
    """
    if sys.platform.startswith("win") and hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8")

    output_dir = Path(output_dir)
    figures_dir = get_output_dir(output_dir, OUTPUT_FIGURES_SUBDIR)
    tables_dir = get_output_dir(output_dir, OUTPUT_TABLES_SUBDIR) if save_tables else None

    if verbose:
        print_section_header("DATA LOADING")
    df = load_tapping_data(data_path, min_taps=min_taps, verbose=verbose)

    descriptives = descriptive_statistics.run(df, tables_dir=tables_dir, verbose=verbose)
    paired = paired_comparison.run(df, figures_dir=figures_dir, verbose=verbose)
    correlation = correlation_analysis.run(df, figures_dir=figures_dir, tables_dir=tables_dir, verbose=verbose)
    moderation = moderation_regression.run(df, figures_dir=figures_dir, tables_dir=tables_dir, verbose=verbose)

    figures = {
        'paired_raincloud': paired['figure'],
        'correlation_heatmap': correlation['figure'],
        **moderation['figures'],
    }
    results = {
        'data': df,
        'descriptives': descriptives,
        'paired': paired['result'],
        'correlation': correlation['result'],
        'moderation': {
            'primary': moderation['primary'],
            'exploratory': moderation['exploratory'],
        },
    }

    if verbose:
        print_section_header("REPORT")
    report_path = output_dir / REPORT_FILENAME
    text = render_report(results, figures=figures, expected_r2=expected_r2, report_dir=output_dir)
    write_report(text, report_path)
    if verbose:
        print(f"\n  Report written to {report_path}")
        print(f"  Figures written to {figures_dir}")
        if tables_dir is not None:
            print(f"  Tables written to {tables_dir}")

    results['figures'] = figures
    results['report_path'] = report_path
    return results


def _parse_expected_r2(value: str) -> tuple[str, float]:
    """'dominant=22%' or 'dominant=0.22' -> ('dominant', 0.22)."""
    hand, sep, number = value.partition("=")
    hand = hand.strip()
    if not sep or hand not in HAND_COLUMNS:
        raise argparse.ArgumentTypeError(
            f"expected HAND=VALUE with HAND in {sorted(HAND_COLUMNS)}, got '{value}'"
        )
    number = number.strip()
    percent = number.endswith("%")
    try:
        r2 = float(number.rstrip("%"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"R² value must be a number, got '{number}'")
    if percent:
        r2 /= 100
    if not 0 <= r2 <= 1:
        raise argparse.ArgumentTypeError(
            f"R² must be a proportion in [0, 1] or a percentage with '%' (e.g. 22%), got '{number}'"
        )
    return hand, r2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AQ-10 and finger-tapping analysis: descriptives, paired test, "
                    "correlations and AQ-10 x Age moderation models."
    )
    parser.add_argument("--data", type=Path, default=DEFAULT_DATA_FILE,
                        help="Participant file (CSV or TSV).")
    parser.add_argument("--output-dir", type=Path, default=OUTPUT_DIR,
                        help="Directory for report.md, figures/ and tables/.")
    parser.add_argument("--min-taps", type=float, default=MIN_TAP_COUNT,
                        help="Drop participants with dominant-hand taps at or below this count.")
    parser.add_argument("--expected-r2", type=_parse_expected_r2, action="append", default=[],
                        metavar="HAND=VALUE",
                        help="R² stated in the manuscript prose, as a percentage (dominant=22%%) "
                             "or a proportion (dominant=0.22); "
                             "mismatches are flagged. Repeatable.")
    parser.add_argument("--save-tables", action="store_true", help="Also write CSV tables.")
    parser.add_argument("--quiet", action="store_true", help="Suppress console output.")
    return parser


def cli(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    main(
        data_path=args.data,
        output_dir=args.output_dir,
        min_taps=args.min_taps,
        expected_r2=dict(args.expected_r2) or None,
        save_tables=args.save_tables,
        verbose=not args.quiet,
    )


if __name__ == "__main__":
    cli()
