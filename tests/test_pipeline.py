"""End-to-end tests for the pipeline and its command line."""

import pytest

from aq_tapping.errors import DataConsistencyWarning, DataValidationError
from aq_tapping.figures_tables.report import SECTION_TITLES
from aq_tapping.run_pipeline import build_parser, cli, main


class TestMain:

    def test_writes_report_with_all_sections(self, participants_csv, tmp_path):
        out_dir = tmp_path / "out"
        results = main(data_path=participants_csv, output_dir=out_dir, verbose=False)
        report_path = out_dir / "report.md"
        assert results['report_path'] == report_path
        text = report_path.read_text(encoding="utf-8")
        for title in SECTION_TITLES.values():
            assert f"## {title}" in text

    def test_figures_written(self, participants_csv, tmp_path):
        out_dir = tmp_path / "out"
        results = main(data_path=participants_csv, output_dir=out_dir, verbose=False)
        assert (out_dir / "figures" / "paired_hands_raincloud.png").exists()
        assert (out_dir / "figures" / "correlation_heatmap.png").exists()
        for path in results['figures'].values():
            assert path.exists()
            assert path.parent == out_dir / "figures"

    def test_tables_only_with_flag(self, participants_csv, tmp_path):
        main(data_path=participants_csv, output_dir=tmp_path / "a", verbose=False)
        assert not (tmp_path / "a" / "tables").exists()
        main(data_path=participants_csv, output_dir=tmp_path / "b", save_tables=True, verbose=False)
        assert (tmp_path / "b" / "tables" / "table1_descriptives.csv").exists()
        assert (tmp_path / "b" / "tables" / "moderation_coefficients.csv").exists()

    def test_verbose_console_output(self, participants_csv, tmp_path, capsys):
        main(data_path=participants_csv, output_dir=tmp_path, verbose=True)
        out = capsys.readouterr().out
        assert "DESCRIPTIVE STATISTICS" in out
        assert "Report written to" in out

    def test_input_errors_propagate(self, tmp_path):
        with pytest.raises(DataValidationError):
            main(data_path=tmp_path / "missing.csv", output_dir=tmp_path, verbose=False)
        assert not (tmp_path / "report.md").exists()


class TestCommandLine:

    def test_expected_r2_parsing(self):
        args = build_parser().parse_args(["--expected-r2", "dominant=22%", "--expected-r2", "non-dominant=0.12"])
        expected = dict(args.expected_r2)
        assert expected["dominant"] == pytest.approx(0.22)
        assert expected["non-dominant"] == pytest.approx(0.12)

    @pytest.mark.parametrize("value", ["dominant=22", "dominant=1.5", "dominant=120%", "dominant=-0.1"])
    def test_ambiguous_or_out_of_range_r2_exits(self, value):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--expected-r2", value])

    def test_help_renders(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--help"])
        assert "22%" in capsys.readouterr().out

    def test_bad_expected_r2_exits(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--expected-r2", "left=22"])

    def test_cli_flags_mismatch(self, participants_csv, tmp_path):
        with pytest.warns(DataConsistencyWarning):
            cli([
                "--data", str(participants_csv),
                "--output-dir", str(tmp_path),
                "--expected-r2", "dominant=99%",
                "--quiet",
            ])
        assert "Data consistency note" in (tmp_path / "report.md").read_text(encoding="utf-8")
