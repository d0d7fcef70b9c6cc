"""Tests for the logify command-line entry point."""

from pathlib import Path

import pytest

from logify.cli.__main__ import main
from logify.cli.error_formatter import EXIT_BAD_INPUT, EXIT_OK

pytestmark = pytest.mark.unit

HEADER = "timestamp,user_id,action,duration\n"


def _write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestProcessCommand:
    def test_filters_converts_and_writes(self, sample_csv_path, tmp_path, capsys):
        destination = tmp_path / "out.csv"

        exit_code = main(
            [
                "process",
                str(sample_csv_path),
                str(destination),
                "--action",
                "login",
                "--to-unit",
                "minutes",
            ]
        )

        out = capsys.readouterr().out
        assert exit_code == EXIT_OK
        assert "rows_read=4 rows_filtered=2 rows_written=2" in out
        assert "unit=minutes" in out
        lines = destination.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "timestamp,user_id,action,duration,metadata"
        assert len(lines) == 3

    def test_min_duration_filter(self, sample_csv_path, tmp_path, capsys):
        destination = tmp_path / "out.csv"

        exit_code = main(
            ["process", str(sample_csv_path), str(destination), "--min-duration", "15.2"]
        )

        assert exit_code == EXIT_OK
        assert "rows_written=3" in capsys.readouterr().out

    def test_no_matches_writes_header_only(self, sample_csv_path, tmp_path, capsys):
        destination = tmp_path / "out.csv"

        exit_code = main(
            ["process", str(sample_csv_path), str(destination), "--action", "purchase"]
        )

        assert exit_code == EXIT_OK
        assert "average_duration=n/a" in capsys.readouterr().out
        assert destination.read_text(encoding="utf-8").splitlines() == [
            "timestamp,user_id,action,duration"
        ]

    def test_headerless_semicolon_input(self, tmp_path, capsys):
        source = _write(
            tmp_path, "in.csv", "2024-03-15T10:00:00Z;user1;login;2.0\n"
        )
        destination = tmp_path / "out.csv"

        exit_code = main(
            [
                "process",
                str(source),
                str(destination),
                "--delimiter",
                ";",
                "--no-header",
            ]
        )

        assert exit_code == EXIT_OK
        assert destination.read_text(encoding="utf-8").strip() == (
            "2024-03-15T10:00:00Z;user1;login;2.0"
        )

    def test_settings_from_config_file(self, tmp_path, capsys):
        config = _write(tmp_path, "logify.yml", 'csv_delimiter: "|"\n')
        source = _write(
            tmp_path,
            "in.csv",
            "timestamp|user_id|action|duration\n2024-03-15T10:00:00Z|user1|login|2.0\n",
        )

        exit_code = main(
            ["process", str(source), str(tmp_path / "out.csv"), "--config", str(config)]
        )

        assert exit_code == EXIT_OK

    def test_huge_durations_are_processed(self, tmp_path, capsys):
        source = _write(
            tmp_path,
            "big.csv",
            HEADER
            + "2024-03-15T10:00:00Z,user1,login,1e308\n"
            + "2024-03-15T10:05:00Z,user2,login,1e308\n",
        )
        destination = tmp_path / "out.csv"

        exit_code = main(["process", str(source), str(destination)])

        assert exit_code == EXIT_OK
        assert "rows_written=2" in capsys.readouterr().out
        assert "1e+308" in destination.read_text(encoding="utf-8")


class TestStatsCommand:
    def test_prints_summary_and_action_counts(self, sample_csv_path, capsys):
        exit_code = main(["stats", str(sample_csv_path)])

        out = capsys.readouterr().out
        assert exit_code == EXIT_OK
        assert "entries: 4" in out
        assert "mean:    19.1250 seconds" in out
        assert "  login: 2" in out
        assert "  search: 1" in out

    def test_action_filter(self, sample_csv_path, capsys):
        exit_code = main(["stats", str(sample_csv_path), "--action", "login"])

        out = capsys.readouterr().out
        assert exit_code == EXIT_OK
        assert "entries: 2" in out
        assert "mean:    28.1500 seconds" in out


class TestFailures:
    def test_missing_source(self, tmp_path, capsys):
        exit_code = main(["stats", str(tmp_path / "missing.csv")])

        assert exit_code == EXIT_BAD_INPUT
        assert "I/O error" in capsys.readouterr().err

    def test_validation_error_reports_kind_and_row(self, tmp_path, capsys):
        source = _write(
            tmp_path,
            "in.csv",
            HEADER
            + "2024-03-15T10:00:00Z,user1,login,1.0\n"
            + "2024-03-15T10:05:00Z,user2,search,-15.2\n",
        )
        destination = tmp_path / "out.csv"

        exit_code = main(["process", str(source), str(destination)])

        assert exit_code == EXIT_BAD_INPUT
        assert "Validation error (negative duration) at row 2" in capsys.readouterr().err
        assert not destination.exists()

    def test_malformed_row(self, tmp_path, capsys):
        source = _write(tmp_path, "in.csv", HEADER + "2024-03-15T10:00:00Z,user1\n")

        exit_code = main(["stats", str(source)])

        assert exit_code == EXIT_BAD_INPUT
        assert "Malformed input at row 1" in capsys.readouterr().err

    def test_empty_aggregate(self, sample_csv_path, capsys):
        exit_code = main(["stats", str(sample_csv_path), "--action", "purchase"])

        assert exit_code == EXIT_BAD_INPUT
        assert "Empty aggregate" in capsys.readouterr().err

    def test_bad_delimiter(self, sample_csv_path, capsys):
        exit_code = main(["stats", str(sample_csv_path), "--delimiter", "ab"])

        assert exit_code == EXIT_BAD_INPUT
        assert "single ASCII character" in capsys.readouterr().err

    def test_bad_config_file(self, sample_csv_path, tmp_path, capsys):
        config = _write(tmp_path, "bad.yml", "- not a mapping\n")

        exit_code = main(["stats", str(sample_csv_path), "--config", str(config)])

        assert exit_code == EXIT_BAD_INPUT
        assert "Configuration error" in capsys.readouterr().err

    def test_unknown_command_exits_via_argparse(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["explode"])

        assert exc_info.value.code == 2
