"""Unit tests for the delimited log reader/writer."""

import os
import stat
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from logify.domain.pipelines.exceptions import (
    CsvIOError,
    MalformedRowError,
    RecordValidationError,
    ValidationErrorKind,
)
from logify.io import csv_handler
from logify.io.csv_handler import (
    CsvHandler,
    format_duration,
    format_metadata,
    read_logs,
    validate_delimiter,
    write_logs,
)

pytestmark = pytest.mark.unit

HEADER = "timestamp,user_id,action,duration\n"


def _write(tmp_path: Path, text: str, name: str = "logs.csv") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestDelimiter:
    @pytest.mark.parametrize("delimiter", [",", ";", "\t", "|"])
    def test_valid_delimiters(self, delimiter):
        assert CsvHandler(delimiter=delimiter).delimiter == delimiter

    @pytest.mark.parametrize("delimiter", ["", ",,", '"', "\n", "\r", "é", 44])
    def test_invalid_delimiters(self, delimiter):
        with pytest.raises(ValueError):
            validate_delimiter(delimiter)


class TestReadLogs:
    def test_reads_sample_in_file_order(self, sample_csv_path):
        entries = CsvHandler().read_logs(sample_csv_path)

        assert [e.action for e in entries] == ["login", "search", "logout", "login"]
        assert [e.duration for e in entries] == [30.5, 15.2, 5.0, 25.8]
        assert all(e.metadata is None for e in entries)
        assert entries[0].timestamp == datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)

    def test_header_columns_in_any_order(self, tmp_path):
        path = _write(
            tmp_path,
            "duration,action,timestamp,user_id\n"
            "12.5,search,2024-03-15T10:00:00Z,user9\n",
        )

        (entry,) = CsvHandler().read_logs(path)

        assert entry.user_id == "user9"
        assert entry.action == "search"
        assert entry.duration == 12.5

    def test_headerless_positional(self, tmp_path):
        path = _write(tmp_path, "2024-03-15T10:00:00Z,user1,login,1.5\n")

        (entry,) = CsvHandler(has_headers=False).read_logs(path)

        assert entry.user_id == "user1"
        assert entry.duration == 1.5

    def test_headerless_with_metadata_column(self, tmp_path):
        path = _write(
            tmp_path,
            '2024-03-15T10:00:00Z,user1,login,1.5,"{""source"":""web""}"\n',
        )

        (entry,) = CsvHandler(has_headers=False).read_logs(path)

        assert entry.metadata == {"source": "web"}

    def test_custom_delimiter_and_quoted_fields(self, tmp_path):
        path = _write(
            tmp_path,
            "timestamp;user_id;action;duration\n"
            '2024-03-15T10:00:00Z;"user;1";"say ""hi""";2.0\n',
        )

        (entry,) = CsvHandler(delimiter=";").read_logs(path)

        assert entry.user_id == "user;1"
        assert entry.action == 'say "hi"'

    def test_quoted_field_with_newline(self, tmp_path):
        path = _write(
            tmp_path, HEADER + '2024-03-15T10:00:00Z,user1,"multi\nline",2.0\n'
        )

        (entry,) = CsvHandler().read_logs(path)

        assert entry.action == "multi\nline"

    def test_metadata_column_parsed_and_empty_cells_absent(self, tmp_path):
        path = _write(
            tmp_path,
            "timestamp,user_id,action,duration,metadata\n"
            '2024-03-15T10:00:00Z,user1,login,1.0,"{""a"":[1,2]}"\n'
            "2024-03-15T10:01:00Z,user2,login,2.0,\n",
        )

        first, second = CsvHandler().read_logs(path)

        assert first.metadata == {"a": [1, 2]}
        assert second.metadata is None

    def test_blank_lines_skipped(self, tmp_path):
        path = _write(
            tmp_path,
            HEADER + "\n2024-03-15T10:00:00Z,user1,login,1.0\n\n",
        )

        assert len(CsvHandler().read_logs(path)) == 1

    def test_empty_file_and_header_only(self, tmp_path):
        assert CsvHandler().read_logs(_write(tmp_path, "", "empty.csv")) == []
        assert CsvHandler().read_logs(_write(tmp_path, HEADER, "header.csv")) == []

    def test_utf8_bom_is_ignored(self, tmp_path):
        path = tmp_path / "bom.csv"
        path.write_bytes(
            ("\ufeff" + HEADER + "2024-03-15T10:00:00Z,user1,login,1.0\n").encode("utf-8")
        )

        assert len(CsvHandler().read_logs(path)) == 1

    def test_records_loaded_event(self, sample_csv_path, sink):
        CsvHandler(sink=sink).read_logs(sample_csv_path)

        (event,) = sink.named("records_loaded")
        assert event["count"] == 4

    def test_module_level_wrapper(self, sample_csv_path):
        assert len(read_logs(sample_csv_path)) == 4


class TestReadErrors:
    def test_missing_file_is_io_error(self, tmp_path):
        with pytest.raises(CsvIOError) as exc_info:
            CsvHandler().read_logs(tmp_path / "missing.csv")
        assert exc_info.value.path.endswith("missing.csv")

    def test_undecodable_file_is_io_error(self, tmp_path):
        path = tmp_path / "binary.csv"
        path.write_bytes(b"timestamp,user_id\n\xff\xfe\xfa\n")

        with pytest.raises(CsvIOError):
            CsvHandler().read_logs(path)

    def test_directory_is_io_error(self, tmp_path):
        with pytest.raises(CsvIOError):
            CsvHandler().read_logs(tmp_path)

    def test_wrong_field_count_is_malformed(self, tmp_path):
        path = _write(
            tmp_path,
            HEADER
            + "2024-03-15T10:00:00Z,user1,login,1.0\n"
            + "2024-03-15T10:01:00Z,user2,login\n",
        )

        with pytest.raises(MalformedRowError) as exc_info:
            CsvHandler().read_logs(path)
        assert exc_info.value.row_number == 2

    def test_headerless_wrong_field_count(self, tmp_path):
        path = _write(tmp_path, "a,b,c,d,e,f\n")

        with pytest.raises(MalformedRowError):
            CsvHandler(has_headers=False).read_logs(path)

    @pytest.mark.parametrize(
        "header",
        [
            "timestamp,user_id,action\n",
            "timestamp,user_id,action,duration,level\n",
            "timestamp,user_id,action,duration,duration\n",
        ],
    )
    def test_bad_header_is_malformed(self, tmp_path, header):
        with pytest.raises(MalformedRowError):
            CsvHandler().read_logs(_write(tmp_path, header))

    def test_unterminated_quote_is_malformed(self, tmp_path):
        path = _write(tmp_path, HEADER + '2024-03-15T10:00:00Z,"user1,login,1.0\n')

        with pytest.raises(MalformedRowError):
            CsvHandler().read_logs(path)

    def test_invalid_metadata_json_is_malformed(self, tmp_path):
        path = _write(
            tmp_path,
            "timestamp,user_id,action,duration,metadata\n"
            "2024-03-15T10:00:00Z,user1,login,1.0,{not json\n",
        )

        with pytest.raises(MalformedRowError) as exc_info:
            CsvHandler().read_logs(path)
        assert exc_info.value.row_number == 1

    @pytest.mark.parametrize(
        "row, kind",
        [
            ("not-a-time,user1,login,1.0", ValidationErrorKind.INVALID_TIMESTAMP),
            ("2024-03-15T10:00:00Z,,login,1.0", ValidationErrorKind.EMPTY_USER_ID),
            ("2024-03-15T10:00:00Z,user1,login,fast", ValidationErrorKind.INVALID_DURATION),
            ("2024-03-15T10:00:00Z,user1,login,-15.2", ValidationErrorKind.NEGATIVE_DURATION),
        ],
    )
    def test_each_validation_kind_fails_whole_read(self, tmp_path, row, kind):
        path = _write(
            tmp_path,
            HEADER + "2024-03-15T09:00:00Z,user0,login,1.0\n" + row + "\n",
        )

        with pytest.raises(RecordValidationError) as exc_info:
            CsvHandler().read_logs(path)

        assert exc_info.value.kind is kind
        assert exc_info.value.row_number == 2

    def test_first_invalid_row_in_file_order_is_reported(self, tmp_path):
        path = _write(
            tmp_path,
            HEADER
            + "2024-03-15T10:00:00Z,user1,login,-1\n"
            + "bad,user2,login,1.0\n",
        )

        with pytest.raises(RecordValidationError) as exc_info:
            CsvHandler().read_logs(path)

        assert exc_info.value.kind is ValidationErrorKind.NEGATIVE_DURATION
        assert exc_info.value.row_number == 1

    def test_no_event_on_failed_read(self, tmp_path, sink):
        path = _write(tmp_path, HEADER + "2024-03-15T10:00:00Z,,login,1.0\n")

        with pytest.raises(RecordValidationError):
            CsvHandler(sink=sink).read_logs(path)
        assert sink.named("records_loaded") == []


class TestWriteLogs:
    def test_header_without_metadata_column(self, tmp_path, sample_entries):
        path = tmp_path / "out.csv"

        written = CsvHandler().write_logs(path, sample_entries)

        lines = path.read_text(encoding="utf-8").splitlines()
        assert written == 4
        assert lines[0] == "timestamp,user_id,action,duration"
        assert lines[1] == "2024-03-15T10:00:00Z,user1,login,30.5"

    def test_metadata_column_when_any_entry_has_metadata(
        self, tmp_path, entry_factory
    ):
        entries = [
            entry_factory("login", 1.0),
            entry_factory("login", 2.0, metadata={"source": "web", "n": 1}),
        ]
        path = tmp_path / "out.csv"

        CsvHandler().write_logs(path, entries)

        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "timestamp,user_id,action,duration,metadata"
        assert lines[1].endswith(",1.0,")
        assert lines[2].endswith(',2.0,"{""source"":""web"",""n"":1}"')

    def test_fields_with_delimiter_quote_newline_are_quoted(
        self, tmp_path, entry_factory
    ):
        entries = [entry_factory(action='a,b "c"\nd')]
        path = tmp_path / "out.csv"

        CsvHandler().write_logs(path, entries)

        text = path.read_text(encoding="utf-8")
        assert '"a,b ""c""\nd"' in text
        assert CsvHandler().read_logs(path)[0].action == 'a,b "c"\nd'

    def test_rows_terminated_with_crlf(self, tmp_path, sample_entries):
        path = tmp_path / "out.csv"
        CsvHandler().write_logs(path, sample_entries)

        assert path.read_bytes().count(b"\r\n") == 5

    def test_headerless_handler_omits_header(self, tmp_path, sample_entries):
        handler = CsvHandler(has_headers=False)
        path = tmp_path / "out.csv"

        handler.write_logs(path, sample_entries)

        assert path.read_text(encoding="utf-8").startswith("2024-03-15T10:00:00Z")
        assert len(handler.read_logs(path)) == 4

    def test_empty_sequence_writes_header_only(self, tmp_path):
        path = tmp_path / "out.csv"

        assert CsvHandler().write_logs(path, []) == 0
        assert path.read_bytes() == b"timestamp,user_id,action,duration\r\n"

    def test_offset_timestamp_kept(self, tmp_path, entry_factory):
        plus_two = timezone(timedelta(hours=2))
        entry = entry_factory().derive(
            timestamp=datetime(2024, 3, 15, 12, 0, tzinfo=plus_two)
        )
        path = tmp_path / "out.csv"

        CsvHandler().write_logs(path, [entry])

        assert "2024-03-15T12:00:00+02:00" in path.read_text(encoding="utf-8")

    def test_replaces_existing_destination(self, tmp_path, sample_entries):
        path = _write(tmp_path, "old content\n", "out.csv")

        CsvHandler().write_logs(path, sample_entries)

        assert "old content" not in path.read_text(encoding="utf-8")
        assert [p.name for p in tmp_path.iterdir()] == ["out.csv"]

    def test_missing_directory_is_io_error(self, tmp_path, sample_entries):
        with pytest.raises(CsvIOError):
            CsvHandler().write_logs(tmp_path / "nope" / "out.csv", sample_entries)

    def test_failed_write_leaves_destination_untouched(
        self, tmp_path, sample_entries, monkeypatch
    ):
        path = _write(tmp_path, "original\n", "out.csv")

        def _boom(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(csv_handler.os, "replace", _boom)

        with pytest.raises(CsvIOError):
            CsvHandler().write_logs(path, sample_entries)

        assert path.read_text(encoding="utf-8") == "original\n"
        assert [p.name for p in tmp_path.iterdir()] == ["out.csv"]

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_replaced_destination_keeps_its_mode(self, tmp_path, sample_entries):
        path = _write(tmp_path, "old\n", "out.csv")
        path.chmod(0o644)

        CsvHandler().write_logs(path, sample_entries)

        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_new_destination_follows_umask(self, tmp_path, sample_entries):
        previous = os.umask(0o022)
        try:
            path = tmp_path / "out.csv"
            CsvHandler().write_logs(path, sample_entries)
        finally:
            os.umask(previous)

        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_records_written_event(self, tmp_path, sample_entries, sink):
        write_logs(tmp_path / "out.csv", sample_entries, sink=sink)

        (event,) = sink.named("records_written")
        assert event["count"] == 4
        assert event["metadata_column"] is False


class TestFormatting:
    @pytest.mark.parametrize("value", [30.5, 0.1 + 0.2, 1e-7, 123456789.123456789, 0.0])
    def test_duration_text_round_trips_exactly(self, value):
        assert float(format_duration(value)) == value

    def test_metadata_is_compact_single_line(self):
        text = format_metadata({"note": "line1\nline2", "ü": 1})

        assert "\n" not in text
        assert text == '{"note":"line1\\nline2","ü":1}'

    def test_absent_metadata_is_empty(self):
        assert format_metadata(None) == ""
