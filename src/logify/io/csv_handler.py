"""
Delimited-text reader and writer for log entries.

This module converts between CSV-style files and sequences of validated
LogEntry values. Reads are all-or-nothing: the first structural or validation
problem aborts the whole batch. Writes go to a temporary file that replaces
the destination only once every row has been written.

File layout:
    timestamp,user_id,action,duration[,metadata]
    2024-03-15T10:00:00Z,user1,login,30.5
    2024-03-15T10:05:00Z,user2,search,15.2,"{""source"":""web""}"

Quoting follows the stdlib ``csv`` excel dialect with a configurable
delimiter: fields containing the delimiter, a quote or a newline are quoted,
and a doubled quote inside a quoted field is a literal quote.
"""

from __future__ import annotations

import csv
import json
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, TextIO, Union

from logify.domain.log_entry.constants import (
    ALL_COLUMNS,
    DEFAULT_DELIMITER,
    METADATA_FIELD,
    QUOTE_CHAR,
    REQUIRED_COLUMNS,
)
from logify.domain.log_entry.models import LogEntry
from logify.domain.log_entry.validator import validate_fields
from logify.domain.pipelines.exceptions import CsvIOError, MalformedRowError
from logify.domain.pipelines.types import TelemetrySink, emit
from logify.utils.date_parser import format_timestamp

PathLike = Union[str, "os.PathLike[str]"]

_FORBIDDEN_DELIMITERS = (QUOTE_CHAR, "\r", "\n")


def validate_delimiter(delimiter: Any) -> str:
    """
    Return ``delimiter`` if it is usable for the log format.

    Raises:
        ValueError: Unless the delimiter is one ASCII character other than a
            quote, CR or LF
    """
    if not isinstance(delimiter, str) or len(delimiter) != 1 or ord(delimiter) > 127:
        raise ValueError(
            f"delimiter must be a single ASCII character, got {delimiter!r}"
        )
    if delimiter in _FORBIDDEN_DELIMITERS:
        raise ValueError(f"delimiter cannot be {delimiter!r}")
    return delimiter


class CsvHandler:
    """
    Validating reader/writer for the delimited log format.

    Attributes:
        delimiter: Single-character field separator
        has_headers: Whether the first row names the columns

    Example:
        >>> handler = CsvHandler()
        >>> entries = handler.read_logs("logs.csv")
        >>> handler.write_logs("out.csv", entries)
    """

    def __init__(
        self,
        delimiter: str = DEFAULT_DELIMITER,
        has_headers: bool = True,
        sink: Optional[TelemetrySink] = None,
    ) -> None:
        """
        Initialize the handler.

        Args:
            delimiter: Field separator (default comma)
            has_headers: First row is a header mapping names to columns. When
                False, fields are positional and ``write_logs`` omits the
                header so its output stays readable by this handler.
            sink: Optional telemetry receiver for load/write counts

        Raises:
            ValueError: If the delimiter is unusable
        """
        self.delimiter = validate_delimiter(delimiter)
        self.has_headers = has_headers
        self._sink = sink

    def _dialect(self) -> Dict[str, Any]:
        return {
            "delimiter": self.delimiter,
            "quotechar": QUOTE_CHAR,
            "doublequote": True,
            "quoting": csv.QUOTE_MINIMAL,
            "lineterminator": "\r\n",
            "strict": True,
        }

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def read_logs(self, source: PathLike) -> List[LogEntry]:
        """
        Read and validate every row of ``source``.

        Args:
            source: Path to the delimited log file

        Returns:
            Entries in file order, each one validated

        Raises:
            CsvIOError: If the file cannot be opened or read to completion
            MalformedRowError: If the header or a row does not fit the schema
            RecordValidationError: On the first row failing validation
        """
        path = Path(source)
        try:
            with path.open("r", encoding="utf-8-sig", newline="") as handle:
                rows = self._read_rows(handle)
        except (OSError, UnicodeDecodeError) as exc:
            raise CsvIOError(f"Cannot read log file: {exc}", path=str(path)) from exc

        entries = self._rows_to_entries(rows)
        emit(self._sink, "records_loaded", count=len(entries), source=str(path))
        return entries

    def _read_rows(self, handle: TextIO) -> List[List[str]]:
        reader = csv.reader(handle, **self._dialect())
        rows: List[List[str]] = []
        try:
            for row in reader:
                # Blank lines carry no record
                if row:
                    rows.append(row)
        except csv.Error as exc:
            raise MalformedRowError(
                f"Unparseable delimited text near line {reader.line_num}: {exc}"
            ) from exc
        return rows

    def _rows_to_entries(self, rows: List[List[str]]) -> List[LogEntry]:
        if not rows:
            return []

        column_index: Optional[Dict[str, int]] = None
        data_rows = rows
        if self.has_headers:
            column_index = self._build_column_index(rows[0])
            data_rows = rows[1:]

        entries: List[LogEntry] = []
        for row_number, row in enumerate(data_rows, start=1):
            raw_fields = self._extract_fields(row, column_index, row_number)
            entry = validate_fields(raw_fields, row_number=row_number)

            metadata_text = raw_fields.get(METADATA_FIELD)
            if metadata_text:
                metadata = self._parse_metadata(metadata_text, row_number)
                if metadata is not None:
                    entry = entry.with_metadata(metadata)
            entries.append(entry)
        return entries

    @staticmethod
    def _build_column_index(header: Sequence[str]) -> Dict[str, int]:
        names = [name.strip() for name in header]

        unknown = [name for name in names if name not in ALL_COLUMNS]
        if unknown:
            raise MalformedRowError(
                f"Unknown column(s) in header: {', '.join(unknown)}"
            )

        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise MalformedRowError(
                f"Duplicate column(s) in header: {', '.join(duplicates)}"
            )

        missing = [name for name in REQUIRED_COLUMNS if name not in names]
        if missing:
            raise MalformedRowError(
                f"Missing required column(s) in header: {', '.join(missing)}"
            )

        return {name: index for index, name in enumerate(names)}

    @staticmethod
    def _extract_fields(
        row: Sequence[str],
        column_index: Optional[Dict[str, int]],
        row_number: int,
    ) -> Dict[str, str]:
        if column_index is not None:
            if len(row) != len(column_index):
                raise MalformedRowError(
                    f"Expected {len(column_index)} fields, got {len(row)}",
                    row_number=row_number,
                )
            return {name: row[index] for name, index in column_index.items()}

        if len(row) not in (len(REQUIRED_COLUMNS), len(ALL_COLUMNS)):
            raise MalformedRowError(
                f"Expected {len(REQUIRED_COLUMNS)} or {len(ALL_COLUMNS)} fields, "
                f"got {len(row)}",
                row_number=row_number,
            )
        return dict(zip(ALL_COLUMNS, row))

    @staticmethod
    def _parse_metadata(text: str, row_number: int) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedRowError(
                f"metadata is not valid JSON: {exc.msg}",
                row_number=row_number,
            ) from exc

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def write_logs(self, destination: PathLike, entries: Iterable[LogEntry]) -> int:
        """
        Write ``entries`` to ``destination``.

        The metadata column is emitted only when at least one entry carries
        metadata. The destination is replaced atomically; on failure it is
        left untouched. A replaced file keeps its permission bits, a new one
        gets the umask default.

        Args:
            destination: Output file path
            entries: Entries to write, in order

        Returns:
            Number of data rows written

        Raises:
            CsvIOError: If the destination cannot be created or fully written
        """
        path = Path(destination)
        records = list(entries)
        include_metadata = any(entry.has_metadata for entry in records)
        columns = ALL_COLUMNS if include_metadata else REQUIRED_COLUMNS

        directory = path.parent if str(path.parent) else Path(".")
        try:
            fd, tmp = tempfile.mkstemp(
                dir=directory, prefix=f".{path.name}.", suffix=".tmp"
            )
        except OSError as exc:
            raise CsvIOError(
                f"Cannot create log file: {exc}", path=str(path)
            ) from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                writer = csv.writer(handle, **self._dialect())
                if self.has_headers:
                    writer.writerow(columns)
                for entry in records:
                    writer.writerow(self.format_row(entry, include_metadata))
            os.chmod(tmp, _target_mode(path))
            os.replace(tmp, path)
        except Exception as exc:
            if os.path.exists(tmp):
                os.unlink(tmp)
            if isinstance(exc, OSError):
                raise CsvIOError(
                    f"Cannot write log file: {exc}", path=str(path)
                ) from exc
            raise

        emit(
            self._sink,
            "records_written",
            count=len(records),
            destination=str(path),
            metadata_column=include_metadata,
        )
        return len(records)

    @staticmethod
    def format_row(entry: LogEntry, include_metadata: bool) -> List[str]:
        """Render one entry as the list of field strings written to disk."""
        row = [
            format_timestamp(entry.timestamp),
            entry.user_id,
            entry.action,
            format_duration(entry.duration),
        ]
        if include_metadata:
            row.append(format_metadata(entry.metadata))
        return row


def _target_mode(path: Path) -> int:
    """Permission bits for the output: the existing file's, else umask default."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def format_duration(duration: float) -> str:
    """Shortest decimal text that parses back to exactly ``duration``."""
    return repr(float(duration))


def format_metadata(metadata: Any) -> str:
    """Compact single-line JSON; absent metadata becomes an empty field."""
    if metadata is None:
        return ""
    return json.dumps(metadata, separators=(",", ":"), ensure_ascii=False)


def read_logs(
    source: PathLike,
    delimiter: str = DEFAULT_DELIMITER,
    has_headers: bool = True,
    sink: Optional[TelemetrySink] = None,
) -> List[LogEntry]:
    """Convenience wrapper around ``CsvHandler.read_logs``."""
    return CsvHandler(delimiter, has_headers, sink).read_logs(source)


def write_logs(
    destination: PathLike,
    entries: Iterable[LogEntry],
    delimiter: str = DEFAULT_DELIMITER,
    has_headers: bool = True,
    sink: Optional[TelemetrySink] = None,
) -> int:
    """Convenience wrapper around ``CsvHandler.write_logs``."""
    return CsvHandler(delimiter, has_headers, sink).write_logs(destination, entries)
