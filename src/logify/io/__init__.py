"""File readers and writers for the delimited log format."""

from .csv_handler import CsvHandler, read_logs, write_logs

__all__ = ["CsvHandler", "read_logs", "write_logs"]
