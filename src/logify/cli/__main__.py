"""
Command-line entry point for Logify.

Usage:
    python -m logify.cli <command> [options]

Available commands:
    process   - Read, filter, convert and re-write a log file
    stats     - Print duration statistics for a log file

Examples:
    # Keep logins and convert durations to minutes
    python -m logify.cli process data/log.csv out/log.csv --action login --to-unit minutes

    # Average login duration
    python -m logify.cli stats data/log.csv --action login
"""

import argparse
import sys
from typing import List, Optional

from logify.config import ConfigError, Settings, get_settings, load_settings_file
from logify.domain.log_entry.service import process_log_file
from logify.domain.pipelines.exceptions import PipelineError
from logify.infrastructure.transforms import (
    DurationUnit,
    action_is,
    count_by_action,
    filter_entries,
    summarize_durations,
)
from logify.io.csv_handler import CsvHandler
from logify.utils.logging import StructlogSink, configure_logging, get_logger

from .error_formatter import EXIT_OK, exit_code_for, format_error

logger = get_logger(__name__)


def _add_input_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--delimiter", help="Field separator (default from settings)")
    parser.add_argument(
        "--no-header",
        action="store_true",
        help="Input has no header row; columns are positional",
    )
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("--action", help="Keep only entries with this action")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="logify",
        description="Logify - validate, transform and re-emit delimited log files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        required=True,
        help="Command to execute",
    )

    process_parser = subparsers.add_parser(
        "process",
        help="Read, filter, convert and re-write a log file",
    )
    process_parser.add_argument("source", help="Input log file")
    process_parser.add_argument("destination", help="Output log file")
    _add_input_options(process_parser)
    process_parser.add_argument(
        "--min-duration",
        type=float,
        help="Keep only entries with at least this duration (input unit)",
    )
    process_parser.add_argument(
        "--to-unit",
        choices=[unit.value for unit in DurationUnit],
        help="Convert durations to this unit and stamp processing metadata",
    )

    stats_parser = subparsers.add_parser(
        "stats",
        help="Print duration statistics for a log file",
    )
    stats_parser.add_argument("source", help="Input log file")
    _add_input_options(stats_parser)

    return parser


def _resolve_settings(args: argparse.Namespace) -> Settings:
    settings = load_settings_file(args.config) if args.config else get_settings()
    overrides = {}
    if args.delimiter is not None:
        overrides["csv_delimiter"] = args.delimiter
    if args.no_header:
        overrides["csv_has_headers"] = False
    return settings.model_copy(update=overrides) if overrides else settings


def _run_process(args: argparse.Namespace, settings: Settings) -> int:
    result = process_log_file(
        args.source,
        args.destination,
        action=args.action,
        min_duration=args.min_duration,
        to_unit=DurationUnit(args.to_unit) if args.to_unit else None,
        settings=settings,
        sink=StructlogSink(logger),
    )
    print(result.summary())
    return EXIT_OK


def _run_stats(args: argparse.Namespace, settings: Settings) -> int:
    sink = StructlogSink(logger)
    handler = CsvHandler(
        delimiter=settings.csv_delimiter,
        has_headers=settings.csv_has_headers,
        sink=sink,
    )
    entries = handler.read_logs(args.source)
    if args.action is not None:
        entries = filter_entries(
            entries,
            action_is(args.action),
            description=f"action == {args.action!r}",
            sink=sink,
        )

    summary = summarize_durations(entries, sink=sink)
    unit = settings.duration_unit.value
    print(f"entries: {summary.count}")
    print(f"total:   {summary.total:.4f} {unit}")
    print(f"mean:    {summary.mean:.4f} {unit}")
    print(f"min:     {summary.minimum:.4f} {unit}")
    print(f"max:     {summary.maximum:.4f} {unit}")
    for action, count in count_by_action(entries).items():
        print(f"  {action}: {count}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point with subcommand routing.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 2 for bad input, 1 for other failures)
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _resolve_settings(args)
        configure_logging(settings)

        if args.command == "process":
            return _run_process(args, settings)
        return _run_stats(args, settings)
    except (PipelineError, ConfigError, ValueError) as exc:
        logger.error(
            "command_failed",
            command=args.command,
            error_type=type(exc).__name__,
            error_message=str(exc),
        )
        print(format_error(exc), file=sys.stderr)
        return exit_code_for(exc)


if __name__ == "__main__":
    sys.exit(main())
