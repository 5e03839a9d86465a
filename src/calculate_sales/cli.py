"""Command-line entry point for the sales aggregation tool.

All orchestration in this module is limited to argparse wiring, resolving the
runtime settings and translating raised errors into the single console line
the tool prints. The aggregation itself lives in :mod:`core_logic`.
"""

from __future__ import annotations

import argparse
import dataclasses
from pathlib import Path
from typing import Optional, Sequence

from . import core_logic, data_manager, log
from .constants import EmptyAmountPolicy, Message, OverflowPolicy


def build_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="calculate-sales",
        description="Aggregate branch and commodity sales totals from a sales directory.",
    )
    # Collected as a list so a wrong count is reported like any other failure.
    parser.add_argument(
        "directories",
        nargs="*",
        metavar="DIRECTORY",
        help="Directory holding branch.lst, commodity.lst and the .rcd files.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to calculate_sales.ini.",
    )
    parser.add_argument(
        "--overflow-policy",
        choices=[member.value for member in OverflowPolicy],
        default=None,
        help="Which totals must reach ten digits before the run aborts.",
    )
    parser.add_argument(
        "--empty-amount",
        choices=[member.value for member in EmptyAmountPolicy],
        default=None,
        help="Reject records with a blank amount or count them as zero.",
    )
    parser.add_argument(
        "--workbook",
        default=None,
        help="Also export both reports to this .xlsx file inside the directory.",
    )
    return parser


def resolve_directory(args: argparse.Namespace) -> Path:
    """Return the single sales directory named on the command line."""
    directories = getattr(args, "directories", None) or []
    if len(directories) != 1:
        log.error("Expected exactly one directory argument, got %d", len(directories))
        raise core_logic.ArgumentError()
    return Path(directories[0])


def apply_overrides(settings: data_manager.Settings, args: argparse.Namespace) -> data_manager.Settings:
    """Layer command-line options over the file-based settings."""
    overrides = {}
    if getattr(args, "overflow_policy", None):
        overrides["overflow_policy"] = OverflowPolicy(args.overflow_policy)
    if getattr(args, "empty_amount", None):
        overrides["empty_amount"] = EmptyAmountPolicy(args.empty_amount)
    if getattr(args, "workbook", None):
        overrides["workbook_name"] = args.workbook
    if not overrides:
        return settings
    return dataclasses.replace(settings, **overrides)


def load_runtime_settings(args: argparse.Namespace, directory: Path) -> data_manager.Settings:
    """Resolve the settings for a run from the config file and CLI options."""
    settings = data_manager.load_settings(getattr(args, "config", None), search_dir=directory)
    return apply_overrides(settings, args)


def handle_cli_error(error: Exception) -> int:
    """Print the one-line message for ``error`` and return the exit code."""
    if isinstance(error, core_logic.SalesAggregationError):
        # already logged where it was raised
        log.debug("Run aborted: %s", error)
        print(str(error))
        return 1
    if isinstance(error, (FileNotFoundError, KeyError, ValueError)):
        log.error("Configuration error: %s", error)
        print(Message.UNKNOWN_ERROR.value)
        return 1
    log.exception("Unexpected failure: %s", error)
    print(Message.UNKNOWN_ERROR.value)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that parses arguments and runs the aggregation."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exit_request:
        # --help exits cleanly; usage errors still print one result line
        if not exit_request.code:
            return 0
        log.error("Invalid command line: %s", list(argv) if argv is not None else "<sys.argv>")
        print(Message.UNKNOWN_ERROR.value)
        return 1
    try:
        directory = resolve_directory(args)
        settings = load_runtime_settings(args, directory)
        core_logic.run_aggregation(directory, settings)
        return 0
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)


def run(argv: Optional[Sequence[str]] = None) -> None:
    """Console-script wrapper that turns :func:`main` into an exit status."""
    raise SystemExit(main(argv))


if __name__ == "__main__":
    run()
