"""Business logic layer for the sales aggregation tool.

This module owns the validation and aggregation pipeline: loading the branch
and commodity reference tables, checking the transaction file sequence,
validating every record, accumulating totals under the ten-digit ceiling, and
writing the summary reports. It consumes the Data Access Layer (DAL) for all
I/O and raises one :class:`SalesAggregationError` subclass per failure kind.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from . import data_manager, log
from .constants import (
    AMOUNT_PATTERN,
    BRANCH_CODE_PATTERN,
    BRANCH_DEFINITION_FILE,
    BRANCH_REPORT_FILE,
    COMMODITY_CODE_PATTERN,
    COMMODITY_DEFINITION_FILE,
    COMMODITY_REPORT_FILE,
    DEFAULT_ENCODING,
    SALES_AMOUNT_LIMIT,
    SERIAL_LENGTH,
    EmptyAmountPolicy,
    Message,
    OverflowPolicy,
    TableLabel,
)


class SalesAggregationError(Exception):
    """Raised when a run must stop; ``str(error)`` is the console message."""


class ArgumentError(SalesAggregationError):
    """Raised when the command line does not name exactly one directory."""

    def __init__(self) -> None:
        super().__init__(Message.UNKNOWN_ERROR.value)


class UnexpectedError(SalesAggregationError):
    """Raised for I/O failures that have no more specific classification."""

    def __init__(self) -> None:
        super().__init__(Message.UNKNOWN_ERROR.value)


class DefinitionFileNotFoundError(SalesAggregationError):
    """Raised when ``branch.lst`` or ``commodity.lst`` is missing."""

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"{label}{Message.FILE_NOT_EXIST.value}")


class DefinitionFormatError(SalesAggregationError):
    """Raised when a definition file line is malformed."""

    def __init__(self, label: str, line_number: int) -> None:
        self.label = label
        self.line_number = line_number
        super().__init__(f"{label}{Message.FILE_INVALID_FORMAT.value} (line {line_number})")


class NonSequentialFilesError(SalesAggregationError):
    """Raised when transaction file serials contain a gap or a duplicate."""

    def __init__(self, former: str, latter: str) -> None:
        self.former = former
        self.latter = latter
        super().__init__(Message.FILE_NOT_SEQUENTIAL.value)


class RecordValidationError(SalesAggregationError):
    """Raised when a single transaction record fails validation."""

    def __init__(self, file_name: str, message: str) -> None:
        self.file_name = file_name
        super().__init__(message)


class InvalidRecordFormatError(RecordValidationError):
    """Raised when a transaction file does not hold exactly three lines."""

    def __init__(self, file_name: str) -> None:
        super().__init__(file_name, f"{file_name}{Message.SALES_FILE_INVALID_FORMAT.value}")


class MissingReferenceError(RecordValidationError):
    """Raised when a record references a code absent from a reference table."""


class UnknownBranchCodeError(MissingReferenceError):
    """Raised when a record's branch code is not in ``branch.lst``."""

    def __init__(self, file_name: str) -> None:
        super().__init__(file_name, f"{file_name}{Message.BRANCH_CODE_NOT_FOUND.value}")


class UnknownCommodityCodeError(MissingReferenceError):
    """Raised when a record's commodity code is not in ``commodity.lst``."""

    def __init__(self, file_name: str) -> None:
        super().__init__(file_name, f"{file_name}{Message.COMMODITY_CODE_NOT_FOUND.value}")


class InvalidAmountError(RecordValidationError):
    """Raised when the amount line is not a plain run of digits."""

    def __init__(self, file_name: str) -> None:
        super().__init__(file_name, Message.UNKNOWN_ERROR.value)


class AmountExceedsLimitError(SalesAggregationError):
    """Raised when accumulated totals reach the ten-digit ceiling."""

    def __init__(self, file_name: str) -> None:
        self.file_name = file_name
        super().__init__(Message.SALES_AMOUNT_EXCEEDS_LIMIT.value)


class ReportWriteError(SalesAggregationError):
    """Raised when a report file cannot be created or written."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(Message.UNKNOWN_ERROR.value)


class RunState(str, Enum):
    """Enumerate the stages an aggregation run passes through."""

    INIT = "INIT"
    BRANCH_LOADED = "BRANCH_LOADED"
    COMMODITY_LOADED = "COMMODITY_LOADED"
    FILES_DISCOVERED = "FILES_DISCOVERED"
    PROCESSING = "PROCESSING"
    DONE = "DONE"
    ABORTED = "ABORTED"


@dataclass
class ReferenceTable:
    """Insertion-ordered code tables loaded from one definition file.

    ``names`` and ``sums`` share their keys; iteration order follows the
    definition file and determines report order.
    """

    label: str
    names: Dict[str, str] = field(default_factory=dict)
    sums: Dict[str, int] = field(default_factory=dict)

    def __contains__(self, code: object) -> bool:
        return code in self.names

    def __len__(self) -> int:
        return len(self.names)

    def add(self, code: str, name: str) -> None:
        self.names[code] = name
        self.sums[code] = 0

    def rows(self) -> List[tuple[str, str, int]]:
        return [(code, name, self.sums[code]) for code, name in self.names.items()]


@dataclass(frozen=True)
class TransactionRecord:
    """A validated transaction ready to be accumulated."""

    file_name: str
    branch_code: str
    commodity_code: str
    amount: int


@dataclass
class AggregationRun:
    """Mutable state threaded through one orchestrated run."""

    directory: Path
    settings: data_manager.Settings
    state: RunState = RunState.INIT
    branches: Optional[ReferenceTable] = None
    commodities: Optional[ReferenceTable] = None
    transaction_files: List[Path] = field(default_factory=list)
    processed: int = 0
    reports: List[Path] = field(default_factory=list)

    def advance(self, state: RunState) -> None:
        log.debug("Run state %s -> %s", self.state.value, state.value)
        self.state = state


def load_reference_table(
    directory: Path,
    file_name: str,
    code_pattern: str,
    label: str,
    *,
    encoding: str = DEFAULT_ENCODING,
) -> ReferenceTable:
    """Parse a ``code,name`` definition file into a :class:`ReferenceTable`.

    Blank lines are ignored. Every other line must split on ``,`` into exactly
    two fields, once trailing empty fields are dropped, and the first field
    must fully match ``code_pattern``. ``001,Tokyo,`` is therefore accepted
    while ``001,`` is not.

    Args:
        directory (Path): Sales directory holding the definition file.
        file_name (str): Definition file name, e.g. ``branch.lst``.
        code_pattern (str): Regular expression every code must match.
        label (str): Table label used as the message prefix.
        encoding (str): Text encoding of the definition file.

    Returns:
        ReferenceTable: Names in file order with every sum set to zero.

    Raises:
        DefinitionFileNotFoundError: If the file does not exist.
        DefinitionFormatError: If any line is malformed.
        UnexpectedError: For any other I/O failure.
    """
    path = Path(directory) / file_name
    if not path.exists():
        log.error("%s definition file not found at '%s'", label, path)
        raise DefinitionFileNotFoundError(label)

    try:
        lines = data_manager.read_lines(path, encoding=encoding)
    except (OSError, UnicodeDecodeError) as exc:
        log.error("Failed to read '%s': %s", path, exc)
        raise UnexpectedError() from exc

    pattern = re.compile(code_pattern)
    table = ReferenceTable(label=label)
    for line_number, line in enumerate(lines, start=1):
        if not line:
            continue
        items = line.split(",")
        # trailing empty fields are not counted
        while items and items[-1] == "":
            items.pop()
        if len(items) != 2 or not pattern.fullmatch(items[0]):
            log.error("Invalid line %d in '%s': %r", line_number, path, line)
            raise DefinitionFormatError(label, line_number)
        table.add(items[0], items[1])

    log.info("Loaded %d %s codes from '%s'", len(table), label.lower(), path)
    return table


def check_sequential(files: List[Path]) -> None:
    """Ensure consecutive file serials differ by exactly one.

    Raises:
        NonSequentialFilesError: On the first gap or duplicate serial.
    """
    for former, latter in zip(files, files[1:]):
        former_serial = int(former.name[:SERIAL_LENGTH])
        latter_serial = int(latter.name[:SERIAL_LENGTH])
        if latter_serial - former_serial != 1:
            log.error("Sales files not sequential: '%s' followed by '%s'", former.name, latter.name)
            raise NonSequentialFilesError(former.name, latter.name)


def locate_transaction_files(directory: Path) -> List[Path]:
    """Return the sales directory's transaction files in serial order.

    Raises:
        NonSequentialFilesError: If the serials do not form a contiguous run.
        UnexpectedError: If the directory cannot be listed.
    """
    try:
        files = data_manager.list_transaction_candidates(directory)
    except OSError as exc:
        log.error("Failed to list '%s': %s", directory, exc)
        raise UnexpectedError() from exc
    check_sequential(files)
    log.info("Discovered %d transaction files in '%s'", len(files), directory)
    return files


def validate_record(
    file_name: str,
    lines: List[str],
    branches: ReferenceTable,
    commodities: ReferenceTable,
    *,
    empty_amount: EmptyAmountPolicy = EmptyAmountPolicy.REJECT,
) -> TransactionRecord:
    """Validate the three lines of a transaction file.

    Checks run in a fixed order: line count, branch code, commodity code and
    finally the amount. The amount must fully match ``^[0-9]*$``; an empty
    amount is rejected or read as zero depending on ``empty_amount``.

    Raises:
        InvalidRecordFormatError: If there are not exactly three lines.
        UnknownBranchCodeError: If the branch code is not in ``branches``.
        UnknownCommodityCodeError: If the commodity code is not in
            ``commodities``.
        InvalidAmountError: If the amount is not a run of ASCII digits.
    """
    if len(lines) != 3:
        log.warning("'%s' has %d lines instead of 3", file_name, len(lines))
        raise InvalidRecordFormatError(file_name)
    branch_code, commodity_code, amount_raw = lines
    if branch_code not in branches:
        log.warning("'%s' references unknown branch '%s'", file_name, branch_code)
        raise UnknownBranchCodeError(file_name)
    if commodity_code not in commodities:
        log.warning("'%s' references unknown commodity '%s'", file_name, commodity_code)
        raise UnknownCommodityCodeError(file_name)
    if not re.fullmatch(AMOUNT_PATTERN, amount_raw):
        log.warning("'%s' has a non-numeric amount %r", file_name, amount_raw)
        raise InvalidAmountError(file_name)
    if not amount_raw:
        if empty_amount is not EmptyAmountPolicy.ZERO:
            log.warning("'%s' has an empty amount", file_name)
            raise InvalidAmountError(file_name)
        amount_raw = "0"

    return TransactionRecord(
        file_name=file_name,
        branch_code=branch_code,
        commodity_code=commodity_code,
        amount=int(amount_raw),
    )


def exceeds_limit(branch_total: int, commodity_total: int, policy: OverflowPolicy) -> bool:
    """Return ``True`` when the totals breach the ceiling under ``policy``."""
    branch_over = branch_total >= SALES_AMOUNT_LIMIT
    commodity_over = commodity_total >= SALES_AMOUNT_LIMIT
    if policy is OverflowPolicy.STRICT_EITHER:
        return branch_over or commodity_over
    return branch_over and commodity_over


def accumulate_sales(
    branches: ReferenceTable,
    commodities: ReferenceTable,
    record: TransactionRecord,
    *,
    policy: OverflowPolicy = OverflowPolicy.LEGACY_BOTH,
) -> None:
    """Add ``record.amount`` to its branch and commodity totals.

    Both tables are left untouched when the ceiling check fails.

    Raises:
        AmountExceedsLimitError: If the new totals breach the ceiling.
    """
    branch_total = branches.sums[record.branch_code] + record.amount
    commodity_total = commodities.sums[record.commodity_code] + record.amount
    if exceeds_limit(branch_total, commodity_total, policy):
        log.error(
            "Totals exceed limit after '%s' (branch=%d, commodity=%d, policy=%s)",
            record.file_name,
            branch_total,
            commodity_total,
            policy.value,
        )
        raise AmountExceedsLimitError(record.file_name)

    branches.sums[record.branch_code] = branch_total
    commodities.sums[record.commodity_code] = commodity_total
    log.debug(
        "Accumulated %d from '%s' (branch %s=%d, commodity %s=%d)",
        record.amount,
        record.file_name,
        record.branch_code,
        branch_total,
        record.commodity_code,
        commodity_total,
    )


def format_report_lines(table: ReferenceTable) -> List[str]:
    """Render ``code,name,total`` lines in table order."""
    return [f"{code},{name},{total}" for code, name, total in table.rows()]


def write_report(
    directory: Path,
    file_name: str,
    table: ReferenceTable,
    *,
    encoding: str = DEFAULT_ENCODING,
) -> Path:
    """Write ``table`` to ``directory / file_name``, replacing any old file.

    Raises:
        ReportWriteError: If the file cannot be created or written.
    """
    path = Path(directory) / file_name
    try:
        data_manager.write_lines(path, format_report_lines(table), encoding=encoding)
    except (OSError, UnicodeEncodeError) as exc:
        log.error("Failed to write report '%s': %s", path, exc)
        raise ReportWriteError(path) from exc
    log.info("Wrote %d %s totals to '%s'", len(table), table.label.lower(), path)
    return path


def export_summary_workbook(run: AggregationRun) -> Optional[Path]:
    """Export both tables to the configured workbook, if any.

    Raises:
        ReportWriteError: If the workbook cannot be saved.
    """
    workbook_name = run.settings.workbook_name
    if not workbook_name or run.branches is None or run.commodities is None:
        return None
    destination = Path(run.directory) / workbook_name
    sheets = {
        run.branches.label: run.branches.rows(),
        run.commodities.label: run.commodities.rows(),
    }
    try:
        data_manager.export_workbook(destination, sheets)
    except OSError as exc:
        log.error("Failed to export workbook '%s': %s", destination, exc)
        raise ReportWriteError(destination) from exc
    log.info("Exported summary workbook '%s'", destination)
    return destination


def process_transaction_file(run: AggregationRun, path: Path) -> TransactionRecord:
    """Read, validate and accumulate a single transaction file."""
    try:
        lines = data_manager.read_lines(path, encoding=run.settings.encoding)
    except (OSError, UnicodeDecodeError) as exc:
        log.error("Failed to read '%s': %s", path, exc)
        raise UnexpectedError() from exc
    record = validate_record(
        path.name,
        lines,
        run.branches,
        run.commodities,
        empty_amount=run.settings.empty_amount,
    )
    accumulate_sales(run.branches, run.commodities, record, policy=run.settings.overflow_policy)
    return record


def execute_run(run: AggregationRun) -> AggregationRun:
    """Drive ``run`` through every stage, marking it aborted on failure.

    The run object keeps whatever state was reached, so totals accumulated
    before a failing file remain inspectable even though no report is
    written.
    """
    encoding = run.settings.encoding
    try:
        run.branches = load_reference_table(
            run.directory,
            BRANCH_DEFINITION_FILE,
            BRANCH_CODE_PATTERN,
            TableLabel.BRANCH.value,
            encoding=encoding,
        )
        run.advance(RunState.BRANCH_LOADED)
        run.commodities = load_reference_table(
            run.directory,
            COMMODITY_DEFINITION_FILE,
            COMMODITY_CODE_PATTERN,
            TableLabel.COMMODITY.value,
            encoding=encoding,
        )
        run.advance(RunState.COMMODITY_LOADED)

        run.transaction_files = locate_transaction_files(run.directory)
        run.advance(RunState.FILES_DISCOVERED)

        run.advance(RunState.PROCESSING)
        for path in run.transaction_files:
            process_transaction_file(run, path)
            run.processed += 1

        run.reports.append(write_report(run.directory, BRANCH_REPORT_FILE, run.branches, encoding=encoding))
        run.reports.append(
            write_report(run.directory, COMMODITY_REPORT_FILE, run.commodities, encoding=encoding)
        )
        exported = export_summary_workbook(run)
        if exported is not None:
            run.reports.append(exported)
    except SalesAggregationError:
        run.advance(RunState.ABORTED)
        raise

    run.advance(RunState.DONE)
    log.info(
        "Aggregated %d transaction files from '%s'",
        run.processed,
        run.directory,
    )
    return run


def run_aggregation(
    directory: Path,
    settings: Optional[data_manager.Settings] = None,
) -> AggregationRun:
    """Run the full pipeline for ``directory`` and return the finished run.

    Raises:
        SalesAggregationError: The first failure encountered; nothing after
            the failing stage is executed.
    """
    run = AggregationRun(directory=Path(directory), settings=settings or data_manager.Settings())
    return execute_run(run)
