"""Data access layer for the sales aggregation tool.

This module provides low-level helpers that read from and write to the sales
directory. Validation rules and totals belong elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``calculate_sales.ini``.
2. File lifecycle: opening text files with guaranteed release, reading their
   lines, and listing candidate transaction files.
3. Output: writing flat report lines and the optional ``.xlsx`` summary.
"""


from __future__ import annotations

import configparser
import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Mapping, Optional, Sequence

import openpyxl
from openpyxl.styles import Font

from . import log
from .constants import (
    CONFIG_FILE_NAME,
    DEFAULT_ENCODING,
    TRANSACTION_FILE_PATTERN,
    EmptyAmountPolicy,
    OverflowPolicy,
)


WORKBOOK_HEADERS = ("Code", "Name", "Total")


@dataclass(frozen=True)
class Settings:
    """Typed representation of the ``calculate_sales.ini`` settings."""

    overflow_policy: OverflowPolicy = OverflowPolicy.LEGACY_BOTH
    empty_amount: EmptyAmountPolicy = EmptyAmountPolicy.REJECT
    encoding: str = DEFAULT_ENCODING
    workbook_name: Optional[str] = None


def find_config_file(
    explicit_path: Optional[Path] = None,
    *,
    search_dir: Optional[Path] = None,
) -> Optional[Path]:
    """Locate the configuration file that tunes the aggregation run.

    An explicit path is returned as-is so the caller can target a
    non-standard location; :func:`read_config` verifies it exists. Otherwise
    the sales directory is checked first, then the current working directory
    and each of its parents.

    Args:
        explicit_path (Path | None): Path supplied on the command line.
        search_dir (Path | None): Sales directory checked before the working
            directory tree.

    Returns:
        Path | None: The configuration file to read, or ``None`` when no file
            was found and built-in defaults apply.
    """

    if explicit_path:
        return explicit_path

    if search_dir is not None:
        candidate = Path(search_dir) / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate

    return None


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``calculate_sales.ini`` and return a populated ``ConfigParser``.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser(inline_comment_prefixes=(";", "#"))
    parser.read(config_path, encoding=DEFAULT_ENCODING)
    return parser


def parse_settings(parser: configparser.ConfigParser) -> Settings:
    """Convert a ``ConfigParser`` into strongly typed :class:`Settings`.

    Every option is optional; missing sections fall back to the defaults on
    :class:`Settings`. A blank ``Workbook`` entry disables the spreadsheet
    export.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.

    Returns:
        Settings: Immutable settings container.

    Raises:
        ValueError: If a policy option holds an unsupported value.
    """

    defaults = Settings()
    overflow_raw = parser.get(
        "Aggregation", "OverflowPolicy", fallback=defaults.overflow_policy.value
    )
    empty_raw = parser.get(
        "Aggregation", "EmptyAmount", fallback=defaults.empty_amount.value
    )
    encoding = parser.get("Files", "Encoding", fallback=defaults.encoding).strip()
    workbook_raw = parser.get("Output", "Workbook", fallback="").strip()

    try:
        overflow_policy = OverflowPolicy(overflow_raw.strip().lower())
        empty_amount = EmptyAmountPolicy(empty_raw.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Invalid aggregation setting: {exc}") from exc

    return Settings(
        overflow_policy=overflow_policy,
        empty_amount=empty_amount,
        encoding=encoding or DEFAULT_ENCODING,
        workbook_name=workbook_raw or None,
    )


def load_settings(
    config_path: Optional[Path] = None,
    *,
    search_dir: Optional[Path] = None,
) -> Settings:
    """Resolve, read and parse the configuration, or return the defaults."""

    located = find_config_file(config_path, search_dir=search_dir)
    if located is None:
        log.debug("No configuration file found; using defaults")
        return Settings()
    settings = parse_settings(read_config(located))
    log.info("Loaded settings from '%s'", located)
    return settings


@contextmanager
def open_text(path: Path, mode: str = "r", *, encoding: str = DEFAULT_ENCODING) -> Iterator[IO[str]]:
    """Open a text file and guarantee it is closed on every exit path.

    When the body raises, a failure while closing is logged and the original
    exception keeps propagating. On a clean exit a failing ``close`` raises
    its own :class:`OSError`.
    """

    handle = open(path, mode, encoding=encoding)
    try:
        yield handle
    except BaseException:
        try:
            handle.close()
        except OSError as close_error:
            log.error("Failed to close '%s' after an earlier error: %s", path, close_error)
        raise
    handle.close()


def read_lines(path: Path, *, encoding: str = DEFAULT_ENCODING) -> List[str]:
    """Return the lines of ``path`` without their line terminators.

    Universal newlines are used, so ``\\n``, ``\\r\\n`` and ``\\r`` all end a
    line and a trailing terminator does not produce an extra empty line.
    """

    with open_text(path, encoding=encoding) as handle:
        return [line.rstrip("\n") for line in handle]


def list_transaction_candidates(directory: Path) -> List[Path]:
    """Return regular files in ``directory`` named like transaction files.

    The result is sorted by file name. Because every serial is zero-padded to
    the same width, this is also numeric order.
    """

    pattern = re.compile(TRANSACTION_FILE_PATTERN)
    candidates = [
        entry
        for entry in Path(directory).iterdir()
        if entry.is_file() and pattern.fullmatch(entry.name)
    ]
    return sorted(candidates, key=lambda entry: entry.name)


def write_lines(path: Path, lines: Iterable[str], *, encoding: str = DEFAULT_ENCODING) -> None:
    """Overwrite ``path`` with ``lines``, each terminated by a newline."""

    with open_text(path, "w", encoding=encoding) as handle:
        for line in lines:
            handle.write(line)
            handle.write("\n")


def export_workbook(destination: Path, sheets: Mapping[str, Sequence[Sequence[object]]]) -> None:
    """Persist one worksheet per table to an ``.xlsx`` workbook.

    Each sheet receives a bold ``Code | Name | Total`` header followed by the
    supplied rows in order. Parent directories are created on demand.

    Args:
        destination (Path): Filesystem path of the workbook to write.
        sheets (Mapping[str, Sequence[Sequence[object]]]): Rows keyed by the
            worksheet title.
    """

    wb = openpyxl.Workbook()
    if "Sheet" in wb.sheetnames:
        del wb["Sheet"]

    bold_font = Font(bold=True)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title=title)
        for col_idx, header in enumerate(WORKBOOK_HEADERS, 1):
            cell = ws.cell(row=1, column=col_idx)
            cell.value = header
            cell.font = bold_font
        for row in rows:
            ws.append(list(row))

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    wb.save(dest)
