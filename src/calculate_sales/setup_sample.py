"""Utility for initializing a sample sales directory.

The module doubles as a script (``python -m calculate_sales.setup_sample``) and
as a library used by tests or demos. It writes valid definition files, a run of
sequential transaction files and, optionally, a configuration file holding the
default settings.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Mapping, Sequence, Tuple

from .constants import (
    BRANCH_DEFINITION_FILE,
    COMMODITY_DEFINITION_FILE,
    CONFIG_FILE_NAME,
    DEFAULT_ENCODING,
    EmptyAmountPolicy,
    OverflowPolicy,
)

SAMPLE_BRANCHES: Mapping[str, str] = {
    "001": "Sapporo",
    "002": "Sendai",
    "003": "Tokyo",
    "004": "Nagoya",
    "005": "Osaka",
}

SAMPLE_COMMODITIES: Mapping[str, str] = {
    "Sft00001": "Accounting Suite",
    "Sft00002": "Payroll Suite",
    "Hwd00001": "Laptop",
    "Hwd00002": "Monitor",
}

_CONFIG_TEMPLATE = (
    "[Aggregation]\n"
    "OverflowPolicy = {overflow_policy}\n"
    "EmptyAmount = {empty_amount}\n\n"
    "[Files]\n"
    "Encoding = {encoding}\n\n"
    "[Output]\n"
    "Workbook =\n"
)


def sample_records(
    file_count: int,
    branches: Sequence[str] = tuple(SAMPLE_BRANCHES),
    commodities: Sequence[str] = tuple(SAMPLE_COMMODITIES),
) -> List[Tuple[str, str, int]]:
    """Build ``file_count`` deterministic ``(branch, commodity, amount)`` rows."""

    return [
        (
            branches[index % len(branches)],
            commodities[index % len(commodities)],
            (index + 1) * 1000,
        )
        for index in range(file_count)
    ]


def create_sample_directory(
    target: Path,
    *,
    file_count: int = 5,
    branches: Mapping[str, str] = SAMPLE_BRANCHES,
    commodities: Mapping[str, str] = SAMPLE_COMMODITIES,
    overwrite: bool = False,
    write_config: bool = True,
) -> Path:
    """Create a sales directory at ``target``.

    Transaction files are numbered from ``00000001.rcd``. When ``overwrite`` is
    ``False`` (the default) this function raises ``FileExistsError`` if a
    definition file already exists in ``target``.
    """

    target = Path(target).expanduser().resolve()
    branch_path = target / BRANCH_DEFINITION_FILE
    if branch_path.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing sales directory: {target}")

    target.mkdir(parents=True, exist_ok=True)
    branch_path.write_text(
        "".join(f"{code},{name}\n" for code, name in branches.items()),
        encoding=DEFAULT_ENCODING,
    )
    (target / COMMODITY_DEFINITION_FILE).write_text(
        "".join(f"{code},{name}\n" for code, name in commodities.items()),
        encoding=DEFAULT_ENCODING,
    )

    records = sample_records(file_count, list(branches), list(commodities))
    for index, (branch, commodity, amount) in enumerate(records, start=1):
        (target / f"{index:08d}.rcd").write_text(
            f"{branch}\n{commodity}\n{amount}\n",
            encoding=DEFAULT_ENCODING,
        )

    if write_config:
        (target / CONFIG_FILE_NAME).write_text(
            _CONFIG_TEMPLATE.format(
                overflow_policy=OverflowPolicy.LEGACY_BOTH.value,
                empty_amount=EmptyAmountPolicy.REJECT.value,
                encoding=DEFAULT_ENCODING,
            ),
            encoding=DEFAULT_ENCODING,
        )

    return target


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize a sample sales directory")
    parser.add_argument("target", help="Directory to populate")
    parser.add_argument(
        "--files",
        type=int,
        default=5,
        help="Number of sequential transaction files to create (default: 5)",
    )
    parser.add_argument(
        "--no-config",
        action="store_true",
        help=f"Do not write {CONFIG_FILE_NAME}.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite definition files if they already exist.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the setup script."""

    args = parse_args(argv)
    try:
        output_path = create_sample_directory(
            Path(args.target),
            file_count=args.files,
            overwrite=args.force,
            write_config=not args.no_config,
        )
    except FileExistsError as exc:
        print(f"[ERROR] {exc}")
        print("Run with --force to overwrite the existing files if appropriate.")
        return 1
    except OSError as exc:
        print(f"[ERROR] Unable to write sample data: {exc}")
        return 1

    print(f"[SUCCESS] Created sample sales directory at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
