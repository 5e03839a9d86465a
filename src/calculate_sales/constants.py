"""Constants shared across the sales aggregation modules.

Keeps file names, code formats, console messages and policy identifiers in a
single place so the data access layer (DAL), business logic layer (BLL) and
CLI agree on every fixed string.
"""

from __future__ import annotations

from enum import Enum


BRANCH_DEFINITION_FILE = "branch.lst"
BRANCH_REPORT_FILE = "branch.out"
COMMODITY_DEFINITION_FILE = "commodity.lst"
COMMODITY_REPORT_FILE = "commodity.out"

BRANCH_CODE_PATTERN = r"^[0-9]{3}$"
COMMODITY_CODE_PATTERN = r"^(?=.*[0-9])(?=.*[a-z])(?=.*[A-Z]).{8}$"
TRANSACTION_FILE_PATTERN = r"^[0-9]{8}[.]rcd$"
AMOUNT_PATTERN = r"^[0-9]*$"

# Number of leading characters of a transaction file name holding its serial.
SERIAL_LENGTH = 8

# Totals must stay below this value (at most ten decimal digits).
SALES_AMOUNT_LIMIT = 10_000_000_000

DEFAULT_ENCODING = "utf-8"
CONFIG_FILE_NAME = "calculate_sales.ini"


class TableLabel(str, Enum):
    """Enumerate the reference tables and the label used in their messages."""

    BRANCH = "Branch"
    COMMODITY = "Commodity"


class Message(str, Enum):
    """Fixed console messages; some are prefixed with a table or file name."""

    UNKNOWN_ERROR = "An unexpected error has occurred"
    FILE_NOT_EXIST = " definition file does not exist"
    FILE_INVALID_FORMAT = " definition file has an invalid format"
    FILE_NOT_SEQUENTIAL = "Sales file names are not sequential"
    SALES_AMOUNT_EXCEEDS_LIMIT = "Total sales amount exceeded 10 digits"
    SALES_FILE_INVALID_FORMAT = " has an invalid format"
    BRANCH_CODE_NOT_FOUND = " has an invalid branch code"
    COMMODITY_CODE_NOT_FOUND = " has an invalid commodity code"


class OverflowPolicy(str, Enum):
    """Decide which running totals must reach the limit before aborting."""

    LEGACY_BOTH = "legacy-both"
    STRICT_EITHER = "strict-either"


class EmptyAmountPolicy(str, Enum):
    """Decide how a transaction record with a blank amount line is treated."""

    REJECT = "reject"
    ZERO = "zero"


__all__ = [
    "AMOUNT_PATTERN",
    "BRANCH_CODE_PATTERN",
    "BRANCH_DEFINITION_FILE",
    "BRANCH_REPORT_FILE",
    "COMMODITY_CODE_PATTERN",
    "COMMODITY_DEFINITION_FILE",
    "COMMODITY_REPORT_FILE",
    "CONFIG_FILE_NAME",
    "DEFAULT_ENCODING",
    "SALES_AMOUNT_LIMIT",
    "SERIAL_LENGTH",
    "TRANSACTION_FILE_PATTERN",
    "EmptyAmountPolicy",
    "Message",
    "OverflowPolicy",
    "TableLabel",
]
