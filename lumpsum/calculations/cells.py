"""
Cell Values and Addresses

A cell holds exactly one of three tagged values: Number, Text or DateValue.
Addresses are (sheet, reference) pairs such as ("15yrlump", "F31").
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import NamedTuple, Optional, Tuple, Union

from lumpsum.calculations.excel import parse_number

_REFERENCE_PATTERN = re.compile(r"^([A-Z]+)([1-9][0-9]*)$")


class CellAddress(NamedTuple):
    """A single value slot in the workbook."""

    sheet: str
    reference: str

    def __str__(self) -> str:
        return f"{self.sheet}!{self.reference}"


@dataclass(frozen=True)
class Number:
    value: float

    @property
    def raw(self) -> float:
        return self.value


@dataclass(frozen=True)
class Text:
    value: str

    @property
    def raw(self) -> str:
        return self.value


@dataclass(frozen=True)
class DateValue:
    value: date

    @property
    def raw(self) -> date:
        return self.value


CellValue = Union[Number, Text, DateValue]


def cell_value(raw) -> Optional[CellValue]:
    """
    Wrap a plain Python value in its cell tag.

    Already-tagged values pass through unchanged; None stays None.
    """
    if raw is None or isinstance(raw, (Number, Text, DateValue)):
        return raw
    if isinstance(raw, bool):
        return Text(str(raw).lower())
    if isinstance(raw, (int, float)):
        return Number(float(raw))
    if isinstance(raw, datetime):
        return DateValue(raw.date())
    if isinstance(raw, date):
        return DateValue(raw)
    return Text(str(raw))


def raw_value(value: Optional[CellValue]):
    """Unwrap a cell value for output; absent cells become None."""
    if value is None:
        return None
    return value.raw


def as_number(value: Optional[CellValue], default: float = 0.0) -> float:
    """
    Numeric view of a cell, like parseFloat(cell || 0) in the workbook.

    Text that parses as a number counts as that number; dates, empty text
    and unparseable text fall back to the default.
    """
    if isinstance(value, Number):
        return value.value
    if isinstance(value, Text):
        number = parse_number(value.value)
        return default if number is None else number
    return default


def as_date(value: Optional[CellValue]) -> Optional[date]:
    if isinstance(value, DateValue):
        return value.value
    return None


def as_text(value: Optional[CellValue]) -> Optional[str]:
    if isinstance(value, Text):
        return value.value
    return None


def is_flag(value: Optional[CellValue], flag: str) -> bool:
    """Case-insensitive comparison of a text cell against "ja"/"nee"."""
    text = as_text(value)
    return text is not None and text.strip().lower() == flag.lower()


# =============================================================================
# REFERENCE HELPERS
# =============================================================================


def split_reference(reference: str) -> Tuple[str, int]:
    """Split "F31" into ("F", 31)."""
    match = _REFERENCE_PATTERN.match(reference.strip().upper())
    if not match:
        raise ValueError(f"Invalid cell reference: {reference!r}")
    return match.group(1), int(match.group(2))


def column_index(column: str) -> int:
    """1-based index of a column letter: A -> 1, Z -> 26, AA -> 27."""
    index = 0
    for char in column.upper():
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index


def column_letter(index: int) -> str:
    """Column letter for a 1-based index."""
    letters = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def column_range(first: str, last: str) -> list:
    """All column letters from first to last inclusive."""
    return [
        column_letter(i) for i in range(column_index(first), column_index(last) + 1)
    ]
