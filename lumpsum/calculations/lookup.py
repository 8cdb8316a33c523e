"""
Lookup Resolver

Exact-match VLOOKUP over a rectangular block of one sheet.
"""

from typing import Callable, Optional

from lumpsum.calculations.cells import (
    CellAddress,
    CellValue,
    Number,
    Text,
    column_range,
)
from lumpsum.calculations.excel import parse_number

LOOKUP_TOLERANCE = 1e-10

CellReader = Callable[[CellAddress], Optional[CellValue]]


def _numeric(value: Optional[CellValue]) -> Optional[float]:
    if isinstance(value, Number):
        return value.value
    if isinstance(value, Text):
        return parse_number(value.value)
    return None


def vlookup_exact(
    read: CellReader,
    lookup_value: float,
    sheet: str,
    first_column: str,
    last_column: str,
    start_row: int,
    end_row: int,
    return_column: int,
) -> Optional[CellValue]:
    """
    VLOOKUP(lookup_value, sheet!first:last, return_column, FALSE).

    Rows are scanned top to bottom and the first row whose key column is
    within LOOKUP_TOLERANCE of the lookup value wins. Keys that are empty or
    not numeric are skipped.

    Args:
        read: Function resolving a cell address to its value
        lookup_value: Numeric key to find
        sheet: Sheet holding the table
        first_column: Key column letter
        last_column: Last column letter of the table
        start_row: First table row
        end_row: Last table row (inclusive)
        return_column: 1-based column offset within the table

    Returns:
        The matched value (as Number when it parses), or Number(0) when
        nothing matches or the return column is out of range
    """
    columns = column_range(first_column, last_column)
    if return_column < 1 or return_column > len(columns):
        return Number(0.0)

    key_column = columns[0]
    value_column = columns[return_column - 1]

    for row in range(start_row, end_row + 1):
        key = _numeric(read(CellAddress(sheet, f"{key_column}{row}")))
        if key is None:
            continue

        if abs(key - lookup_value) < LOOKUP_TOLERANCE:
            found = read(CellAddress(sheet, f"{value_column}{row}"))
            number = _numeric(found)
            if number is not None:
                return Number(number)
            return found

    return Number(0.0)
