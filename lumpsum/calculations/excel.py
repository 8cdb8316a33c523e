"""
Excel Helper Functions

Numeric helpers that reproduce how the workbook rounds and coerces values.
"""

import math
from typing import Optional


def excel_round(value: float, digits: int) -> float:
    """
    Round to a number of decimals the way the accrual column does.

    Exact .5 ties go to the even neighbour (banker's rounding); everything
    else is floor(x + 0.5). So 0.125 -> 0.12 and 0.135 -> 0.14.

    Args:
        value: Value to round
        digits: Number of decimals

    Returns:
        Rounded value
    """
    factor = 10 ** digits
    shifted = value * factor
    rounded = math.floor(shifted + 0.5)

    if abs(shifted - rounded) == 0.5:
        lower = math.floor(shifted)
        if lower % 2 == 0:
            return lower / factor
        return math.ceil(shifted) / factor

    return rounded / factor


def excel_rounddown(value: float, digits: int = 0) -> float:
    """ROUNDDOWN implemented with floor, as in the workbook."""
    factor = 10 ** digits
    return math.floor(value * factor) / factor


def parse_number(value) -> Optional[float]:
    """
    Parse a raw value as a float.

    Strings are trimmed first. Returns None for anything that is not a
    finite number, including booleans and dates.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number
