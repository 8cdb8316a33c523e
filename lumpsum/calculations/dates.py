"""
Calendar Arithmetic

Spreadsheet-style date helpers used by the payout model: EDATE, EOMONTH and
the whole-year age difference. Invalid inputs yield None instead of raising.
"""

from typing import Optional
from datetime import date, datetime
from dateutil.relativedelta import relativedelta

from lumpsum.calculations.excel import excel_rounddown

DAYS_PER_YEAR = 365.25
MAX_DAY_OF_MONTH = 28


def _as_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def month_shift(start: date, months: int) -> Optional[date]:
    """
    Shift a date by N months.

    Matches the workbook's EDATE() helper, which clamps the day of month to
    28 instead of moving to the real end of month. A 31 January shifted by
    one month therefore lands on 28 February, and 31 March on 28 April.

    Args:
        start: Start date
        months: Number of months to add (may be negative)

    Returns:
        Shifted date, or None if start is not a date
    """
    start = _as_date(start)
    if start is None:
        return None
    try:
        months = int(months)
    except (TypeError, ValueError):
        return None

    anchored = start.replace(day=min(start.day, MAX_DAY_OF_MONTH))
    try:
        return anchored + relativedelta(months=months)
    except (OverflowError, ValueError):
        return None


def end_of_month(start: date, months: int) -> Optional[date]:
    """Shift a date by N months, then move to the last day of that month (EOMONTH)."""
    shifted = month_shift(start, months)
    if shifted is None:
        return None
    return shifted + relativedelta(day=31)


def year_difference(later: date, earlier: date) -> Optional[int]:
    """
    Whole years between two dates.

    ROUNDDOWN((later - earlier) / 365.25, 0) as used for applicant ages.
    """
    later = _as_date(later)
    earlier = _as_date(earlier)
    if later is None or earlier is None:
        return None
    days = (later - earlier).days
    return int(excel_rounddown(days / DAYS_PER_YEAR))
