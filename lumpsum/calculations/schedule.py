"""
Payout Schedule (Row Recurrence)

Reproduces the 30-row amortization block D50:N79. Each row compounds the
year's draw plus the running balance of the previous row, so rows must be
evaluated in ascending order and, within a row, the interest and balance
columns after the draw.

Column formulas (row r, previous row r-1):
    D  Year                 D(r-1) + 1, row 50 = YEAR(F5) + 1
    E  Age                  E(r-1) + 1, row 50 = F13 + 1
    F  WOZ-value            $F$16
    G  Current mortgage     $F$19
    H  Draw                 literal (goal seek input)
    I  Rate                 param15yrlump!$E$5
    J  Annual interest      ROUND((H + L(r-1)) * (1 + I/(1-I))^(1/12)^12 - (H + L(r-1)), E6)
    K  Cumulative interest  J + K(r-1)
    L  Total mortgage       H + J + L(r-1)
    M  Total                L + G
    N  LTV                  M / F
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from lumpsum.calculations.cells import raw_value
from lumpsum.calculations.excel import excel_round
from lumpsum.calculations.registry import FormulaRegistry

logger = logging.getLogger(__name__)

RATE_EPSILON = 1e-12
DIVISOR_EPSILON = 1e-12
# Stand-in for 1 + r/(1 - r) when the rate is (close to) 100%
LARGE_BASE = 1e9


def compound_factor(annual_rate: float) -> float:
    """
    Annual growth factor used for interest accrual.

    The sheet converts the rate to a monthly factor and compounds it back:
    ((1 + r / (1 - r)) ^ (1/12)) ^ 12.
    """
    if abs(1 - annual_rate) < RATE_EPSILON:
        base = LARGE_BASE
    else:
        base = 1 + annual_rate / (1 - annual_rate)
    if base <= 0:
        base = LARGE_BASE
    monthly = base ** (1 / 12)
    return monthly ** 12


def rounding_error_bound(annual_rate: float, years: int, digits: int) -> float:
    """
    Largest shift of the running total caused by rounding the interest column.

    Each row adds at most half a unit of the last kept digit, and every
    later row compounds that error by the growth factor.
    """
    factor = compound_factor(annual_rate)
    half_unit = 0.5 * 10 ** -digits
    return half_unit * sum(factor ** k for k in range(years))


@dataclass
class ScheduleRow:
    """One year of the payout schedule, read back from the cell store."""

    row: int
    year: Optional[float]
    age: Optional[float]
    reference_value: Optional[float]
    mortgage: Optional[float]
    draw: Optional[float]
    rate: Optional[float]
    annual_interest: Optional[float]
    cumulative_interest: Optional[float]
    running_total: Optional[float]
    total: Optional[float]
    loan_to_value: Optional[float]


class PayoutSchedule:
    """Row formulas of the amortization block, bound to one workbook."""

    def __init__(self, cells: FormulaRegistry):
        self.cells = cells
        layout = cells.dataset.schedule
        self.first_row = layout.first_row
        self.last_row = layout.last_row
        self.sheet = cells.dataset.primary_sheet

        # Evaluation order within a row
        self.columns: Dict[str, Callable[[int], float]] = {
            "D": self.year,
            "E": self.age,
            "F": self.reference_value,
            "G": self.mortgage,
            "I": self.rate,
            "J": self.annual_interest,
            "K": self.cumulative_interest,
            "L": self.running_total,
            "M": self.total,
            "N": self.loan_to_value,
        }

    def register(self) -> None:
        """Make every derived row cell resolvable on read."""
        for column, formula in self.columns.items():
            self.cells.register_row(
                self.sheet, column, self.first_row, self.last_row, formula
            )

    def _value(self, column: str, row: int) -> float:
        return self.cells.number(self.cells.primary(f"{column}{row}"))

    def _previous(self, column: str, row: int) -> float:
        """Value of the row above; the block starts from zero."""
        if row == self.first_row:
            return 0.0
        return self._value(column, row - 1)

    # -------------------------------------------------------------------------
    # Column formulas
    # -------------------------------------------------------------------------

    def year(self, row: int) -> float:
        if row == self.first_row:
            # First schedule year is the year after the calculation date
            today = self.cells.date(self.cells.primary("F5"))
            return (today.year if today else 0) + 1
        return self._value("D", row - 1) + 1

    def age(self, row: int) -> float:
        if row == self.first_row:
            return self.cells.number(self.cells.primary("F13")) + 1
        return self._value("E", row - 1) + 1

    def reference_value(self, row: int) -> float:
        return self.cells.number(self.cells.primary("F16"))

    def mortgage(self, row: int) -> float:
        return self.cells.number(self.cells.primary("F19"))

    def rate(self, row: int) -> float:
        return self.cells.number(self.cells.param("E5"))

    def annual_interest(self, row: int) -> float:
        principal = self._value("H", row) + self._previous("L", row)
        digits = int(self.cells.number(self.cells.param("E6")))
        factor = compound_factor(self._value("I", row))
        return excel_round(principal * factor - principal, digits)

    def cumulative_interest(self, row: int) -> float:
        return self._value("J", row) + self._previous("K", row)

    def running_total(self, row: int) -> float:
        return self._value("H", row) + self._value("J", row) + self._previous("L", row)

    def total(self, row: int) -> float:
        return self._value("L", row) + self._value("G", row)

    def loan_to_value(self, row: int) -> float:
        reference = self._value("F", row)
        if abs(reference) < DIVISOR_EPSILON:
            return 0.0
        return self._value("M", row) / reference

    # -------------------------------------------------------------------------
    # Recompute
    # -------------------------------------------------------------------------

    def recompute(self) -> None:
        """Write every derived cell of the block, top to bottom, left to right."""
        store = self.cells.store
        for row in range(self.first_row, self.last_row + 1):
            for column, formula in self.columns.items():
                store.set(self.cells.primary(f"{column}{row}"), formula(row))
        logger.debug(
            f"Recomputed schedule rows {self.first_row}-{self.last_row}, "
            f"running total {self._value('L', self.last_row):.2f}"
        )

    def rows(self) -> List[ScheduleRow]:
        """Current schedule as read through the registry."""
        result = []
        for row in range(self.first_row, self.last_row + 1):

            def read(column: str):
                return raw_value(self.cells.resolve(self.cells.primary(f"{column}{row}")))

            result.append(
                ScheduleRow(
                    row=row,
                    year=read("D"),
                    age=read("E"),
                    reference_value=read("F"),
                    mortgage=read("G"),
                    draw=read("H"),
                    rate=read("I"),
                    annual_interest=read("J"),
                    cumulative_interest=read("K"),
                    running_total=read("L"),
                    total=read("M"),
                    loan_to_value=read("N"),
                )
            )
        return result
