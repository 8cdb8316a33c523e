"""
Sheet Formulas

The scalar formula cells of the 15-year lump-sum sheet and its parameter
sheet. Each function reproduces one spreadsheet formula; the Excel text is
given in the docstring.
"""

from functools import partial
from typing import List

from lumpsum.calculations.cells import CellAddress, as_number, as_text, is_flag
from lumpsum.calculations.dates import month_shift, year_difference
from lumpsum.calculations.lookup import vlookup_exact
from lumpsum.calculations.registry import FormulaRegistry

YES = "Yes"
NO = "No"

MINIMUM_PAYMENT_BASE = 1000
MINIMUM_PAYMENT_WOZ_SHARE = 0.005
MINIMUM_PAYMENT_EQUITY_SHARE = 0.01


def payout_rows(cells: FormulaRegistry) -> List[CellAddress]:
    """H50:H64, the draws inside the payout period."""
    schedule = cells.dataset.schedule
    return [
        cells.primary(f"H{row}")
        for row in range(schedule.first_row, schedule.payout_last_row + 1)
    ]


def total_draws(cells: FormulaRegistry) -> float:
    """SUM(H50:H64)"""
    return sum(cells.number(address) for address in payout_rows(cells))


# =============================================================================
# DATES AND AGES
# =============================================================================


def date_in_two_months(cells: FormulaRegistry):
    """=EDATE(F5, 2)"""
    return month_shift(cells.date(cells.primary("F5")), 2)


def age_applicant_1(cells: FormulaRegistry):
    """=ROUNDDOWN((F6 - F8) / 365.25, 0)"""
    age = year_difference(
        cells.date(cells.primary("F6")), cells.date(cells.primary("F8"))
    )
    return 0 if age is None else age


def age_applicant_2(cells: FormulaRegistry):
    """=IF(F9="Nee", "", ROUNDDOWN((F6 - F10) / 365.25, 0))"""
    if is_flag(cells.resolve(cells.primary("F9")), "nee"):
        return ""
    age = year_difference(
        cells.date(cells.primary("F6")), cells.date(cells.primary("F10"))
    )
    return "" if age is None else age


def calculation_age(cells: FormulaRegistry):
    """=IF(F9="Nee", F11, IF(F9="Ja", MIN(F11:F12)))"""
    partner = cells.resolve(cells.primary("F9"))
    age_1 = cells.resolve(cells.primary("F11"))

    if is_flag(partner, "nee"):
        return age_1
    if is_flag(partner, "ja"):
        age_2 = cells.resolve(cells.primary("F12"))
        # MIN skips the empty text of a missing partner age
        if age_2 is None or as_text(age_2) == "":
            return age_1
        return min(as_number(age_1), as_number(age_2))
    return None


# =============================================================================
# MORTGAGE AND LOAN-TO-VALUE
# =============================================================================


def mortgage_for_calculation(cells: FormulaRegistry):
    """=IF(F17="Nee", 0, Xinput_hypotheeksaldo)"""
    if is_flag(cells.resolve(cells.primary("F17")), "nee"):
        return 0
    return cells.number(cells.primary("F18"))


def _age_lookup(cells: FormulaRegistry, first_row: int, last_row: int, column: int):
    layout = cells.dataset.parameters
    return vlookup_exact(
        cells.resolve,
        cells.number(cells.primary("F13")),
        cells.dataset.parameter_sheet,
        layout.key_column,
        layout.initial_payout_column,
        first_row,
        last_row,
        column,
    )


def max_ltv_fraction(cells: FormulaRegistry):
    """=VLOOKUP(F13, param15yrlump!D13:F68, 2, FALSE)"""
    layout = cells.dataset.parameters
    return _age_lookup(cells, layout.first_row, cells.dataset.age_table_last_row, 2)


def max_ltv_value(cells: FormulaRegistry):
    """=F27 * Xinput_wozwaarde"""
    return cells.number(cells.primary("F27")) * cells.number(cells.primary("F16"))


def capped_max_ltv_value(cells: FormulaRegistry):
    """=IF(F28 > param15yrlump!E8, param15yrlump!E8, F28)"""
    value = cells.number(cells.primary("F28"))
    cap = cells.number(cells.param("E8"))
    return cap if value > cap else value


def minimum_annual_payment(cells: FormulaRegistry):
    """=MAX(1000 + (0.005 * Xinput_wozwaarde), 1% * (Xinput_wozwaarde - F19))"""
    woz = cells.number(cells.primary("F16"))
    mortgage = cells.number(cells.primary("F19"))
    return max(
        MINIMUM_PAYMENT_BASE + MINIMUM_PAYMENT_WOZ_SHARE * woz,
        MINIMUM_PAYMENT_EQUITY_SHARE * (woz - mortgage),
    )


# =============================================================================
# FIRST YEAR PAYOUT
# =============================================================================


def initial_payout_fraction(cells: FormulaRegistry):
    """=VLOOKUP(F13, param15yrlump!D23:F51, 3, FALSE)"""
    layout = cells.dataset.parameters
    return _age_lookup(
        cells, layout.payout_lookup_first_row, layout.payout_lookup_last_row, 3
    )


def first_year_payout(cells: FormulaRegistry):
    """=F34 * Xinput_wozwaarde"""
    return cells.number(cells.primary("F34")) * cells.number(cells.primary("F16"))


def first_year_addend(cells: FormulaRegistry):
    """=param15yrlump!E7, shown next to the first year payout"""
    return cells.number(cells.param("E7"))


def first_year_base_payout(cells: FormulaRegistry):
    """=F35 + param15yrlump!$E$7"""
    return cells.number(cells.primary("F35")) + cells.number(cells.param("E7"))


# =============================================================================
# CONCLUSION
# =============================================================================


def total_payout(cells: FormulaRegistry):
    """=IF(F86="Yes", SUM(H50:H64), 0)"""
    if cells.text(cells.primary("F86")) == YES:
        return total_draws(cells)
    return 0


def interest_percentage(cells: FormulaRegistry):
    """=param15yrlump!E5 * 100"""
    return cells.number(cells.param("E5")) * 100


def first_year_exceeds_minimum(cells: FormulaRegistry):
    """=IF(H50 > F31, "Yes", "No")"""
    first_row = cells.dataset.schedule.first_row
    draw = cells.number(cells.primary(f"H{first_row}"))
    return YES if draw > cells.number(cells.primary("F31")) else NO


def total_exceeds_minimum(cells: FormulaRegistry):
    """=IF(SUM(H50:H64) > param15yrlump!E9, "Yes", "No")"""
    return YES if total_draws(cells) > cells.number(cells.param("E9")) else NO


def qualifies(cells: FormulaRegistry):
    """=IF(AND(J85="Yes", J86="Yes"), "Yes", "No")"""
    checks = (cells.text(cells.primary("J85")), cells.text(cells.primary("J86")))
    return YES if checks == (YES, YES) else NO


def forward_fill(cells: FormulaRegistry, row: int):
    """param15yrlump!F(n) = F(n-1)"""
    column = cells.dataset.parameters.initial_payout_column
    return cells.resolve(cells.param(f"{column}{row - 1}"))


# =============================================================================
# REGISTRATION
# =============================================================================


def register_formulas(cells: FormulaRegistry) -> None:
    """Register every scalar formula cell with its dependencies."""
    p = cells.primary
    q = cells.param
    dataset = cells.dataset
    layout = dataset.parameters
    draws = payout_rows(cells)

    def table(first_row: int, last_row: int) -> List[CellAddress]:
        return [
            q(f"{column}{row}")
            for row in range(first_row, last_row + 1)
            for column in (
                layout.key_column,
                layout.max_ltv_column,
                layout.initial_payout_column,
            )
        ]

    cells.register(p("F6"), date_in_two_months, [p("F5")])
    cells.register(p("F11"), age_applicant_1, [p("F6"), p("F8")])
    cells.register(p("F12"), age_applicant_2, [p("F6"), p("F9"), p("F10")])
    cells.register(p("F13"), calculation_age, [p("F9"), p("F11"), p("F12")])
    cells.register(p("F19"), mortgage_for_calculation, [p("F17"), p("F18")])
    cells.register(
        p("F27"),
        max_ltv_fraction,
        [p("F13")] + table(layout.first_row, dataset.age_table_last_row),
    )
    cells.register(p("F28"), max_ltv_value, [p("F27"), p("F16")])
    cells.register(p("F29"), capped_max_ltv_value, [p("F28"), q("E8")])
    cells.register(p("F31"), minimum_annual_payment, [p("F16"), p("F19")])
    cells.register(
        p("F34"),
        initial_payout_fraction,
        [p("F13")]
        + table(layout.payout_lookup_first_row, layout.payout_lookup_last_row),
    )
    cells.register(p("F35"), first_year_payout, [p("F34"), p("F16")])
    cells.register(p("E36"), first_year_addend, [q("E7")])
    cells.register(p("F36"), first_year_base_payout, [p("F35"), q("E7")])
    cells.register(p("F84"), total_payout, [p("F86")] + draws)
    cells.register(p("F85"), interest_percentage, [q("E5")])
    cells.register(p("J85"), first_year_exceeds_minimum, [draws[0], p("F31")])
    cells.register(p("J86"), total_exceeds_minimum, draws + [q("E9")])
    cells.register(p("F86"), qualifies, [p("J85"), p("J86")])

    column = layout.initial_payout_column
    for row in range(layout.forward_fill_from_row, dataset.age_table_last_row + 1):
        cells.register(
            q(f"{column}{row}"),
            partial(forward_fill, row=row),
            [q(f"{column}{row - 1}")],
        )
