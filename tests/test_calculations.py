"""
Tests for the spreadsheet building blocks of the calculation engine.
"""

import copy
import json
import math

import pytest
from datetime import date, datetime
from pydantic import ValidationError

from lumpsum.calculations.cells import (
    CellAddress,
    DateValue,
    Number,
    Text,
    as_number,
    cell_value,
    column_range,
    is_flag,
    split_reference,
)
from lumpsum.calculations.dataset import (
    DEFAULT_DATASET_PATH,
    ScheduleLayout,
    StaticDataset,
)
from lumpsum.calculations.dates import end_of_month, month_shift, year_difference
from lumpsum.calculations.excel import excel_round, excel_rounddown, parse_number
from lumpsum.calculations.goal_seek import (
    GoalSeekProblem,
    SecantGoalSeek,
    secant_error_bound,
)
from lumpsum.calculations.graph import CircularReferenceError, DependencyGraph
from lumpsum.calculations.inputs import normalize_inputs, normalize_value
from lumpsum.calculations.lookup import vlookup_exact
from lumpsum.calculations.registry import FormulaRegistry
from lumpsum.calculations.schedule import (
    LARGE_BASE,
    compound_factor,
    rounding_error_bound,
)
from lumpsum.calculations.store import CellStore


class TestCalendar:
    """Test EDATE / EOMONTH / age helpers."""

    def test_month_shift_clamps_day_to_28(self):
        """31 January plus one month lands on 28 February, not the 29th."""
        assert month_shift(date(2024, 1, 31), 1) == date(2024, 2, 28)
        assert month_shift(date(2024, 3, 31), 1) == date(2024, 4, 28)

    def test_month_shift_keeps_early_days(self):
        assert month_shift(date(2025, 3, 18), 2) == date(2025, 5, 18)

    def test_month_shift_negative_and_year_rollover(self):
        assert month_shift(date(2025, 1, 15), -2) == date(2024, 11, 15)
        assert month_shift(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_month_shift_invalid_input(self):
        assert month_shift(None, 2) is None
        assert month_shift("2025-01-01", 2) is None
        assert month_shift(date(2025, 1, 1), "two") is None

    def test_month_shift_accepts_datetime(self):
        assert month_shift(datetime(2025, 1, 10, 12, 30), 1) == date(2025, 2, 10)

    def test_end_of_month(self):
        """End of month is taken after the clamped shift."""
        assert end_of_month(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert end_of_month(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert end_of_month(date(2025, 6, 3), 0) == date(2025, 6, 30)
        assert end_of_month(None, 1) is None

    def test_year_difference(self):
        assert year_difference(date(2025, 5, 18), date(1952, 2, 1)) == 73
        assert year_difference(date(2025, 1, 1), date(2025, 1, 1)) == 0
        assert year_difference(date(2025, 1, 1), None) is None


class TestExcelHelpers:
    """Test rounding and numeric coercion."""

    def test_round_ties_to_even(self):
        assert excel_round(0.125, 2) == 0.12
        assert excel_round(0.135, 2) == 0.14
        assert excel_round(2.5, 0) == 2
        assert excel_round(3.5, 0) == 4

    def test_round_non_ties(self):
        assert excel_round(1234.5678, 2) == 1234.57
        assert excel_round(1234.5612, 2) == 1234.56
        assert excel_round(-1.236, 2) == -1.24

    def test_rounddown(self):
        assert excel_rounddown(73.99) == 73
        assert excel_rounddown(1.239, 2) == 1.23

    def test_parse_number_is_strict(self):
        assert parse_number(" 95000 ") == 95000.0
        assert parse_number(12) == 12.0
        assert parse_number("12abc") is None
        assert parse_number("") is None
        assert parse_number(True) is None
        assert parse_number(float("nan")) is None
        assert parse_number("inf") is None


class TestCellValues:
    """Test tagged cell values and references."""

    def test_cell_value_tags(self):
        assert cell_value(5) == Number(5.0)
        assert cell_value("Ja") == Text("Ja")
        assert cell_value(True) == Text("true")
        assert cell_value(datetime(2025, 3, 18, 9, 0)) == DateValue(date(2025, 3, 18))
        assert cell_value(None) is None

    def test_as_number_reads_numeric_text(self):
        assert as_number(Text("2100")) == 2100.0
        assert as_number(Text("")) == 0.0
        assert as_number(DateValue(date(2025, 1, 1))) == 0.0
        assert as_number(None, default=-1.0) == -1.0

    def test_flags_are_case_insensitive(self):
        assert is_flag(Text("JA"), "ja")
        assert is_flag(Text(" nee "), "nee")
        assert not is_flag(Number(0), "nee")

    def test_split_reference(self):
        assert split_reference("F31") == ("F", 31)
        with pytest.raises(ValueError):
            split_reference("rngTotal")

    def test_column_range(self):
        assert column_range("D", "F") == ["D", "E", "F"]
        assert column_range("Y", "AB") == ["Y", "Z", "AA", "AB"]

    def test_store_tags_and_clears(self):
        store = CellStore()
        address = CellAddress("s", "A1")
        store.set(address, 10)
        assert store.get(address) == Number(10.0)
        store.set(address, "text")
        assert store.get(address) == Text("text")
        store.set(address, None)
        assert address not in store


class TestLookup:
    """Test exact-match VLOOKUP."""

    TABLE = {
        CellAddress("p", "D1"): Number(55),
        CellAddress("p", "E1"): Number(0.5),
        CellAddress("p", "D2"): Text("header"),
        CellAddress("p", "D3"): Number(56),
        CellAddress("p", "E3"): Text("0.52"),
        CellAddress("p", "F3"): Text("note"),
    }

    def lookup(self, key, column):
        return vlookup_exact(self.TABLE.get, key, "p", "D", "F", 1, 3, column)

    def test_match_within_tolerance(self):
        assert self.lookup(55 + 1e-12, 2) == Number(0.5)

    def test_numeric_text_becomes_number(self):
        assert self.lookup(56, 2) == Number(0.52)

    def test_non_numeric_value_returned_raw(self):
        assert self.lookup(56, 3) == Text("note")

    def test_no_match_returns_zero(self):
        assert self.lookup(57, 2) == Number(0.0)
        assert self.lookup(55.001, 2) == Number(0.0)

    def test_invalid_column_returns_zero(self):
        assert self.lookup(55, 0) == Number(0.0)
        assert self.lookup(55, 4) == Number(0.0)


class TestInputNormalizer:
    """Test coercion of raw request inputs."""

    def test_dates(self):
        assert normalize_value("2025-03-18") == DateValue(date(2025, 3, 18))
        assert normalize_value("03-18-2025") == DateValue(date(2025, 3, 18))
        assert normalize_value(" 2025-03-18 ") == DateValue(date(2025, 3, 18))

    def test_impossible_date_stays_text(self):
        assert normalize_value("2025-02-30") == Text("2025-02-30")

    def test_numbers_with_thousands_separators(self):
        assert normalize_value("95,000") == Number(95000.0)
        assert normalize_value(220000) == Number(220000.0)

    def test_text_and_flags(self):
        assert normalize_value("Nee") == Text("Nee")
        assert normalize_value(False) == Text("false")
        assert normalize_value(None) is None

    def test_named_and_aliased_inputs(self, dataset):
        writes = normalize_inputs(
            dataset,
            {
                dataset.primary_sheet: {
                    "wozValue": "220000",
                    "Xinput_hypotheeksaldo": "95000",
                    "unknownInput": "1",
                    "birthdate2": None,
                },
                "otherSheet": {"wozValue": "1"},
            },
        )
        assert writes == [
            (CellAddress(dataset.primary_sheet, "F16"), Number(220000.0)),
            (CellAddress(dataset.primary_sheet, "F18"), Number(95000.0)),
        ]


class TestDependencyGraph:
    """Test evaluation ordering."""

    def test_dependencies_come_first(self):
        graph = DependencyGraph()
        a, b, c = (CellAddress("s", ref) for ref in ("A1", "B1", "C1"))
        graph.add_formula(c, [b])
        graph.add_formula(b, [a])
        graph.add_formula(a, [])
        assert graph.topological_order() == [a, b, c]

    def test_cycle_raises(self):
        graph = DependencyGraph()
        a, b = CellAddress("s", "A1"), CellAddress("s", "B1")
        graph.add_formula(a, [b])
        graph.add_formula(b, [a])
        with pytest.raises(CircularReferenceError):
            graph.topological_order()

    def test_registry_rejects_cycles(self, dataset):
        cells = FormulaRegistry(CellStore(), dataset)
        cells.register(cells.primary("A1"), lambda c: c.number(c.primary("B1")), [cells.primary("B1")])
        cells.register(cells.primary("B1"), lambda c: c.number(c.primary("A1")), [cells.primary("A1")])
        with pytest.raises(CircularReferenceError):
            cells.evaluation_order()


class TestFormulaRegistry:
    """Test literal-wins resolution."""

    def test_literal_wins_over_formula(self, dataset):
        cells = FormulaRegistry(CellStore(), dataset)
        address = cells.primary("A1")
        cells.register(address, lambda c: 1)
        assert cells.resolve(address) == Number(1.0)
        cells.store.set(address, 5)
        assert cells.resolve(address) == Number(5.0)
        assert cells.evaluate(address) == Number(1.0)

    def test_clear_restores_formula(self, dataset):
        cells = FormulaRegistry(CellStore(), dataset)
        address = cells.primary("A1")
        cells.register(address, lambda c: 1)
        cells.store.set(address, 5)
        assert cells.resolve(address) == Number(5.0)
        cells.store.clear(address)
        assert address not in cells.store
        assert cells.resolve(address) == Number(1.0)

    def test_cleared_workbook_cell_recomputes(self, workbook):
        workbook.set_value("15yrlump", "F31", 999)
        assert workbook.get_value("15yrlump", "F31") == Number(999.0)
        workbook.store.clear(workbook.cells.primary("F31"))
        assert workbook.get_value("15yrlump", "F31") == Number(2100.0)

    def test_missing_cell_is_none(self, dataset):
        cells = FormulaRegistry(CellStore(), dataset)
        assert cells.resolve(cells.primary("Z999")) is None
        assert cells.resolve(cells.primary("rngTotal")) is None
        assert cells.number(cells.primary("Z999")) == 0.0

    def test_recompute_writes_in_dependency_order(self, dataset):
        cells = FormulaRegistry(CellStore(), dataset)
        a, b = cells.primary("A1"), cells.primary("B1")
        cells.register(b, lambda c: c.number(a) * 2, [a])
        cells.register(a, lambda c: 21)
        cells.recompute()
        assert cells.store.get(a) == Number(21.0)
        assert cells.store.get(b) == Number(42.0)


class TestCompoundFactor:
    """Test the interest growth factor."""

    def test_zero_rate(self):
        assert compound_factor(0.0) == pytest.approx(1.0)

    def test_regular_rate(self):
        # 1 + r / (1 - r)
        assert compound_factor(0.0659) == pytest.approx(1 / (1 - 0.0659), rel=1e-12)

    def test_full_rate_uses_large_base(self):
        assert compound_factor(1.0) == pytest.approx(LARGE_BASE)

    def test_negative_base_uses_large_base(self):
        assert compound_factor(3.0) == pytest.approx(LARGE_BASE)

    def test_rounding_error_bound_compounds(self):
        # Half a cent per year, grown by the factor of every later year
        assert rounding_error_bound(0.0, 15, 2) == pytest.approx(0.075)
        factor = compound_factor(0.0659)
        assert rounding_error_bound(0.0659, 3, 2) == pytest.approx(
            0.005 * (1 + factor + factor ** 2)
        )


class TestSecantGoalSeek:
    """Secant strategy on a staircase result: slope 3.4 with cent steps."""

    @staticmethod
    def staircase(x):
        return 3 * x + 0.01 * math.floor(40 * x)

    def problem(self, target, evaluate=None):
        return GoalSeekProblem(
            evaluate=evaluate or self.staircase, seed=0.0, target=target
        )

    def test_single_correction_within_error_bound(self):
        result = SecantGoalSeek().solve(self.problem(1000.003))
        root = 1000.003 / 3.4
        bound = secant_error_bound(0.01, 3.4, root)
        assert result.iterations == 1
        assert abs(result.residual) <= bound

    def test_iterate_reaches_tolerance(self):
        strategy = SecantGoalSeek(iterate=True)
        result = strategy.solve(self.problem(731.2345))
        assert abs(result.residual) <= 0.01
        assert result.iterations <= strategy.max_iterations
        assert self.staircase(result.value) - 731.2345 == pytest.approx(result.residual)

    def test_iterate_stops_when_no_input_hits_target(self):
        strategy = SecantGoalSeek(iterate=True)
        result = strategy.solve(self.problem(5.0, lambda x: 10 * math.floor(x)))
        assert abs(result.residual) == pytest.approx(5.0)
        assert result.iterations <= strategy.max_iterations

    def test_error_bound_grows_with_distance(self):
        near = secant_error_bound(0.126, 2.79, 10)
        far = secant_error_bound(0.126, 2.79, 1000)
        assert near < far
        assert near > 0.126

    def test_error_bound_infinite_when_slope_may_vanish(self):
        assert secant_error_bound(1.0, 0.01, 10) == math.inf


class TestStaticDataset:
    """Validation of the bundled dataset file."""

    @pytest.fixture
    def raw(self):
        with open(DEFAULT_DATASET_PATH, encoding="utf-8") as handle:
            return json.load(handle)

    def test_bundled_file_validates(self, raw):
        dataset = StaticDataset.model_validate(raw)
        assert dataset.schedule.payout_last_row == 64

    def test_duplicate_age_rejected(self, raw):
        broken = copy.deepcopy(raw)
        broken["age_table"][1]["age"] = broken["age_table"][0]["age"]
        with pytest.raises(ValidationError, match="strictly ascending"):
            StaticDataset.model_validate(broken)

    def test_descending_age_rejected(self, raw):
        broken = copy.deepcopy(raw)
        table = broken["age_table"]
        table[3], table[4] = table[4], table[3]
        with pytest.raises(ValidationError, match="strictly ascending"):
            StaticDataset.model_validate(broken)

    def test_unknown_alias_target_rejected(self, raw):
        broken = copy.deepcopy(raw)
        broken["input_aliases"]["wozValue"] = "Xinput_missing"
        with pytest.raises(ValidationError, match="Xinput_missing"):
            StaticDataset.model_validate(broken)

    def test_payout_row_outside_schedule_rejected(self, raw):
        broken = copy.deepcopy(raw)
        broken["schedule"]["payout_last_row"] = 80
        with pytest.raises(ValidationError, match="payout_last_row"):
            StaticDataset.model_validate(broken)
        with pytest.raises(ValidationError):
            ScheduleLayout(payout_last_row=80)
