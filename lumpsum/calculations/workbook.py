"""
Lump Sum Workbook

One calculation request against the 15-year lump-sum sheet: load the
baseline, apply the named inputs, run the requested macro and read back the
requested output cells. Instances hold mutable state and are not shared
between requests.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from lumpsum.calculations.cells import CellAddress, CellValue, raw_value
from lumpsum.calculations.dataset import StaticDataset, load_dataset
from lumpsum.calculations.formulas import register_formulas
from lumpsum.calculations.goal_seek import (
    DEFAULT_SAMPLE_STEP,
    GoalSeekProblem,
    GoalSeekResult,
    GoalSeekStrategy,
    SecantGoalSeek,
    secant_error_bound,
)
from lumpsum.calculations.inputs import describe_inputs, normalize_inputs
from lumpsum.calculations.registry import FormulaRegistry
from lumpsum.calculations.schedule import (
    PayoutSchedule,
    ScheduleRow,
    compound_factor,
    rounding_error_bound,
)
from lumpsum.calculations.store import CellStore

logger = logging.getLogger(__name__)

# A second applicant born in or before this year is treated as no partner
PARTNER_BIRTH_YEAR_FLOOR = 1924

YES_FLAG = "Ja"
NO_FLAG = "Nee"


class LumpSumWorkbook:
    """Cell store, formulas and payout macro of one workbook instance."""

    def __init__(
        self,
        input_cells: Optional[Mapping[str, Mapping[str, Any]]] = None,
        dataset: Optional[StaticDataset] = None,
        strategy: Optional[GoalSeekStrategy] = None,
    ):
        self.dataset = dataset or load_dataset()
        self.store = CellStore(self.dataset.baseline_values())
        self.cells = FormulaRegistry(self.store, self.dataset)
        register_formulas(self.cells)
        self.schedule = PayoutSchedule(self.cells)
        self.schedule.register()
        # Fails on a circular reference before any input is applied
        self.cells.evaluation_order()

        self.strategy = strategy or SecantGoalSeek()
        self.goal_seek_result: Optional[GoalSeekResult] = None

        self.apply_inputs(input_cells or {})

    # -------------------------------------------------------------------------
    # Cell access
    # -------------------------------------------------------------------------

    def apply_inputs(self, input_cells: Mapping[str, Mapping[str, Any]]) -> None:
        """Write normalized named inputs into the store."""
        writes = normalize_inputs(self.dataset, input_cells)
        for address, value in writes:
            self.store.set(address, value)
        if writes:
            logger.debug(f"Applied inputs: {describe_inputs(writes)}")

    def get_value(self, sheet: str, reference: str) -> Optional[CellValue]:
        return self.cells.resolve(CellAddress(sheet, reference))

    def set_value(self, sheet: str, reference: str, value) -> None:
        self.store.set(CellAddress(sheet, reference), value)

    def _named(self, name: str) -> CellAddress:
        return self.dataset.named_address(name)

    # -------------------------------------------------------------------------
    # Recalculation
    # -------------------------------------------------------------------------

    def calculate(self) -> None:
        """Full recompute: scalar formulas first, then the payout schedule."""
        self.cells.recompute()
        self.schedule.recompute()

    def schedule_rows(self) -> List[ScheduleRow]:
        return self.schedule.rows()

    # -------------------------------------------------------------------------
    # Macros
    # -------------------------------------------------------------------------

    def macros(self) -> Dict[str, Callable[[], Any]]:
        return {self.dataset.macro_name: self.run_payout_goal_seek}

    def run_actions(self, actions: Iterable[Mapping[str, Any]]) -> None:
        """Run macro actions by name; other actions and unknown names are ignored."""
        macros = self.macros()
        for action in actions or []:
            if action.get("type") != "macro":
                continue
            name = (action.get("parameters") or {}).get("name")
            macro = macros.get(name)
            if macro is None:
                logger.debug(f"Ignoring unknown macro {name!r}")
                continue
            logger.info(f"Running macro {name}")
            macro()

    def _set_input_flags(self) -> float:
        """Derive the partner and mortgage flags from the raw inputs."""
        birthdate_2 = self.cells.date(self._named("Xinput_geboortedatumaanvrager2"))
        has_partner = (
            birthdate_2 is not None and birthdate_2.year > PARTNER_BIRTH_YEAR_FLOOR
        )
        self.store.set(
            self._named("Xinput_partnerjanee"), YES_FLAG if has_partner else NO_FLAG
        )

        balance = self.cells.number(self._named("Xinput_hypotheeksaldo"))
        self.store.set(
            self._named("Xinput_hypotheekjanee"), YES_FLAG if balance > 0 else NO_FLAG
        )
        return balance

    def _check_limits(self, balance: float) -> None:
        """Report, without acting on, breaches of the payout cap and minimum."""
        cap = self.cells.number(self.cells.param("E8"))
        running_total = self.cells.number(self._named("rngTotal"))
        if balance + running_total > cap:
            logger.warning(
                f"Mortgage plus payouts {balance + running_total:.2f} exceeds cap {cap:.2f}"
            )

        layout = self.dataset.schedule
        draws = sum(
            self.cells.number(self.cells.primary(f"H{row}"))
            for row in range(layout.first_row, layout.payout_last_row + 1)
        )
        minimum = self.cells.number(self.cells.param("E9"))
        if draws < minimum:
            logger.warning(f"Total payout {draws:.2f} is below minimum {minimum:.2f}")

    def run_payout_goal_seek(self) -> GoalSeekResult:
        """
        Solve the first-year payout.

        Sets the input flags, broadcasts the WOZ value over the schedule,
        fixes years 2-15 at the minimum annual payment and then solves the
        first-year draw so the running total at the goal row equals the
        capped maximum LTV value.

        Returns:
            The goal seek result; the workbook is left fully recomputed
        """
        primary = self.cells.primary
        layout = self.dataset.schedule
        sheet = self.dataset.primary_sheet

        self.calculate()

        balance = self._set_input_flags()
        woz = self.cells.number(self._named("Xinput_wozwaarde"))
        self.store.fill(sheet, "F", layout.first_row, layout.last_row, woz)
        self.calculate()
        self._check_limits(balance)

        target = self.cells.number(primary("F29"))
        minimum_payment = self.cells.number(primary("F31"))
        self.store.fill(
            sheet, "H", layout.first_row + 1, layout.payout_last_row, minimum_payment
        )
        seed = self.cells.number(primary("F36"))

        draw_cell = primary(f"H{layout.first_row}")
        result_cell = self._named("rngTotal")

        def evaluate(value: float) -> float:
            self.store.set(draw_cell, value)
            self.calculate()
            return self.cells.number(result_cell)

        def estimate() -> float:
            interest = sum(
                self.cells.number(primary(f"J{row}"))
                for row in range(layout.first_row, layout.payout_last_row + 1)
            )
            years = layout.payout_last_row - layout.first_row
            return target - minimum_payment * years - interest

        evaluate(seed)
        problem = GoalSeekProblem(
            evaluate=evaluate,
            seed=seed,
            target=target,
            estimate=estimate,
            cap=self.cells.number(self.cells.param("E8")),
        )
        result = self.strategy.solve(problem)

        # Final recompute with the accepted draw
        evaluate(result.value)
        self.goal_seek_result = result
        logger.info(
            f"Goal seek ({self.strategy.name}) set {draw_cell} to {result.value:.2f}, "
            f"residual {result.residual:.4f} after {result.iterations} step(s)"
        )
        if isinstance(self.strategy, SecantGoalSeek) and not self.strategy.iterate:
            logger.debug(
                f"Single correction bound: {self.residual_bound(result):.4f}"
            )
        return result

    def residual_bound(self, result: GoalSeekResult) -> float:
        """
        Worst-case |residual| of a single secant correction on this schedule.

        The running total is affine in the first-year draw with slope
        factor ^ years, plus the compounded rounding of the interest column.
        """
        layout = self.dataset.schedule
        rate = self.cells.number(self.cells.param("E5"))
        digits = int(self.cells.number(self.cells.param("E6")))
        years = layout.payout_last_row - layout.first_row + 1

        slope = compound_factor(rate) ** years
        noise = rounding_error_bound(rate, years, digits)
        seed = result.samples[0][0]
        # Distance from the seed to the root of the affine part
        distance = abs(seed - result.value) + (abs(result.residual) + noise) / slope
        sample_step = getattr(self.strategy, "sample_step", DEFAULT_SAMPLE_STEP)
        return secant_error_bound(noise, slope, distance, sample_step)

    # -------------------------------------------------------------------------
    # Request entry point
    # -------------------------------------------------------------------------

    def calculate_output_cells(
        self,
        output_cells: Mapping[str, Iterable[str]],
        pre_formulas_actions: Optional[Iterable[Mapping[str, Any]]] = None,
        post_formulas_actions: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """
        Run the post-formula actions and return the requested cells.

        Pre-formula actions are accepted but not executed.
        """
        pre_formulas_actions = list(pre_formulas_actions or [])
        if pre_formulas_actions:
            logger.warning(
                f"Skipping {len(pre_formulas_actions)} pre-formula action(s); "
                f"only post-formula actions are executed"
            )

        self.run_actions(post_formulas_actions or [])

        results: Dict[str, Dict[str, Any]] = {}
        for sheet, references in (output_cells or {}).items():
            results[sheet] = {
                reference: raw_value(self.get_value(sheet, reference))
                for reference in references
            }
        return results
