"""
Formula Registry

Maps cell addresses to computations over the cell store. A read returns the
literal when one is set and otherwise evaluates the formula without writing
it back. A recompute pass evaluates every scalar formula in dependency
order and stores the results as literals.
"""

import datetime
import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from lumpsum.calculations.cells import (
    CellAddress,
    CellValue,
    as_date,
    as_number,
    as_text,
    cell_value,
    split_reference,
)
from lumpsum.calculations.dataset import StaticDataset
from lumpsum.calculations.graph import DependencyGraph
from lumpsum.calculations.store import CellStore

logger = logging.getLogger(__name__)

Formula = Callable[["FormulaRegistry"], object]
RowFormula = Callable[[int], object]


class FormulaRegistry:
    """Formula cells of one workbook instance, evaluated against its store."""

    def __init__(self, store: CellStore, dataset: StaticDataset):
        self.store = store
        self.dataset = dataset
        self.graph = DependencyGraph()
        self._formulas: Dict[CellAddress, Formula] = {}
        # (sheet, column) -> (first_row, last_row, formula)
        self._row_formulas: Dict[Tuple[str, str], Tuple[int, int, RowFormula]] = {}
        self._order: Optional[List[CellAddress]] = None
        # Values computed during one top-level read, discarded afterwards
        self._memo: Optional[Dict[CellAddress, Optional[CellValue]]] = None

    # -------------------------------------------------------------------------
    # Addresses
    # -------------------------------------------------------------------------

    def primary(self, reference: str) -> CellAddress:
        return CellAddress(self.dataset.primary_sheet, reference)

    def param(self, reference: str) -> CellAddress:
        return CellAddress(self.dataset.parameter_sheet, reference)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(
        self,
        address: CellAddress,
        formula: Formula,
        depends_on: Iterable[CellAddress] = (),
    ) -> None:
        """Register a scalar formula cell with the cells it reads."""
        if address in self._formulas:
            raise ValueError(f"Formula already registered for {address}")
        self._formulas[address] = formula
        self.graph.add_formula(address, depends_on)
        self._order = None

    def register_row(
        self,
        sheet: str,
        column: str,
        first_row: int,
        last_row: int,
        formula: RowFormula,
    ) -> None:
        """Register one formula shared by a column of rows (e.g. J50:J79)."""
        self._row_formulas[(sheet, column)] = (first_row, last_row, formula)

    def evaluation_order(self) -> List[CellAddress]:
        """Scalar formula cells in dependency order. Raises on a cycle."""
        if self._order is None:
            self._order = self.graph.topological_order()
        return self._order

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _formula_for(self, address: CellAddress) -> Optional[Callable[[], object]]:
        formula = self._formulas.get(address)
        if formula is not None:
            return lambda: formula(self)

        try:
            column, row = split_reference(address.reference)
        except ValueError:
            return None
        entry = self._row_formulas.get((address.sheet, column))
        if entry is not None:
            first_row, last_row, row_formula = entry
            if first_row <= row <= last_row:
                return lambda: row_formula(row)
        return None

    def evaluate(self, address: CellAddress) -> Optional[CellValue]:
        """Run the formula for a cell, ignoring any literal currently stored."""
        formula = self._formula_for(address)
        if formula is None:
            return self.store.get(address)
        return cell_value(formula())

    def resolve(self, address: CellAddress) -> Optional[CellValue]:
        """Literal if present, otherwise the formula's value, otherwise None."""
        literal = self.store.get(address)
        if literal is not None:
            return literal
        formula = self._formula_for(address)
        if formula is None:
            return None

        if self._memo is not None and address in self._memo:
            return self._memo[address]
        outermost = self._memo is None
        if outermost:
            self._memo = {}
        try:
            value = cell_value(formula())
            self._memo[address] = value
        finally:
            if outermost:
                self._memo = None
        return value

    def number(self, address: CellAddress, default: float = 0.0) -> float:
        return as_number(self.resolve(address), default)

    def date(self, address: CellAddress) -> Optional[datetime.date]:
        return as_date(self.resolve(address))

    def text(self, address: CellAddress) -> Optional[str]:
        return as_text(self.resolve(address))

    # -------------------------------------------------------------------------
    # Recompute
    # -------------------------------------------------------------------------

    def recompute(self) -> None:
        """Evaluate every scalar formula in order and write the results back."""
        order = self.evaluation_order()
        for address in order:
            self.store.set(address, self.evaluate(address))
        logger.debug(f"Recomputed {len(order)} formula cells")
