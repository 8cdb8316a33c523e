"""
Static Configuration Dataset

Baseline literal values of the workbook (labels, default inputs, default
draws), the age-indexed parameter table and the named ranges. Loaded once
from a JSON data file and never mutated afterwards.
"""

import json
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from lumpsum.calculations.cells import CellAddress, CellValue, DateValue, cell_value

DEFAULT_DATASET_PATH = Path(__file__).resolve().parent.parent / "data" / "lump15yr.json"


class AgeParameter(BaseModel):
    """One row of the age-indexed parameter schedule."""

    model_config = ConfigDict(frozen=True)

    age: int
    max_ltv: float
    # Blank from age 85: the sheet forward-fills the last value by formula
    initial_payout: Optional[float] = None


class ParameterLayout(BaseModel):
    """Where the age table lives on the parameter sheet."""

    model_config = ConfigDict(frozen=True)

    first_row: int = 13
    key_column: str = "D"
    max_ltv_column: str = "E"
    initial_payout_column: str = "F"
    # VLOOKUP range used for the initial payout fraction (F34)
    payout_lookup_first_row: int = 23
    payout_lookup_last_row: int = 51
    # Initial payout fractions below this row are set, from here on forward-filled
    forward_fill_from_row: int = 43


class ScheduleLayout(BaseModel):
    """Rows of the amortization block."""

    model_config = ConfigDict(frozen=True)

    first_row: int = 50
    last_row: int = 79
    # Last row with a draw; also the goal-seek row (15 year product)
    payout_last_row: int = 64

    @model_validator(mode="after")
    def _check_rows(self) -> "ScheduleLayout":
        if not self.first_row <= self.payout_last_row <= self.last_row:
            raise ValueError("payout_last_row must lie inside the schedule")
        return self


class StaticDataset(BaseModel):
    """The complete baseline of one product workbook."""

    model_config = ConfigDict(frozen=True)

    version: str
    product: str
    primary_sheet: str
    parameter_sheet: str
    macro_name: str
    named_ranges: Dict[str, str]
    input_aliases: Dict[str, str] = {}
    schedule: ScheduleLayout = ScheduleLayout()
    parameters: ParameterLayout = ParameterLayout()
    age_table: List[AgeParameter]
    cells: Dict[str, Dict[str, Any]]

    @field_validator("age_table")
    @classmethod
    def _ages_strictly_ascending(cls, rows: List[AgeParameter]) -> List[AgeParameter]:
        if not rows:
            raise ValueError("age_table must not be empty")
        for previous, current in zip(rows, rows[1:]):
            if current.age <= previous.age:
                raise ValueError(
                    f"age_table must be strictly ascending without duplicates "
                    f"(age {current.age} follows {previous.age})"
                )
        return rows

    @model_validator(mode="after")
    def _aliases_point_at_named_ranges(self) -> "StaticDataset":
        unknown = set(self.input_aliases.values()) - set(self.named_ranges)
        if unknown:
            raise ValueError(f"input_aliases refer to unknown named ranges: {sorted(unknown)}")
        return self

    @property
    def age_table_last_row(self) -> int:
        return self.parameters.first_row + len(self.age_table) - 1

    def named_address(self, name: str) -> CellAddress:
        """Address bound to a named range on the primary sheet."""
        return CellAddress(self.primary_sheet, self.named_ranges[name])

    def baseline_values(self) -> Dict[CellAddress, CellValue]:
        """
        All literal cells of a fresh workbook.

        The age table is laid out on the parameter sheet starting at
        parameters.first_row, one age per row.
        """
        values: Dict[CellAddress, CellValue] = {}

        for sheet, sheet_cells in self.cells.items():
            for reference, raw in sheet_cells.items():
                values[CellAddress(sheet, reference)] = _decode_cell(raw)

        layout = self.parameters
        for offset, entry in enumerate(self.age_table):
            row = layout.first_row + offset
            sheet = self.parameter_sheet
            values[CellAddress(sheet, f"{layout.key_column}{row}")] = cell_value(entry.age)
            values[CellAddress(sheet, f"{layout.max_ltv_column}{row}")] = cell_value(
                entry.max_ltv
            )
            if entry.initial_payout is not None:
                values[
                    CellAddress(sheet, f"{layout.initial_payout_column}{row}")
                ] = cell_value(entry.initial_payout)

        return values


def _decode_cell(raw: Any) -> CellValue:
    """JSON cell encoding: numbers, strings, or {"date": "YYYY-MM-DD"}."""
    if isinstance(raw, dict):
        if set(raw) != {"date"}:
            raise ValueError(f"Unsupported cell encoding: {raw!r}")
        return DateValue(date.fromisoformat(raw["date"]))
    tagged = cell_value(raw)
    if tagged is None:
        raise ValueError("Dataset cells may not be null")
    return tagged


@lru_cache()
def load_dataset(path: Optional[str] = None) -> StaticDataset:
    """Load and validate a dataset file (the bundled one by default). Cached."""
    source = Path(path) if path else DEFAULT_DATASET_PATH
    raw = json.loads(source.read_text(encoding="utf-8"))
    return StaticDataset.model_validate(raw)
