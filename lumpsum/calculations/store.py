"""
Cell Store

Keyed mapping from (sheet, reference) to a literal cell value. Writes are
unconditional and a cell may change its tag between writes.
"""

from typing import Dict, Optional

from lumpsum.calculations.cells import CellAddress, CellValue, cell_value


class CellStore:
    """Literal values of one workbook instance. Not thread-safe."""

    def __init__(self, values: Optional[Dict[CellAddress, CellValue]] = None):
        self._values: Dict[CellAddress, CellValue] = dict(values or {})

    def get(self, address: CellAddress) -> Optional[CellValue]:
        return self._values.get(address)

    def set(self, address: CellAddress, value) -> None:
        """Overwrite a cell. Plain Python values are tagged; None clears the cell."""
        tagged = cell_value(value)
        if tagged is None:
            self.clear(address)
        else:
            self._values[address] = tagged

    def clear(self, address: CellAddress) -> None:
        """Drop a literal so the cell resolves through its formula again."""
        self._values.pop(address, None)

    def fill(
        self, sheet: str, column: str, first_row: int, last_row: int, value
    ) -> None:
        """Write the same value into a column range, e.g. F50:F79."""
        for row in range(first_row, last_row + 1):
            self.set(CellAddress(sheet, f"{column}{row}"), value)

    def __contains__(self, address: CellAddress) -> bool:
        return address in self._values
