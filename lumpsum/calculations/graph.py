"""Dependency graph for formula cells with topological ordering."""

from collections import deque
from typing import Dict, Iterable, List

from lumpsum.calculations.cells import CellAddress


class CircularReferenceError(ValueError):
    """Raised when formula cells depend on each other in a loop."""


class DependencyGraph:
    """
    Tracks which cells each formula cell reads from.

    Evaluation order is derived from the declared dependencies; insertion
    order breaks ties so a recompute pass is deterministic.
    """

    def __init__(self) -> None:
        # cell -> cells it reads from
        self.dependencies: Dict[CellAddress, List[CellAddress]] = {}
        # cell -> formula cells that read from it
        self.dependents: Dict[CellAddress, List[CellAddress]] = {}

    def add_formula(self, cell: CellAddress, depends_on: Iterable[CellAddress]) -> None:
        """Register a formula cell and its dependencies."""
        deps = list(dict.fromkeys(depends_on))
        self.dependencies[cell] = deps
        for dep in deps:
            self.dependents.setdefault(dep, [])
            if cell not in self.dependents[dep]:
                self.dependents[dep].append(cell)

    def topological_order(self) -> List[CellAddress]:
        """
        Formula cells in evaluation order (Kahn's algorithm).

        Raises CircularReferenceError if a cycle is detected.
        """
        formula_cells = self.dependencies
        if not formula_cells:
            return []

        # Only count dependencies that are themselves formula cells
        in_degree: Dict[CellAddress, int] = {
            cell: sum(1 for dep in deps if dep in formula_cells)
            for cell, deps in formula_cells.items()
        }

        queue = deque(cell for cell, degree in in_degree.items() if degree == 0)
        order: List[CellAddress] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            for dependent in self.dependents.get(cell, []):
                if dependent in formula_cells:
                    in_degree[dependent] -= 1
                    if in_degree[dependent] == 0:
                        queue.append(dependent)

        if len(order) != len(formula_cells):
            stuck = sorted(str(c) for c in formula_cells if c not in set(order))
            raise CircularReferenceError(
                f"Circular reference detected involving: {', '.join(stuck)}"
            )

        return order
