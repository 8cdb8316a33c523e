"""
Lump Sum Calculation Engine

Spreadsheet-compatible evaluation of the 15-year lump-sum reverse mortgage
sheet. All calculations are designed to match Excel formula behavior.
"""

from lumpsum.calculations import (
    cells,
    dataset,
    dates,
    excel,
    formulas,
    goal_seek,
    graph,
    inputs,
    lookup,
    registry,
    schedule,
    store,
    workbook,
)

__all__ = [
    "cells",
    "dataset",
    "dates",
    "excel",
    "formulas",
    "goal_seek",
    "graph",
    "inputs",
    "lookup",
    "registry",
    "schedule",
    "store",
    "workbook",
]
