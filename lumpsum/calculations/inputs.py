"""
Input Normalizer

Maps externally supplied named inputs onto workbook cells and coerces raw
text into dates, numbers or text.
"""

import logging
import re
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple

from lumpsum.calculations.cells import (
    CellAddress,
    CellValue,
    DateValue,
    Number,
    Text,
    cell_value,
)
from lumpsum.calculations.dataset import StaticDataset
from lumpsum.calculations.excel import parse_number

logger = logging.getLogger(__name__)

ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
US_DATE = re.compile(r"^(\d{2})-(\d{2})-(\d{4})$")


def _make_date(year: str, month: str, day: str) -> Optional[date]:
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def normalize_value(raw: Any) -> Optional[CellValue]:
    """
    Coerce one raw input value.

    Strings are trimmed, then tried as YYYY-MM-DD, then MM-DD-YYYY, then as
    a number with "," thousands separators removed; anything else is kept
    as text. Impossible calendar dates fall through to the later rules.

    Returns:
        The tagged value, or None for a None input
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return Text(str(raw).lower())
    if isinstance(raw, (int, float)):
        number = parse_number(raw)
        return Number(number) if number is not None else Text(str(raw))
    if isinstance(raw, date):
        return cell_value(raw)

    text = str(raw).strip()

    match = ISO_DATE.match(text)
    if match:
        parsed = _make_date(*match.groups())
        if parsed is not None:
            return DateValue(parsed)

    match = US_DATE.match(text)
    if match:
        month, day, year = match.groups()
        parsed = _make_date(year, month, day)
        if parsed is not None:
            return DateValue(parsed)

    number = parse_number(text.replace(",", ""))
    if number is not None:
        return Number(number)
    return Text(text)


def resolve_input_name(dataset: StaticDataset, name: str) -> Optional[str]:
    """Cell reference for a named range or one of its English aliases."""
    if name in dataset.named_ranges:
        return dataset.named_ranges[name]
    alias = dataset.input_aliases.get(name)
    if alias is not None:
        return dataset.named_ranges[alias]
    return None


def normalize_inputs(
    dataset: StaticDataset, input_cells: Mapping[str, Mapping[str, Any]]
) -> List[Tuple[CellAddress, CellValue]]:
    """
    Translate a request's inputCells into cell writes.

    Only the primary sheet carries named inputs; unknown sheets and names
    are skipped.
    """
    writes: List[Tuple[CellAddress, CellValue]] = []
    for sheet, named_values in (input_cells or {}).items():
        if sheet != dataset.primary_sheet:
            logger.debug(f"Ignoring inputs for unknown sheet {sheet!r}")
            continue
        for name, raw in (named_values or {}).items():
            reference = resolve_input_name(dataset, name)
            if reference is None:
                logger.debug(f"Ignoring unknown input {name!r}")
                continue
            value = normalize_value(raw)
            if value is None:
                continue
            writes.append((CellAddress(sheet, reference), value))
    return writes


def describe_inputs(writes: List[Tuple[CellAddress, CellValue]]) -> Dict[str, Any]:
    """Readable summary of normalized inputs, for logging."""
    return {str(address): value.raw for address, value in writes}
