from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any

import pandas as pd

from ..models.raw_cell import CellKind, RawCell

"""Cell normalization: RawCell -> canonical scalar.

Source workbooks are edited by hand and regularly contain blanks, stray text
in numeric columns and mixed types within one column, so nothing in this
module raises on bad input. Unusable values fall back to the empty value of
the requested context ("" for text, 0.0 for numbers, None for dates).
"""

__all__ = [
    "normalize",
    "as_text",
    "as_number",
    "as_date",
    "to_raw_cell",
    "normalize_key",
]

# Excel serial day 0 (accounts for the 1900 leap-year bug)
EXCEL_EPOCH = datetime(1899, 12, 30)


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def normalize(cell: RawCell, numeric: bool = False) -> Any:
    """Convert a RawCell to a scalar.

    Text passes through, Number/Integer become float (non-finite -> 0.0),
    DateTime becomes ``datetime``, Boolean passes through and Empty yields
    ``""`` or ``0.0`` depending on ``numeric``. A DateTime cell whose value
    cannot be converted is treated as Empty.

    Args:
        cell: cell produced by the reader
        numeric: the caller expects a number (changes the Empty value)

    Returns:
        ``str``, ``float``, ``bool`` or ``datetime``; never None
    """
    kind = cell.kind
    if kind is CellKind.TEXT:
        return cell.value
    if kind is CellKind.NUMBER or kind is CellKind.INTEGER:
        try:
            return _finite(float(cell.value))
        except (TypeError, ValueError, OverflowError):
            return 0.0
    if kind is CellKind.DATETIME:
        value = _to_datetime(cell.value)
        if value is not None:
            return value
        # unconvertible timestamps read as blank cells
    elif kind is CellKind.BOOLEAN:
        return bool(cell.value)
    return 0.0 if numeric else ""


def as_text(cell: RawCell) -> str:
    """Render a cell as display text.

    Args:
        cell: Any raw cell.

    Returns:
        Stripped text for Text cells. Whole numbers lose their ``.0``,
        timestamps use ISO format, booleans read "true"/"false" and
        Empty gives "".
    """
    kind = cell.kind
    if kind is CellKind.EMPTY:
        return ""
    if kind is CellKind.TEXT:
        return cell.value.strip()
    if kind is CellKind.NUMBER or kind is CellKind.INTEGER:
        number = normalize(cell)
        if number == int(number):
            return str(int(number))
        return str(number)
    if kind is CellKind.DATETIME:
        value = _to_datetime(cell.value)
        return value.isoformat() if value is not None else ""
    return "true" if cell.value else "false"


def as_number(cell: RawCell) -> float:
    """Read a cell as a finite float.

    Args:
        cell: Any raw cell. Text is parsed after dropping thousands
            separators and a leading "$".

    Returns:
        The numeric value, or 0.0 for Empty, DateTime and unparseable text.
    """
    kind = cell.kind
    if kind is CellKind.NUMBER or kind is CellKind.INTEGER:
        return normalize(cell)
    if kind is CellKind.TEXT:
        return _parse_number(cell.value)
    if kind is CellKind.BOOLEAN:
        return 1.0 if cell.value else 0.0
    return 0.0


def as_date(cell: RawCell) -> datetime | None:
    """Read a cell as a timestamp; numbers are Excel day serials."""
    kind = cell.kind
    if kind is CellKind.DATETIME:
        return _to_datetime(cell.value)
    if kind is CellKind.NUMBER or kind is CellKind.INTEGER:
        serial = normalize(cell)
        if serial <= 0:
            return None
        try:
            return EXCEL_EPOCH + timedelta(days=serial)
        except OverflowError:
            return None
    if kind is CellKind.TEXT:
        text = cell.value.strip()
        if not text:
            return None
        parsed = pd.to_datetime(text, errors="coerce")
        if pd.isna(parsed):
            return None
        return parsed.to_pydatetime()
    return None


def to_raw_cell(value: Any) -> RawCell:
    """Inverse of ``normalize`` for scalars it can produce."""
    if value is None or (isinstance(value, str) and value == ""):
        return RawCell.empty()
    if isinstance(value, bool):
        return RawCell.boolean(value)
    if isinstance(value, int):
        return RawCell.integer(value)
    if isinstance(value, float):
        return RawCell.number(value)
    if isinstance(value, datetime):
        return RawCell.timestamp(value)
    return RawCell.text(str(value))


def normalize_key(value: Any) -> str:
    """Canonical join-key text.

    Args:
        value: A normalized scalar or raw identifier text.

    Returns:
        Text with float noise removed: 100.0 -> "100", " 100.00 " -> "100".
        Zero, None, booleans and non-finite floats give "" (no key).
    """
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        text = str(int(value)) if value == int(value) else str(value)
    elif isinstance(value, int):
        text = str(value)
    else:
        text = str(value).strip()
        for suffix in (".00", ".0"):
            if text.endswith(suffix) and text[: -len(suffix)].lstrip("-").isdigit():
                text = text[: -len(suffix)]
                break
    if text in ("0", "-0"):
        return ""
    return text


def _to_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def _parse_number(text: str) -> float:
    cleaned = text.strip().replace(",", "")
    if cleaned.startswith("$"):
        cleaned = cleaned[1:]
    if not cleaned:
        return 0.0
    try:
        return _finite(float(cleaned))
    except ValueError:
        return 0.0
