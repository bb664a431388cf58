from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from ..models.raw_cell import RawCell
from ..models.sheet_table import SheetTable

"""Spreadsheet reader: workbook -> list[SheetTable].

This is the boundary with the workbook decoder. Sheets are read without a
header (pandas ``header=None``) and the header row is chosen per sheet type:

- names containing "pipeline": header on row 11
- names containing "program" (but not "vacation"): header on row 3
- everything else: header on row 1

Rows after the header row become data rows of RawCell values.
"""

__all__ = [
    "SheetReadError",
    "read_table",
    "sheet_type_for",
    "header_row_for",
    "table_from_frame",
    "to_raw_cell",
]


class SheetReadError(Exception):
    """Raised when a workbook cannot be opened or parsed."""


def sheet_type_for(sheet_name: str) -> str:
    lowered = sheet_name.lower()
    if "pipeline" in lowered:
        return "pipeline"
    if "program" in lowered and "vacation" not in lowered:
        return "program"
    if "vacation" in lowered:
        return "vacation"
    return "default"


def header_row_for(sheet_name: str) -> int:
    """1-based header row for a sheet, by sheet type."""
    sheet_type = sheet_type_for(sheet_name)
    if sheet_type == "pipeline":
        return 11
    if sheet_type == "program":
        return 3
    return 1


def to_raw_cell(value: Any) -> RawCell:
    """Convert one pandas cell value into a RawCell."""
    if value is None or value is pd.NaT:
        return RawCell.empty()
    if isinstance(value, np.datetime64):
        value = pd.Timestamp(value)
    if isinstance(value, (bool, np.bool_)):
        return RawCell.boolean(bool(value))
    if isinstance(value, (pd.Timestamp, datetime)):
        if pd.isna(value):
            return RawCell.empty()
        return RawCell.timestamp(pd.Timestamp(value).to_pydatetime())
    if isinstance(value, date):
        return RawCell.timestamp(datetime(value.year, value.month, value.day))
    if isinstance(value, (int, np.integer)):
        return RawCell.integer(int(value))
    if isinstance(value, (float, np.floating)):
        as_float = float(value)
        if math.isnan(as_float):
            return RawCell.empty()
        return RawCell.number(as_float)
    text = str(value)
    if text.strip() == "":
        return RawCell.empty()
    return RawCell.text(text)


def _header_text(cell: RawCell) -> str:
    if cell.is_empty:
        return ""
    value = cell.value
    if isinstance(value, float) and value == int(value):
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value).strip()


def read_table(path: Path | str, sheet_names: Iterable[str] | None = None) -> list[SheetTable]:
    """Read a workbook returning one SheetTable per sheet.

    Parameters
    ----------
    path: workbook path (.xlsx / .xlsm)
    sheet_names: restrict to these sheets (None reads every sheet)
    """
    path = Path(path)
    wanted = set(sheet_names) if sheet_names is not None else None
    try:
        xls = pd.ExcelFile(path)
    except Exception as e:
        raise SheetReadError(f"cannot open workbook {path}: {e}") from e

    tables: list[SheetTable] = []
    with xls:
        for name in xls.sheet_names:
            sheet_name = str(name)
            if wanted is not None and sheet_name not in wanted:
                continue
            try:
                df = xls.parse(name, header=None)
            except Exception as e:
                raise SheetReadError(f"cannot parse sheet '{sheet_name}' in {path.name}: {e}") from e
            tables.append(table_from_frame(df, sheet_name, source_file=path.name))
    return tables


def table_from_frame(df: pd.DataFrame, sheet_name: str, source_file: str | None = None) -> SheetTable:
    """Build a SheetTable from a header-less DataFrame."""
    header_row = header_row_for(sheet_name)
    header_idx = header_row - 1
    raw_rows = [[to_raw_cell(v) for v in row] for row in df.itertuples(index=False, name=None)]
    if len(raw_rows) > header_idx:
        headers = [_header_text(c) for c in raw_rows[header_idx]]
        data_rows = raw_rows[header_idx + 1:]
    else:
        headers = []
        data_rows = []
    return SheetTable(
        sheet_name=sheet_name,
        headers=headers,
        rows=data_rows,
        header_row=header_row,
        source_file=source_file,
        sheet_type=sheet_type_for(sheet_name),
    )
