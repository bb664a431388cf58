from __future__ import annotations

from datetime import datetime
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from budget_recon.excel.reader import (
    SheetReadError,
    header_row_for,
    read_table,
    sheet_type_for,
    table_from_frame,
    to_raw_cell,
)
from budget_recon.models.raw_cell import CellKind


@pytest.mark.parametrize(
    "name,sheet_type,row",
    [
        ("Pipeline FY24", "pipeline", 11),
        ("Program Overview", "program", 3),
        ("Program Vacation", "vacation", 1),
        ("Sheet1", "default", 1),
    ],
)
def test_sheet_type_and_header_row(name, sheet_type, row):
    assert sheet_type_for(name) == sheet_type
    assert header_row_for(name) == row


def test_to_raw_cell_maps_pandas_values():
    assert to_raw_cell(np.nan).kind is CellKind.EMPTY
    assert to_raw_cell(pd.NaT).kind is CellKind.EMPTY
    assert to_raw_cell(None).kind is CellKind.EMPTY
    assert to_raw_cell("   ").kind is CellKind.EMPTY
    assert to_raw_cell(np.int64(5)).kind is CellKind.INTEGER
    assert to_raw_cell(np.float64(2.5)).kind is CellKind.NUMBER
    assert to_raw_cell(np.bool_(True)).kind is CellKind.BOOLEAN
    cell = to_raw_cell(pd.Timestamp("2024-01-02"))
    assert cell.kind is CellKind.DATETIME
    assert cell.value == datetime(2024, 1, 2)
    assert to_raw_cell("abc").kind is CellKind.TEXT


def test_table_from_frame_uses_program_header_row():
    df = pd.DataFrame(
        [
            ["Title", None],
            [None, None],
            ["Project", "Hours"],
            ["P1", 3],
        ]
    )
    table = table_from_frame(df, "Program Plan", source_file="x.xlsx")
    assert table.header_row == 3
    assert table.headers == ["Project", "Hours"]
    assert len(table.rows) == 1
    assert table.spreadsheet_row(0) == 4
    assert table.sheet_type == "program"


def test_table_from_frame_short_sheet_has_no_rows():
    table = table_from_frame(pd.DataFrame([["only"]]), "Pipeline")
    assert table.headers == []
    assert table.rows == []


def test_read_table_reads_every_sheet(temp_workdir: Path, workbook_writer):
    path = workbook_writer(
        temp_workdir / "data" / "book.xlsx",
        {
            "First": [["Project", "Hours"], ["P1", 2], ["P2", 3.5]],
            "Second": [["Project ID"], ["X"]],
        },
    )
    tables = read_table(path)
    assert [t.sheet_name for t in tables] == ["First", "Second"]
    first = tables[0]
    assert first.headers == ["Project", "Hours"]
    assert first.rows[0][0].value == "P1"
    assert first.rows[1][1].value == 3.5
    assert first.source_file == "book.xlsx"


def test_read_table_filters_sheets(temp_workdir: Path, workbook_writer):
    path = workbook_writer(
        temp_workdir / "data" / "book.xlsx",
        {"First": [["a"], [1]], "Second": [["b"], [2]]},
    )
    tables = read_table(path, ["Second"])
    assert [t.sheet_name for t in tables] == ["Second"]
    assert read_table(path, ["Missing"]) == []


def test_read_table_unreadable_file_raises(temp_workdir: Path):
    bad = temp_workdir / "data" / "broken.xlsx"
    bad.write_bytes(b"not a workbook")
    with pytest.raises(SheetReadError):
        read_table(bad)


def test_read_table_closes_workbook(temp_workdir: Path, workbook_writer, monkeypatch):
    path = workbook_writer(temp_workdir / "data" / "book.xlsx", {"First": [["a"], [1]]})
    closed: list[str] = []
    original_close = pd.ExcelFile.close

    def tracking_close(self):
        closed.append(str(self.io))
        original_close(self)

    monkeypatch.setattr(pd.ExcelFile, "close", tracking_close)
    read_table(path)
    assert closed == [str(path)]


def test_read_table_closes_workbook_when_sheet_fails(temp_workdir: Path, workbook_writer, monkeypatch):
    path = workbook_writer(temp_workdir / "data" / "book.xlsx", {"First": [["a"], [1]]})
    closed: list[bool] = []
    original_close = pd.ExcelFile.close

    def tracking_close(self):
        closed.append(True)
        original_close(self)

    def failing_parse(self, *args, **kwargs):
        raise ValueError("bad sheet")

    monkeypatch.setattr(pd.ExcelFile, "close", tracking_close)
    monkeypatch.setattr(pd.ExcelFile, "parse", failing_parse)
    with pytest.raises(SheetReadError, match="First"):
        read_table(path)
    assert closed == [True]
