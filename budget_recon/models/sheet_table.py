from __future__ import annotations

from dataclasses import dataclass, field

from .raw_cell import RawCell

"""SheetTable model: one loaded spreadsheet tab.

Owned by the load step and treated as read-only afterwards. ``header_row``
records which (1-based) spreadsheet row the reader used as header so that
row numbers reported in diagnostics line up with what users see in Excel.
"""

__all__ = [
    "SheetTable",
]


@dataclass(frozen=True)
class SheetTable:
    sheet_name: str
    headers: list[str]
    rows: list[list[RawCell]]  # data rows following the header row
    header_row: int = 1  # 1-based spreadsheet row the headers came from
    source_file: str | None = None
    sheet_type: str | None = field(default=None, compare=False)

    def spreadsheet_row(self, index: int) -> int:
        """Translate a 0-based data row index to the 1-based spreadsheet row."""
        return self.header_row + 1 + index
