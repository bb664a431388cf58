from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

"""Column resolution: logical field name -> physical column index.

Header wording drifts between versions of the same workbook, so resolution is
an ordered strategy shared by every consumer:

1. case-insensitive exact match (whitespace trimmed)
2. case-insensitive substring containment (field inside header)
3. static per-sheet-type fallback column letter

Ties resolve to the first matching header in document order. A field that
cannot be resolved yields None, which callers treat as "field absent".
"""

__all__ = [
    "DEFAULT_FALLBACKS",
    "ColumnMap",
    "ColumnResolver",
    "column_index",
]

# Known column letters per sheet type (PT / AE / P workbooks).
DEFAULT_FALLBACKS: dict[str, dict[str, str]] = {
    "transactions": {
        "Project": "A",
        "Activity Seq": "E",
        "Project Description": "H",
        "Activity Description": "L",
        "Internal Quantity": "S",
        "Total Internal Price": "Y",
        "Sales Amount": "AH",
    },
    "estimates": {
        "Project ID": "B",
        "Project Name": "C",
        "Activity Description": "G",
        "Estimated Cost": "K",
        "Estimated Revenue": "L",
        "Estimated Hours": "M",
        "Activity Seq": "S",
    },
    "projects": {
        "Project ID": "A",
        "Project Name": "B",
        "Status": "C",
        "Budget": "D",
    },
}


def column_index(letter: str) -> int:
    """Convert a spreadsheet column letter to a 0-based index (A -> 0, AH -> 33)."""
    letters = letter.strip().upper()
    if not letters or not letters.isalpha():
        raise ValueError(f"invalid column letter: {letter!r}")
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


@dataclass(frozen=True)
class ColumnMap:
    """Resolved indices for one sheet (logical field -> index)."""
    indices: dict[str, int]
    unresolved: list[str] = field(default_factory=list)
    header_row: int = 1

    def index_of(self, name: str) -> int | None:
        return self.indices.get(name)


class ColumnResolver:
    """Ordered header matcher with per-sheet-type fallbacks."""

    def __init__(self, fallbacks: Mapping[str, Mapping[str, str]] | None = None) -> None:
        merged: dict[str, dict[str, str]] = {k: dict(v) for k, v in DEFAULT_FALLBACKS.items()}
        for sheet_type, mapping in (fallbacks or {}).items():
            merged.setdefault(sheet_type, {}).update(mapping)
        self._fallbacks = merged

    def fallback_letter(self, sheet_type: str | None, logical_field: str) -> str | None:
        if sheet_type is None:
            return None
        table = self._fallbacks.get(sheet_type, {})
        if logical_field in table:
            return table[logical_field]
        wanted = logical_field.strip().lower()
        for name, letter in table.items():
            if name.lower() == wanted:
                return letter
        return None

    def resolve(
        self,
        headers: Sequence[str],
        logical_field: str,
        sheet_type: str | None = None,
    ) -> int | None:
        wanted = logical_field.strip().lower()
        if not wanted:
            return None
        normalized = [str(h).strip().lower() if h is not None else "" for h in headers]

        for i, header in enumerate(normalized):
            if header == wanted:
                return i
        for i, header in enumerate(normalized):
            if header and wanted in header:
                return i

        letter = self.fallback_letter(sheet_type, logical_field)
        if letter is None:
            return None
        try:
            index = column_index(letter)
        except ValueError:
            return None
        if index >= len(headers):
            return None
        return index

    def resolve_schema(
        self,
        headers: Sequence[str],
        fields: Mapping[str, str],
        sheet_type: str | None = None,
        header_row: int = 1,
    ) -> ColumnMap:
        """Resolve many fields at once.

        ``fields`` maps logical field name -> header text to look for.
        """
        indices: dict[str, int] = {}
        unresolved: list[str] = []
        for name, header_text in fields.items():
            idx = self.resolve(headers, header_text, sheet_type)
            if idx is None:
                unresolved.append(name)
            else:
                indices[name] = idx
        return ColumnMap(indices=indices, unresolved=unresolved, header_row=header_row)
