from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

"""RawCell tagged union produced by the spreadsheet reader.

Every cell coming out of a workbook is one of a closed set of variants
(text / number / integer / boolean / datetime / empty). The variant is carried
explicitly in ``kind`` so consumers dispatch on it instead of probing values.
"""

__all__ = [
    "CellKind",
    "RawCell",
]


class CellKind(Enum):
    """Variant tag for RawCell."""
    TEXT = "text"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    EMPTY = "empty"


@dataclass(frozen=True)
class RawCell:
    """A single decoded spreadsheet cell.

    Use the constructor classmethods rather than building instances directly so
    the value type always matches the tag.
    """
    kind: CellKind
    value: Any = None  # str | float | int | bool | datetime | None (EMPTY)

    @classmethod
    def text(cls, value: str) -> RawCell:
        return cls(CellKind.TEXT, str(value))

    @classmethod
    def number(cls, value: float) -> RawCell:
        return cls(CellKind.NUMBER, float(value))

    @classmethod
    def integer(cls, value: int) -> RawCell:
        return cls(CellKind.INTEGER, int(value))

    @classmethod
    def boolean(cls, value: bool) -> RawCell:
        return cls(CellKind.BOOLEAN, bool(value))

    @classmethod
    def timestamp(cls, value: datetime) -> RawCell:
        return cls(CellKind.DATETIME, value)

    @classmethod
    def empty(cls) -> RawCell:
        return cls(CellKind.EMPTY, None)

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY
