from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""NormalizedRecord model.

A NormalizedRecord is one spreadsheet row after column resolution and cell
normalization: logical field name -> scalar. Records are transient and are
consumed straight away by the join step.
"""

__all__ = [
    "NormalizedRecord",
]


@dataclass(frozen=True)
class NormalizedRecord:
    """Logical representation of a single row after normalization."""
    row_number: int  # 1-based spreadsheet row
    values: dict[str, Any]  # logical field -> str | float | datetime | bool | None

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def text(self, name: str) -> str:
        value = self.values.get(name)
        return "" if value is None else str(value)

    def number(self, name: str) -> float:
        value = self.values.get(name)
        return value if isinstance(value, float) else 0.0
