from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..excel.columns import ColumnMap, ColumnResolver
from ..excel.normalizer import as_date, as_number, as_text, normalize_key
from ..excel.schemas import FieldKind, FieldSchema
from ..models.config_models import ExclusionRules
from ..models.raw_cell import RawCell
from ..models.row_data import NormalizedRecord
from ..models.sheet_table import SheetTable

"""Table ingestion: SheetTable -> ordered NormalizedRecords.

Pure function over its inputs. Structural junk is filtered here:

- header echoes (row 0 whose first cell is a sentinel such as "Invoiced",
  or any row whose key column repeats the header text)
- rows whose key fields are all empty / zero (cannot be joined)
- for the project master, rows matched by ExclusionRules
"""

logger = logging.getLogger(__name__)

DEFAULT_SENTINELS = ("Invoiced",)


@dataclass(frozen=True)
class DroppedRow:
    row_number: int
    reason: str  # SENTINEL_ROW | MISSING_KEY | EXCLUDED:<rule>


@dataclass
class IngestResult:
    records: list[NormalizedRecord]
    columns: ColumnMap
    dropped_sentinel: int = 0
    dropped_missing_key: int = 0
    excluded_by_rule: int = 0
    dropped: list[DroppedRow] = field(default_factory=list)

    @property
    def unresolved_fields(self) -> list[str]:
        return list(self.columns.unresolved)


def _empty_value(kind: FieldKind) -> Any:
    if kind is FieldKind.NUMBER:
        return 0.0
    if kind is FieldKind.DATE:
        return None
    return ""


def _convert(cell: RawCell, kind: FieldKind) -> Any:
    if kind is FieldKind.NUMBER:
        return as_number(cell)
    if kind is FieldKind.DATE:
        return as_date(cell)
    if kind is FieldKind.KEY:
        if cell.is_empty:
            return ""
        return normalize_key(cell.value if not isinstance(cell.value, str) else cell.value.strip())
    return as_text(cell)


def _is_blank_row(row: list[RawCell]) -> bool:
    return all(c.is_empty for c in row)


def ingest(
    table: SheetTable,
    schema: FieldSchema,
    resolver: ColumnResolver,
    rules: ExclusionRules | None = None,
    sentinels: Iterable[str] = DEFAULT_SENTINELS,
) -> IngestResult:
    """Normalize every usable row of ``table`` according to ``schema``.

    Parameters
    ----------
    table: loaded sheet
    schema: field definitions for the sheet's role
    resolver: shared ColumnResolver (fallback letters per sheet type)
    rules: project-master exclusion rules (None disables business filtering)
    sentinels: first-cell values marking a duplicated header row
    """
    columns = resolver.resolve_schema(
        table.headers, schema.headers(), schema.sheet_type, header_row=table.header_row
    )
    if columns.unresolved:
        logger.debug(
            "sheet=%s unresolved fields=%s (treated as absent)", table.sheet_name, columns.unresolved
        )
    sentinel_set = {s.strip().lower() for s in sentinels}
    key_headers = {
        name: (table.headers[idx].strip().lower() if idx < len(table.headers) else "")
        for name, idx in columns.indices.items()
        if name in schema.key_fields
    }

    result = IngestResult(records=[], columns=columns)
    for index, row in enumerate(table.rows):
        row_number = table.spreadsheet_row(index)
        if not row or _is_blank_row(row):
            continue
        if index == 0 and as_text(row[0]).lower() in sentinel_set:
            result.dropped_sentinel += 1
            result.dropped.append(DroppedRow(row_number, "SENTINEL_ROW"))
            continue

        values: dict[str, Any] = {}
        for spec in schema.fields:
            idx = columns.index_of(spec.name)
            if idx is None or idx >= len(row):
                values[spec.name] = _empty_value(spec.kind)
            else:
                values[spec.name] = _convert(row[idx], spec.kind)

        if _is_header_echo(values, key_headers):
            result.dropped_sentinel += 1
            result.dropped.append(DroppedRow(row_number, "SENTINEL_ROW"))
            continue
        if not any(values.get(k) for k in schema.key_fields):
            result.dropped_missing_key += 1
            result.dropped.append(DroppedRow(row_number, "MISSING_KEY"))
            continue
        if rules is not None:
            reason = rules.reason(
                str(values.get("project_id", "")),
                str(values.get("name", "")),
                str(values.get("status", "")),
            )
            if reason is not None:
                result.excluded_by_rule += 1
                result.dropped.append(DroppedRow(row_number, f"EXCLUDED:{reason}"))
                continue
        result.records.append(NormalizedRecord(row_number=row_number, values=values))

    logger.debug(
        "sheet=%s records=%d sentinel=%d missing_key=%d excluded=%d",
        table.sheet_name,
        len(result.records),
        result.dropped_sentinel,
        result.dropped_missing_key,
        result.excluded_by_rule,
    )
    return result


def _is_header_echo(values: dict[str, Any], key_headers: dict[str, str]) -> bool:
    for name, header in key_headers.items():
        value = values.get(name)
        if header and isinstance(value, str) and value.strip().lower() == header:
            return True
    return False
