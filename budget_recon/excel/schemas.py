from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Field schemas for the three source workbooks.

A FieldSchema names the logical fields the pipeline needs from one sheet
type, the header text each is looked up by, how its cells are normalized and
which fields form the row key.
"""

__all__ = [
    "FieldKind",
    "FieldSpec",
    "FieldSchema",
    "TRANSACTIONS_SCHEMA",
    "ESTIMATES_SCHEMA",
    "PROJECTS_SCHEMA",
    "SCHEMAS",
]


class FieldKind(Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    KEY = "key"  # text canonicalised for joining (100.0 -> "100")


@dataclass(frozen=True)
class FieldSpec:
    name: str  # logical field name used in NormalizedRecord.values
    header: str  # header text matched by ColumnResolver
    kind: FieldKind = FieldKind.TEXT


@dataclass(frozen=True)
class FieldSchema:
    sheet_type: str  # transactions | estimates | projects
    fields: tuple[FieldSpec, ...]
    key_fields: tuple[str, ...]  # row dropped when all of these are empty

    def headers(self) -> dict[str, str]:
        return {f.name: f.header for f in self.fields}

    def spec(self, name: str) -> FieldSpec | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


TRANSACTIONS_SCHEMA = FieldSchema(
    sheet_type="transactions",
    fields=(
        FieldSpec("project_id", "Project", FieldKind.KEY),
        FieldSpec("activity_seq", "Activity Seq", FieldKind.KEY),
        FieldSpec("project_description", "Project Description"),
        FieldSpec("sub_project", "Sub Project", FieldKind.KEY),
        FieldSpec("sub_project_description", "Sub Project Description"),
        FieldSpec("activity_short_name", "Activity Short Name"),
        FieldSpec("activity_description", "Activity Description"),
        FieldSpec("employee_id", "Employee", FieldKind.KEY),
        FieldSpec("employee_name", "Employee Description"),
        FieldSpec("date", "Account Date", FieldKind.DATE),
        FieldSpec("hours", "Internal Quantity", FieldKind.NUMBER),
        FieldSpec("internal_cost", "Total Internal Price", FieldKind.NUMBER),
        FieldSpec("sales_revenue", "Sales Amount", FieldKind.NUMBER),
        FieldSpec("invoice_status", "Invoice Status"),
        FieldSpec("invoiceable", "Invoicability"),
        FieldSpec("customer", "Customer Name"),
    ),
    key_fields=("project_id",),
)

ESTIMATES_SCHEMA = FieldSchema(
    sheet_type="estimates",
    fields=(
        FieldSpec("project_id", "Project ID", FieldKind.KEY),
        FieldSpec("project_name", "Project Name"),
        FieldSpec("activity_description", "Activity Description"),
        FieldSpec("budget_cost", "Estimated Cost", FieldKind.NUMBER),
        FieldSpec("budget_revenue", "Estimated Revenue", FieldKind.NUMBER),
        FieldSpec("budget_hours", "Estimated Hours", FieldKind.NUMBER),
        FieldSpec("activity_seq", "Activity Seq", FieldKind.KEY),
    ),
    key_fields=("activity_seq", "project_id"),
)

PROJECTS_SCHEMA = FieldSchema(
    sheet_type="projects",
    fields=(
        FieldSpec("project_id", "Project ID", FieldKind.KEY),
        FieldSpec("name", "Project Name"),
        FieldSpec("status", "Status"),
        FieldSpec("budget", "Budget", FieldKind.NUMBER),
        FieldSpec("customer", "Customer"),
        FieldSpec("description", "Description"),
    ),
    key_fields=("project_id",),
)

SCHEMAS: dict[str, FieldSchema] = {
    s.sheet_type: s for s in (TRANSACTIONS_SCHEMA, ESTIMATES_SCHEMA, PROJECTS_SCHEMA)
}
