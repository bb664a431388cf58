from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from .project import EmployeeWork, Project

if TYPE_CHECKING:
    from .sheet_table import SheetTable

"""Result models for a reconciliation run.

Diagnostics collects the recoverable conditions (dropped rows, missing
columns, unknown projects, missing sheets) that are absorbed locally instead
of being raised.
"""

STATUS_COMPLETE = "complete"


@dataclass
class Diagnostics:
    rows_read: int = 0
    rows_dropped_sentinel: int = 0
    rows_dropped_missing_key: int = 0
    rows_excluded_by_rule: int = 0
    transactions_unknown_project: int = 0
    unresolved_columns: dict[str, list[str]] = field(default_factory=dict)  # source -> fields
    missing_sources: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def dropped_rows(self) -> int:
        return self.rows_dropped_sentinel + self.rows_dropped_missing_key


@dataclass
class ReconciliationResult:
    """Output of ReconciliationPipeline.reconcile()."""
    projects: dict[str, Project]
    employees: dict[str, EmployeeWork]
    diagnostics: Diagnostics
    status: str  # "complete" or "partial: missing <sources>"
    cache_status: str  # hit | miss | stored | write_failed | disabled | skipped_partial
    started_at: datetime
    finished_at: datetime
    elapsed_seconds: float
    tables: dict[str, SheetTable | None] = field(default_factory=dict)  # kept for inspection

    @property
    def is_partial(self) -> bool:
        return self.status != STATUS_COMPLETE

    @property
    def activity_count(self) -> int:
        return sum(len(p.activities) for p in self.projects.values())

    @property
    def transaction_count(self) -> int:
        return sum(p.transaction_count for p in self.projects.values())


@dataclass(frozen=True)
class BudgetAlert:
    """An activity whose spend or hours crossed the alert threshold."""
    activity_id: str
    activity_seq: str
    project_id: str
    description: str
    budget_cost: float
    actual_cost: float
    budget_hours: float
    actual_hours: float
    cost_usage_percent: float
    hours_usage_percent: float
    variance: float  # actual_cost - budget_cost
    severity: str  # critical | warning | attention
