from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

"""Reconciled domain graph: Project -> Activity -> Transaction / employees.

Projects and activities are mutable while the join and aggregation steps run;
once a ReconciliationResult is returned they are shared read-only with
consumers. Transactions are immutable from creation.
"""

__all__ = [
    "UNBOUNDED_UTILIZATION",
    "Transaction",
    "EmployeeActivityWork",
    "EmployeeProjectWork",
    "EmployeeWork",
    "Activity",
    "Project",
]

# Reported instead of a ratio when budget is 0 but money/hours were spent.
UNBOUNDED_UTILIZATION = "∞"


@dataclass(frozen=True)
class Transaction:
    """One time/cost booking from the transactions workbook."""
    date: datetime | None
    employee_id: str
    employee_name: str
    hours: float
    internal_cost: float
    sales_revenue: float
    invoice_status: str = ""
    invoiceable: str = ""
    revenue_type: str = "Other"  # T&E | Fixed | Other


@dataclass
class EmployeeActivityWork:
    id: str
    name: str
    hours: float = 0.0
    cost: float = 0.0
    transaction_count: int = 0


@dataclass
class EmployeeProjectWork:
    id: str
    name: str
    total_hours: float = 0.0
    total_cost: float = 0.0
    activities: list[str] = field(default_factory=list)  # deduplicated, first-seen order


@dataclass
class EmployeeWork:
    """Employee totals across every reconciled project."""
    id: str
    name: str
    total_hours: float = 0.0
    total_cost: float = 0.0
    projects: list[str] = field(default_factory=list)


@dataclass
class Activity:
    """A (project, activity seq, sub project) bucket of transactions.

    ``actual_*`` always equal the sums over ``transactions``; budget fields
    come from the estimates workbook or from the configured budget policy.
    """
    id: str
    project_id: str
    activity_seq: str
    sub_project: str = ""
    description: str = ""
    sub_project_description: str = ""
    activity_short_name: str = ""
    budget_hours: float = 0.0
    budget_cost: float = 0.0
    budget_revenue: float = 0.0
    actual_hours: float = 0.0
    actual_cost: float = 0.0
    actual_revenue: float = 0.0
    has_estimate: bool = False
    remaining: float = 0.0
    utilization: float | str = 0.0
    hours_utilization: float | str = 0.0
    revenue_type: str = "Other"
    start_date: datetime | None = None
    end_date: datetime | None = None
    employees: dict[str, EmployeeActivityWork] = field(default_factory=dict)
    transactions: list[Transaction] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.description or self.activity_short_name or self.activity_seq or self.id


@dataclass
class Project:
    id: str
    name: str
    customer: str = "Unknown"
    description: str = ""
    source_status: str = ""  # status text as found in the project master
    budget: float = 0.0
    actual_spent: float = 0.0
    actual_hours: float = 0.0
    actual_revenue: float = 0.0
    te_revenue: float = 0.0
    fixed_revenue: float = 0.0
    transaction_count: int = 0
    margin: float = 0.0
    status: str = "active"  # active | completed | on-hold
    activities: list[Activity] = field(default_factory=list)
    employees: dict[str, EmployeeProjectWork] = field(default_factory=dict)
    start_date: datetime | None = None
    end_date: datetime | None = None
