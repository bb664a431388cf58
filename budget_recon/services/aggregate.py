from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime

from ..models.project import (
    UNBOUNDED_UTILIZATION,
    Activity,
    EmployeeActivityWork,
    EmployeeProjectWork,
    EmployeeWork,
    Project,
)

"""Aggregation engine: derive activity, project and employee metrics.

``aggregate`` refolds every figure from the transaction lists, so calling it
twice on the same project yields the same result and transaction order never
changes the totals. Values are kept unrounded; ``display_round`` is applied
only when presenting.
"""

__all__ = [
    "REVENUE_TE",
    "REVENUE_FIXED",
    "REVENUE_OTHER",
    "classify_revenue",
    "utilization",
    "aggregate",
    "aggregate_all",
    "build_employee_index",
    "project_status",
]

REVENUE_TE = "T&E"
REVENUE_FIXED = "Fixed"
REVENUE_OTHER = "Other"

_TE_PATTERN = re.compile(r"t&e|time|expense|hourly|consulting", re.IGNORECASE)
_FIXED_PATTERN = re.compile(r"fixed|milestone|deliverable|product", re.IGNORECASE)

TE_SEQ_RANGE = (100000, 200000)
FIXED_SEQ_RANGE = (200000, 300000)

COMPLETED_RATIO = 0.9


def classify_revenue(description: str, activity_seq: str) -> str:
    """Classify an activity as T&E, Fixed or Other.

    Description keywords are checked first; a numeric Activity Seq inside a
    known range overrides the keyword result.

    Args:
        description: Activity description text.
        activity_seq: Activity Seq as normalized key text, possibly empty.

    Returns:
        One of ``REVENUE_TE``, ``REVENUE_FIXED`` or ``REVENUE_OTHER``.
    """
    kind = REVENUE_OTHER
    text = description or ""
    if _TE_PATTERN.search(text):
        kind = REVENUE_TE
    elif _FIXED_PATTERN.search(text):
        kind = REVENUE_FIXED

    try:
        seq = int(float(activity_seq)) if activity_seq else None
    except ValueError:
        seq = None
    if seq is not None:
        if TE_SEQ_RANGE[0] <= seq < TE_SEQ_RANGE[1]:
            kind = REVENUE_TE
        elif FIXED_SEQ_RANGE[0] <= seq < FIXED_SEQ_RANGE[1]:
            kind = REVENUE_FIXED
    return kind


def utilization(actual: float, budget: float) -> float | str:
    """Percentage of ``budget`` consumed by ``actual``.

    Args:
        actual: Spent cost or hours.
        budget: Budgeted cost or hours.

    Returns:
        ``actual / budget * 100`` when the budget is positive. With no budget,
        ``UNBOUNDED_UTILIZATION`` if anything was spent, otherwise 0.0.
    """
    if budget > 0:
        return actual / budget * 100
    if actual > 0:
        return UNBOUNDED_UTILIZATION
    return 0.0


def project_status(margin: float, actual_spent: float, budget: float) -> str:
    """on-hold when over budget, completed past 90% spent, else active."""
    if margin < 0:
        return "on-hold"
    if budget > 0 and actual_spent / budget > COMPLETED_RATIO:
        return "completed"
    return "active"


def _extend_range(
    current: tuple[datetime | None, datetime | None], value: datetime | None
) -> tuple[datetime | None, datetime | None]:
    start, end = current
    if value is None:
        return current
    if start is None or value < start:
        start = value
    if end is None or value > end:
        end = value
    return start, end


def _aggregate_activity(activity: Activity) -> None:
    activity.actual_hours = 0.0
    activity.actual_cost = 0.0
    activity.actual_revenue = 0.0
    activity.employees = {}
    span: tuple[datetime | None, datetime | None] = (None, None)

    for txn in activity.transactions:
        activity.actual_hours += txn.hours
        activity.actual_cost += txn.internal_cost
        activity.actual_revenue += txn.sales_revenue
        span = _extend_range(span, txn.date)
        if txn.employee_id:
            emp = activity.employees.get(txn.employee_id)
            if emp is None:
                emp = EmployeeActivityWork(id=txn.employee_id, name=txn.employee_name)
                activity.employees[txn.employee_id] = emp
            emp.hours += txn.hours
            emp.cost += txn.internal_cost
            emp.transaction_count += 1

    activity.start_date, activity.end_date = span
    activity.remaining = activity.budget_cost - activity.actual_cost
    activity.utilization = utilization(activity.actual_cost, activity.budget_cost)
    activity.hours_utilization = utilization(activity.actual_hours, activity.budget_hours)
    activity.revenue_type = classify_revenue(activity.description, activity.activity_seq)


def aggregate(project: Project) -> Project:
    """Recompute every derived figure of ``project`` in place.

    Activity totals, employee breakdowns and date spans are rebuilt from the
    transactions, so calling this twice gives the same result.

    Args:
        project: A joined project whose activities carry their transactions.

    Returns:
        The same ``project``, for chaining.
    """
    project.actual_spent = 0.0
    project.actual_hours = 0.0
    project.actual_revenue = 0.0
    project.te_revenue = 0.0
    project.fixed_revenue = 0.0
    project.transaction_count = 0
    project.employees = {}
    span: tuple[datetime | None, datetime | None] = (None, None)

    for activity in project.activities:
        _aggregate_activity(activity)
        project.actual_spent += activity.actual_cost
        project.actual_hours += activity.actual_hours
        project.actual_revenue += activity.actual_revenue
        project.transaction_count += len(activity.transactions)
        if activity.revenue_type == REVENUE_TE:
            project.te_revenue += activity.actual_revenue
        elif activity.revenue_type == REVENUE_FIXED:
            project.fixed_revenue += activity.actual_revenue
        span = _extend_range(span, activity.start_date)
        span = _extend_range(span, activity.end_date)

        for emp_id, work in activity.employees.items():
            emp = project.employees.get(emp_id)
            if emp is None:
                emp = EmployeeProjectWork(id=emp_id, name=work.name)
                project.employees[emp_id] = emp
            emp.total_hours += work.hours
            emp.total_cost += work.cost
            if activity.display_name not in emp.activities:
                emp.activities.append(activity.display_name)

    project.start_date, project.end_date = span
    project.margin = project.budget - project.actual_spent
    project.status = project_status(project.margin, project.actual_spent, project.budget)
    return project


def aggregate_all(projects: Iterable[Project]) -> None:
    for project in projects:
        aggregate(project)


def build_employee_index(projects: Iterable[Project]) -> dict[str, EmployeeWork]:
    """Cross-project employee totals, keyed by employee id.

    Args:
        projects: Aggregated projects.

    Returns:
        One ``EmployeeWork`` per employee, listing project ids in first-seen order.
    """
    index: dict[str, EmployeeWork] = {}
    for project in projects:
        for emp_id, work in project.employees.items():
            emp = index.get(emp_id)
            if emp is None:
                emp = EmployeeWork(id=emp_id, name=work.name)
                index[emp_id] = emp
            emp.total_hours += work.total_hours
            emp.total_cost += work.total_cost
            if project.id not in emp.projects:
                emp.projects.append(project.id)
    return index
