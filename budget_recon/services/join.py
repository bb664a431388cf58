from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..models.project import Activity, Project, Transaction
from ..models.row_data import NormalizedRecord
from .aggregate import classify_revenue
from .budget_policy import BudgetPolicy, even_split

"""Join engine: correlate transactions, estimates and the project master.

1. projects map keyed by project id (first row wins on duplicates)
2. stream transactions into activities keyed by
   ``<project>:<activity seq|main>:<sub project|main>``; the first transaction
   of a key sets descriptive fields, every transaction lands in exactly one
   activity, unknown project ids are counted and dropped
3. left-join activities to estimates on Activity Seq (falling back to the
   project id when the activity has no seq); last estimate row wins;
   estimates never create activities
4. activities without an estimate get their budget from the budget policy
"""

__all__ = [
    "JoinEngine",
    "JoinResult",
    "activity_key",
    "estimate_key",
]

logger = logging.getLogger(__name__)

MAIN = "main"


@dataclass
class JoinResult:
    projects: dict[str, Project]
    activities: list[Activity] = field(default_factory=list)
    unknown_project_count: int = 0
    matched_estimates: int = 0
    policy_allocations: int = 0


def activity_key(project_id: str, activity_seq: str, sub_project: str) -> str:
    return f"{project_id}:{activity_seq or MAIN}:{sub_project or MAIN}"


def estimate_key(activity_seq: str, project_id: str) -> str:
    """Join key: Activity Seq, falling back to the project id."""
    if activity_seq:
        return activity_seq
    return f"project:{project_id}"


class JoinEngine:
    def __init__(self, budget_policy: BudgetPolicy = even_split) -> None:
        self.budget_policy = budget_policy

    def join_projects(self, records: Iterable[NormalizedRecord]) -> dict[str, Project]:
        """Index project master rows by id; the first row for an id wins."""
        projects: dict[str, Project] = {}
        for rec in records:
            project_id = rec.text("project_id")
            if not project_id or project_id in projects:
                continue
            budget = rec.number("budget")
            projects[project_id] = Project(
                id=project_id,
                name=rec.text("name") or project_id,
                customer=rec.text("customer") or "Unknown",
                description=rec.text("description"),
                source_status=rec.text("status"),
                budget=budget,
                margin=budget,
            )
        return projects

    def join(
        self,
        transactions: Iterable[NormalizedRecord],
        estimates: Iterable[NormalizedRecord],
        projects: Iterable[NormalizedRecord],
    ) -> JoinResult:
        """Assemble projects, activities and transactions from normalized rows.

        Transactions are grouped into activities by project, Activity Seq and
        sub-project. Transactions whose project id is not in ``projects`` are
        counted and dropped. Each activity then takes its budget from the
        matching estimate row, or from the budget policy when none matches.

        Args:
            transactions: Normalized transaction rows.
            estimates: Normalized estimate rows.
            projects: Normalized project master rows.

        Returns:
            A JoinResult with the joined projects and the join counters.
        """
        result = JoinResult(projects=self.join_projects(projects))
        by_key: dict[str, Activity] = {}

        for rec in transactions:
            project_id = rec.text("project_id")
            project = result.projects.get(project_id)
            if project is None:
                result.unknown_project_count += 1
                continue
            activity_seq = rec.text("activity_seq")
            sub_project = rec.text("sub_project")
            key = activity_key(project_id, activity_seq, sub_project)
            activity = by_key.get(key)
            if activity is None:
                activity = Activity(
                    id=key,
                    project_id=project_id,
                    activity_seq=activity_seq,
                    sub_project=sub_project,
                    description=rec.text("activity_description"),
                    sub_project_description=rec.text("sub_project_description"),
                    activity_short_name=rec.text("activity_short_name"),
                )
                activity.revenue_type = classify_revenue(activity.description, activity_seq)
                by_key[key] = activity
                project.activities.append(activity)
                result.activities.append(activity)

            txn = Transaction(
                date=rec.get("date"),
                employee_id=rec.text("employee_id"),
                employee_name=rec.text("employee_name"),
                hours=rec.number("hours"),
                internal_cost=rec.number("internal_cost"),
                sales_revenue=rec.number("sales_revenue"),
                invoice_status=rec.text("invoice_status"),
                invoiceable=rec.text("invoiceable"),
                revenue_type=activity.revenue_type,
            )
            activity.transactions.append(txn)
            activity.actual_hours += txn.hours
            activity.actual_cost += txn.internal_cost
            activity.actual_revenue += txn.sales_revenue

        if result.unknown_project_count:
            logger.info(
                "dropped %d transactions with unknown project id", result.unknown_project_count
            )

        self._apply_estimates(result, estimates)
        return result

    def _apply_estimates(self, result: JoinResult, estimates: Iterable[NormalizedRecord]) -> None:
        index: dict[str, NormalizedRecord] = {}
        for rec in estimates:
            # overwrite: last row for a key wins
            index[estimate_key(rec.text("activity_seq"), rec.text("project_id"))] = rec

        for activity in result.activities:
            est = index.get(estimate_key(activity.activity_seq, activity.project_id))
            if est is not None:
                activity.budget_hours = est.number("budget_hours")
                activity.budget_cost = est.number("budget_cost")
                activity.budget_revenue = est.number("budget_revenue")
                activity.has_estimate = True
                if not activity.description:
                    activity.description = est.text("activity_description")
                result.matched_estimates += 1
                continue
            project = result.projects[activity.project_id]
            allocation = self.budget_policy(project, activity)
            activity.budget_hours = allocation.hours
            activity.budget_cost = allocation.cost
            activity.budget_revenue = allocation.revenue
            activity.has_estimate = False
            result.policy_allocations += 1
