from __future__ import annotations

from collections.abc import Iterable

from ..models.processing_result import BudgetAlert
from ..models.project import Project

"""Budget alerts for activities whose spend or hours near their estimate."""

__all__ = [
    "DEFAULT_THRESHOLD",
    "SORT_KEYS",
    "severity_for",
    "build_budget_alerts",
]

DEFAULT_THRESHOLD = 80.0


def _usage(actual: float, budget: float) -> float:
    return actual / budget * 100 if budget > 0 else 0.0


def severity_for(usage: float) -> str:
    if usage >= 100:
        return "critical"
    if usage >= 90:
        return "warning"
    return "attention"


SORT_KEYS = {
    "usage": lambda a: a.cost_usage_percent,
    "variance": lambda a: a.variance,
    "cost": lambda a: a.actual_cost,
}


def build_budget_alerts(
    projects: Iterable[Project],
    threshold: float = DEFAULT_THRESHOLD,
    sort_by: str = "usage",
) -> list[BudgetAlert]:
    """Alerts for estimated activities at or above ``threshold`` percent usage.

    Only activities with an estimate row are considered. Results are sorted
    descending by ``sort_by`` (usage | variance | cost).
    """
    if sort_by not in SORT_KEYS:
        raise ValueError(f"unknown sort key: {sort_by!r}")
    alerts: list[BudgetAlert] = []
    for project in projects:
        for activity in project.activities:
            if not activity.has_estimate:
                continue
            cost_usage = _usage(activity.actual_cost, activity.budget_cost)
            hours_usage = _usage(activity.actual_hours, activity.budget_hours)
            if cost_usage < threshold and hours_usage < threshold:
                continue
            alerts.append(
                BudgetAlert(
                    activity_id=activity.id,
                    activity_seq=activity.activity_seq,
                    project_id=project.id,
                    description=activity.display_name,
                    budget_cost=activity.budget_cost,
                    actual_cost=activity.actual_cost,
                    budget_hours=activity.budget_hours,
                    actual_hours=activity.actual_hours,
                    cost_usage_percent=cost_usage,
                    hours_usage_percent=hours_usage,
                    variance=activity.actual_cost - activity.budget_cost,
                    severity=severity_for(max(cost_usage, hours_usage)),
                )
            )
    alerts.sort(key=SORT_KEYS[sort_by], reverse=True)
    return alerts
