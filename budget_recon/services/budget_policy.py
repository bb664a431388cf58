from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ..models.project import Activity, Project

"""Budget allocation policies for activities without an estimate row.

The project master carries one budget per project while estimates are per
activity. When an activity has no estimate its budget is filled by a named
policy. ``even_split`` reproduces the dashboard behaviour: the project budget
divided by the number of activities in the project.

NOTE: even_split counts every activity, including ones that do have an
estimate, so projects with partial estimates report inflated totals. Kept as
the default for parity with existing reports pending product clarification.
"""

__all__ = [
    "BudgetAllocation",
    "BudgetPolicy",
    "even_split",
    "no_allocation",
    "get_budget_policy",
    "POLICIES",
]


@dataclass(frozen=True)
class BudgetAllocation:
    hours: float = 0.0
    cost: float = 0.0
    revenue: float = 0.0


BudgetPolicy = Callable[[Project, Activity], BudgetAllocation]


def even_split(project: Project, activity: Activity) -> BudgetAllocation:
    count = len(project.activities) or 1
    return BudgetAllocation(cost=project.budget / count)


def no_allocation(project: Project, activity: Activity) -> BudgetAllocation:
    return BudgetAllocation()


POLICIES: dict[str, BudgetPolicy] = {
    "even_split": even_split,
    "none": no_allocation,
}


def get_budget_policy(name: str) -> BudgetPolicy:
    try:
        return POLICIES[name]
    except KeyError:
        raise ValueError(f"unknown budget policy: {name!r} (known: {sorted(POLICIES)})") from None
