from __future__ import annotations

import pytest

from budget_recon.models.project import Activity, Project
from budget_recon.services.alerts import build_budget_alerts, severity_for


def activity(seq: str, budget_cost: float, actual_cost: float, budget_hours: float = 0.0, actual_hours: float = 0.0, has_estimate: bool = True) -> Activity:
    return Activity(
        id=f"P1:{seq}:main",
        project_id="P1",
        activity_seq=seq,
        description=f"Activity {seq}",
        budget_cost=budget_cost,
        actual_cost=actual_cost,
        budget_hours=budget_hours,
        actual_hours=actual_hours,
        has_estimate=has_estimate,
    )


@pytest.fixture()
def projects() -> list[Project]:
    p = Project(id="P1", name="Alpha", budget=1000.0)
    p.activities = [
        activity("1", 100.0, 85.0),  # 85% attention
        activity("2", 100.0, 120.0),  # 120% critical
        activity("3", 100.0, 92.0),  # 92% warning
        activity("4", 100.0, 10.0, budget_hours=10.0, actual_hours=9.5),  # hours 95%
        activity("5", 100.0, 50.0),  # below threshold
        activity("6", 10.0, 500.0, has_estimate=False),  # policy budget: ignored
        activity("7", 0.0, 50.0),  # zero budget: usage 0
    ]
    return [p]


def test_alerts_threshold_and_severity(projects):
    alerts = build_budget_alerts(projects)
    assert [a.activity_seq for a in alerts] == ["2", "3", "1", "4"]
    assert [a.severity for a in alerts] == ["critical", "warning", "attention", "warning"]
    assert alerts[0].variance == 20.0
    assert alerts[0].description == "Activity 2"


def test_alerts_custom_threshold(projects):
    alerts = build_budget_alerts(projects, threshold=100)
    assert [a.activity_seq for a in alerts] == ["2"]


def test_alerts_sort_by_variance(projects):
    alerts = build_budget_alerts(projects, sort_by="variance")
    assert [a.activity_seq for a in alerts] == ["2", "3", "1", "4"]
    alerts = build_budget_alerts(projects, sort_by="cost")
    assert alerts[0].actual_cost == 120.0


def test_alerts_unknown_sort_key(projects):
    with pytest.raises(ValueError):
        build_budget_alerts(projects, sort_by="name")


@pytest.mark.parametrize("usage,severity", [(100, "critical"), (99.9, "warning"), (90, "warning"), (80, "attention")])
def test_severity_for(usage, severity):
    assert severity_for(usage) == severity
