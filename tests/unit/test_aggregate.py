from __future__ import annotations

import random
from datetime import datetime

import pytest

from budget_recon.models.project import UNBOUNDED_UTILIZATION, Activity, Project, Transaction
from budget_recon.services.aggregate import (
    aggregate,
    build_employee_index,
    classify_revenue,
    project_status,
    utilization,
)


def t(cost: float, hours: float = 1.0, emp: str = "E1", name: str = "Ann", date=None, revenue: float = 0.0):
    return Transaction(
        date=date,
        employee_id=emp,
        employee_name=name,
        hours=hours,
        internal_cost=cost,
        sales_revenue=revenue,
    )


def make_project(budget: float, *activities: Activity) -> Project:
    p = Project(id="P1", name="Alpha", budget=budget)
    p.activities.extend(activities)
    return p


def test_activity_metrics_with_estimate():
    activity = Activity(id="P1:100:main", project_id="P1", activity_seq="100", budget_cost=500.0, budget_hours=40.0)
    activity.transactions = [t(100, 8), t(150, 12)]
    aggregate(make_project(1000.0, activity))
    assert activity.actual_cost == 250
    assert activity.actual_hours == 20
    assert activity.remaining == 250
    assert activity.utilization == 50
    assert activity.hours_utilization == 50


def test_zero_budget_with_spend_is_unbounded():
    activity = Activity(id="a", project_id="P1", activity_seq="1", budget_cost=0.0)
    activity.transactions = [t(100)]
    aggregate(make_project(0.0, activity))
    assert activity.utilization == UNBOUNDED_UTILIZATION
    assert activity.hours_utilization == UNBOUNDED_UTILIZATION


def test_zero_budget_without_spend_is_zero():
    assert utilization(0.0, 0.0) == 0.0
    assert utilization(5.0, 0.0) == UNBOUNDED_UTILIZATION
    assert utilization(5.0, 10.0) == 50.0


def test_totals_do_not_depend_on_transaction_order():
    rng = random.Random(7)
    txns = [t(rng.uniform(0, 100), rng.uniform(0, 8), emp=f"E{i % 3}") for i in range(50)]
    first = Activity(id="a", project_id="P1", activity_seq="1", transactions=list(txns))
    shuffled = list(txns)
    rng.shuffle(shuffled)
    second = Activity(id="a", project_id="P1", activity_seq="1", transactions=shuffled)
    p1 = aggregate(make_project(1000.0, first))
    p2 = aggregate(make_project(1000.0, second))
    assert p1.actual_spent == pytest.approx(p2.actual_spent)
    assert p1.actual_hours == pytest.approx(p2.actual_hours)
    assert p1.actual_spent == pytest.approx(sum(x.internal_cost for x in txns))


def test_aggregate_is_idempotent():
    activity = Activity(id="a", project_id="P1", activity_seq="1", transactions=[t(10), t(20, emp="E2", name="Bob")])
    project = make_project(100.0, activity)
    aggregate(project)
    snapshot = (project.actual_spent, project.margin, dict(project.employees), activity.employees["E1"].hours)
    aggregate(project)
    assert (project.actual_spent, project.margin, dict(project.employees), activity.employees["E1"].hours) == snapshot
    assert project.transaction_count == 2


def test_margin_is_budget_minus_spent_and_dates():
    a1 = Activity(id="a1", project_id="P1", activity_seq="1", transactions=[t(40, date=datetime(2024, 3, 1))])
    a2 = Activity(
        id="a2",
        project_id="P1",
        activity_seq="2",
        transactions=[t(10, date=datetime(2024, 1, 5)), t(5, date=None)],
    )
    project = aggregate(make_project(100.0, a1, a2))
    assert project.margin == project.budget - project.actual_spent == 45
    assert project.start_date == datetime(2024, 1, 5)
    assert project.end_date == datetime(2024, 3, 1)


def test_project_without_dated_transactions_has_no_range():
    activity = Activity(id="a", project_id="P1", activity_seq="1", transactions=[t(1)])
    project = aggregate(make_project(10.0, activity))
    assert project.start_date is None
    assert project.end_date is None


@pytest.mark.parametrize(
    "margin,spent,budget,status",
    [
        (-1.0, 101.0, 100.0, "on-hold"),
        (5.0, 95.0, 100.0, "completed"),
        (10.0, 90.0, 100.0, "active"),
        (0.0, 0.0, 0.0, "active"),
    ],
)
def test_project_status(margin, spent, budget, status):
    assert project_status(margin, spent, budget) == status


def test_employee_rollups():
    a1 = Activity(id="a1", project_id="P1", activity_seq="1", description="Design", transactions=[t(10, 2), t(5, 1)])
    a2 = Activity(
        id="a2",
        project_id="P1",
        activity_seq="2",
        description="Build",
        transactions=[t(20, 4), t(7, 3, emp="E2", name="Bob")],
    )
    project = aggregate(make_project(100.0, a1, a2))
    ann = project.employees["E1"]
    assert ann.total_hours == 7
    assert ann.total_cost == 35
    assert ann.activities == ["Design", "Build"]
    assert a1.employees["E1"].transaction_count == 2

    other = Project(id="P2", name="Beta", budget=10.0)
    other.activities.append(Activity(id="b", project_id="P2", activity_seq="9", transactions=[t(1, 1)]))
    aggregate(other)
    index = build_employee_index([project, other])
    assert index["E1"].projects == ["P1", "P2"]
    assert index["E1"].total_cost == 36
    assert index["E2"].projects == ["P1"]


def test_revenue_split():
    te = Activity(id="a", project_id="P1", activity_seq="150000", transactions=[t(1, revenue=300)])
    fixed = Activity(id="b", project_id="P1", activity_seq="250000", transactions=[t(1, revenue=200)])
    other = Activity(id="c", project_id="P1", activity_seq="900", transactions=[t(1, revenue=50)])
    project = aggregate(make_project(10.0, te, fixed, other))
    assert project.te_revenue == 300
    assert project.fixed_revenue == 200
    assert project.actual_revenue == 550


@pytest.mark.parametrize(
    "description,seq,expected",
    [
        ("Hourly consulting", "", "T&E"),
        ("Milestone payment", "", "Fixed"),
        ("Misc", "", "Other"),
        ("Consulting", "250000", "Fixed"),
        ("Product build", "100000", "T&E"),
        ("Misc", "300000", "Other"),
        ("Misc", "abc", "Other"),
    ],
)
def test_classify_revenue(description, seq, expected):
    assert classify_revenue(description, seq) == expected
