from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any

from ..models.project import (
    Activity,
    EmployeeActivityWork,
    EmployeeProjectWork,
    EmployeeWork,
    Project,
    Transaction,
)

"""JSON-ready (de)serialization of the reconciled project graph.

Cache payload shape::

    {"projects": [...], "employees": [...], "rows": [<project ids>]}

Datetimes are written as ISO 8601 strings and parsed back on load.
"""

__all__ = [
    "project_to_dict",
    "project_from_dict",
    "result_to_payload",
    "result_from_payload",
]


def _dt_out(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _dt_in(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _transaction_to_dict(txn: Transaction) -> dict[str, Any]:
    data = asdict(txn)
    data["date"] = _dt_out(txn.date)
    return data


def _activity_to_dict(activity: Activity) -> dict[str, Any]:
    data = {
        k: v
        for k, v in vars(activity).items()
        if k not in ("employees", "transactions", "start_date", "end_date")
    }
    data["start_date"] = _dt_out(activity.start_date)
    data["end_date"] = _dt_out(activity.end_date)
    data["employees"] = [asdict(e) for e in activity.employees.values()]
    data["transactions"] = [_transaction_to_dict(t) for t in activity.transactions]
    return data


def project_to_dict(project: Project) -> dict[str, Any]:
    data = {
        k: v
        for k, v in vars(project).items()
        if k not in ("activities", "employees", "start_date", "end_date")
    }
    data["start_date"] = _dt_out(project.start_date)
    data["end_date"] = _dt_out(project.end_date)
    data["activities"] = [_activity_to_dict(a) for a in project.activities]
    data["employees"] = [asdict(e) for e in project.employees.values()]
    return data


def _activity_from_dict(data: dict[str, Any]) -> Activity:
    fields = dict(data)
    employees = fields.pop("employees", [])
    transactions = fields.pop("transactions", [])
    fields["start_date"] = _dt_in(fields.get("start_date"))
    fields["end_date"] = _dt_in(fields.get("end_date"))
    activity = Activity(**fields)
    activity.employees = {e["id"]: EmployeeActivityWork(**e) for e in employees}
    activity.transactions = [
        Transaction(**{**t, "date": _dt_in(t.get("date"))}) for t in transactions
    ]
    return activity


def project_from_dict(data: dict[str, Any]) -> Project:
    fields = dict(data)
    activities = fields.pop("activities", [])
    employees = fields.pop("employees", [])
    fields["start_date"] = _dt_in(fields.get("start_date"))
    fields["end_date"] = _dt_in(fields.get("end_date"))
    project = Project(**fields)
    project.activities = [_activity_from_dict(a) for a in activities]
    project.employees = {e["id"]: EmployeeProjectWork(**e) for e in employees}
    return project


def result_to_payload(
    projects: dict[str, Project], employees: dict[str, EmployeeWork]
) -> dict[str, Any]:
    """Build the cacheable payload; ``rows`` lists the project ids in order."""
    return {
        "projects": [project_to_dict(p) for p in projects.values()],
        "employees": [asdict(e) for e in employees.values()],
        "rows": list(projects.keys()),
    }


def result_from_payload(
    payload: dict[str, Any],
) -> tuple[dict[str, Project], dict[str, EmployeeWork]]:
    """Rebuild projects and employees from a payload made by ``result_to_payload``.

    Args:
        payload: Decoded cache payload.

    Returns:
        ``(projects, employees)``, both keyed by id.

    Raises:
        AttributeError, KeyError, TypeError, ValueError: The payload does not
            match the current data model.
    """
    projects = {p["id"]: project_from_dict(p) for p in payload.get("projects", [])}
    employees = {e["id"]: EmployeeWork(**e) for e in payload.get("employees", [])}
    return projects, employees
