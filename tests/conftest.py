# Shared pytest fixtures
from __future__ import annotations

import tempfile
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

from budget_recon.excel.reader import table_from_frame
from budget_recon.logging.init import reset_logging
from budget_recon.models.sheet_table import SheetTable

PROJECT_HEADERS = ["Project ID", "Project Name", "Status", "Budget", "Customer"]
TRANSACTION_HEADERS = [
    "Project",
    "Activity Seq",
    "Activity Description",
    "Employee",
    "Employee Description",
    "Account Date",
    "Internal Quantity",
    "Total Internal Price",
    "Sales Amount",
]
ESTIMATE_HEADERS = [
    "Project ID",
    "Project Name",
    "Activity Description",
    "Estimated Cost",
    "Estimated Revenue",
    "Estimated Hours",
    "Activity Seq",
]


def make_table(rows: list[list[object]], sheet_name: str = "Sheet1") -> SheetTable:
    """SheetTable from literal rows (first row is the header), as the reader builds it."""
    return table_from_frame(pd.DataFrame(rows), sheet_name, source_file="test.xlsx")


def write_workbook(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    """Write a real .xlsx with header-less sheets."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """sources:
  projects: ../data/P.xlsx
  transactions: ../data/PT.xlsx
  estimates: ../data/AE.xlsx
header_sentinels: ["Invoiced"]
budget_policy: even_split
alert_threshold: 80
cache:
  enabled: true
  backend: sqlite
  path: ./cache/recon.db
  ttl_days: 7
  cache_type: project_data
diagnostics_dir: ./logs
timezone: UTC
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "reconcile.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def project_rows() -> list[list[object]]:
    return [
        PROJECT_HEADERS,
        ["P1", "Alpha", "Open", 1000, "Acme"],
        ["P2", "Beta", "Open", 500, None],
        ["P3", "Gamma", "Closed", 100, "Acme"],
        ["9ABC", "Numbered", "Open", 100, "Acme"],
    ]


@pytest.fixture()
def transaction_rows() -> list[list[object]]:
    return [
        TRANSACTION_HEADERS,
        ["Invoiced", None, None, None, None, None, None, None, None],
        ["P1", 100001, "Consulting", "E1", "Ann", datetime(2024, 1, 5), 2, 200, 300],
        ["P1", 100001, "Consulting", "E2", "Bob", datetime(2024, 1, 10), 3, 300, 450],
        ["P1", 200500, "Milestone A", "E1", "Ann", datetime(2024, 2, 1), 1, 100, 0],
        ["P2", None, "Support", "E2", "Bob", datetime(2024, 3, 1), 4, 400, 0],
        ["UNKNOWN", 1, "Stray", "E3", "Cid", datetime(2024, 3, 2), 1, 50, 0],
        [None, None, "No project", "E3", "Cid", datetime(2024, 3, 3), 1, 50, 0],
    ]


@pytest.fixture()
def estimate_rows() -> list[list[object]]:
    return [
        ESTIMATE_HEADERS,
        ["P1", "Alpha", "Consulting", 1000, 2000, 10, 100001],
    ]


@pytest.fixture()
def source_workbooks(
    temp_workdir: Path,
    project_rows: list[list[object]],
    transaction_rows: list[list[object]],
    estimate_rows: list[list[object]],
) -> dict[str, Path]:
    data = temp_workdir / "data"
    return {
        "projects": write_workbook(data / "P.xlsx", {"Sheet1": project_rows}),
        "transactions": write_workbook(data / "PT.xlsx", {"Sheet1": transaction_rows}),
        "estimates": write_workbook(data / "AE.xlsx", {"Sheet1": estimate_rows}),
    }


@pytest.fixture()
def table_factory():
    return make_table


@pytest.fixture()
def workbook_writer():
    return write_workbook


@pytest.fixture(autouse=True)
def _clean_app_logger():
    """Detach the application handler so it never outlives a captured stdout."""
    yield
    reset_logging()
