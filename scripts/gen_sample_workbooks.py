#!/usr/bin/env python3
"""Generate synthetic P / PT / AE workbooks for demos and load testing.

The files follow the layouts the reader expects:
- P.xlsx: project master (Project ID, Project Name, Status, Budget, Customer)
- PT.xlsx: transactions, row 2 repeats the header with "Invoiced" in column A
- AE.xlsx: activity estimates keyed by Activity Seq
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

STATUSES = ["Open", "Open", "Open", "Closed"]
EMPLOYEES = [(f"E{n:03d}", f"Employee {n}") for n in range(1, 41)]


def generate_projects(n_projects: int, rng: np.random.Generator) -> pd.DataFrame:
    ids = [f"PRJ{n:04d}" for n in range(1, n_projects + 1)]
    return pd.DataFrame(
        {
            "Project ID": ids,
            "Project Name": [f"Project {i}" for i in ids],
            "Status": rng.choice(STATUSES, n_projects).tolist(),
            "Budget": np.round(rng.uniform(10_000, 500_000, n_projects), 2).tolist(),
            "Customer": [f"Customer {rng.integers(1, 25)}" for _ in ids],
        }
    )


def generate_transactions(
    projects: pd.DataFrame, rows: int, rng: np.random.Generator
) -> tuple[pd.DataFrame, list[tuple[str, int]]]:
    """Transactions plus the (project, activity seq) pairs they use."""
    project_ids = projects["Project ID"].tolist()
    pairs: list[tuple[str, int]] = []
    for pid in project_ids:
        for _ in range(int(rng.integers(1, 5))):
            pairs.append((pid, int(rng.choice([100000, 200000, 300000])) + int(rng.integers(1, 9999))))
    picks = rng.integers(0, len(pairs), rows)
    emp_picks = rng.integers(0, len(EMPLOYEES), rows)
    hours = np.round(rng.uniform(0.5, 8, rows), 2)
    dates = pd.date_range("2024-01-01", "2024-12-31", periods=365)
    df = pd.DataFrame(
        {
            "Project": [pairs[i][0] for i in picks],
            "Activity Seq": [pairs[i][1] for i in picks],
            "Activity Description": [f"Activity {pairs[i][1]}" for i in picks],
            "Employee": [EMPLOYEES[i][0] for i in emp_picks],
            "Employee Description": [EMPLOYEES[i][1] for i in emp_picks],
            "Account Date": list(dates[rng.integers(0, len(dates), rows)]),
            "Internal Quantity": hours.tolist(),
            "Total Internal Price": np.round(hours * rng.uniform(60, 140, rows), 2).tolist(),
            "Sales Amount": np.round(hours * rng.uniform(120, 220, rows), 2).tolist(),
        }
    )
    return df, pairs


def generate_estimates(pairs: list[tuple[str, int]], rng: np.random.Generator) -> pd.DataFrame:
    # roughly 70% of activities carry an estimate
    keep = [p for p in pairs if rng.random() < 0.7]
    return pd.DataFrame(
        {
            "Project ID": [p[0] for p in keep],
            "Activity Seq": [p[1] for p in keep],
            "Activity Description": [f"Activity {p[1]}" for p in keep],
            "Estimated Cost": np.round(rng.uniform(1_000, 50_000, len(keep)), 2).tolist(),
            "Estimated Revenue": np.round(rng.uniform(2_000, 90_000, len(keep)), 2).tolist(),
            "Estimated Hours": np.round(rng.uniform(10, 400, len(keep)), 1).tolist(),
        }
    )


def write_workbooks(out_dir: Path, n_projects: int, rows: int, seed: int = 42) -> dict[str, Path]:
    rng = np.random.default_rng(seed)
    out_dir.mkdir(parents=True, exist_ok=True)
    projects = generate_projects(n_projects, rng)
    transactions, pairs = generate_transactions(projects, rows, rng)
    estimates = generate_estimates(pairs, rng)

    # duplicated header row directly under the real header
    echo = pd.DataFrame([["Invoiced"] + [""] * (len(transactions.columns) - 1)], columns=transactions.columns)
    transactions = pd.concat([echo, transactions], ignore_index=True)

    paths = {
        "projects": out_dir / "P.xlsx",
        "transactions": out_dir / "PT.xlsx",
        "estimates": out_dir / "AE.xlsx",
    }
    for name, df in (("projects", projects), ("transactions", transactions), ("estimates", estimates)):
        with pd.ExcelWriter(paths[name], engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Sheet1", index=False)
        print(f"Created {paths[name]} rows={len(df)}")
    return paths


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate synthetic P / PT / AE workbooks")
    parser.add_argument("output_dir", type=Path, help="Directory for P.xlsx, PT.xlsx and AE.xlsx")
    parser.add_argument("--projects", type=int, default=50, help="Number of projects (default: 50)")
    parser.add_argument("--rows", type=int, default=5_000, help="Transaction rows (default: 5,000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.projects <= 0 or args.rows <= 0:
        print("Error: --projects and --rows must be positive", file=sys.stderr)
        return 1
    write_workbooks(args.output_dir, args.projects, args.rows, args.seed)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
