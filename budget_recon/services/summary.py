from __future__ import annotations

from ..models.processing_result import ReconciliationResult
from ..models.project import UNBOUNDED_UTILIZATION

"""SUMMARY line rendering and presentation rounding.

Format::

    SUMMARY projects={n} activities={n} transactions={n} dropped_rows={n}
    unknown_project_tx={n} cache={status} status={status} elapsed_sec={x}

(single line). ``status`` has spaces replaced by underscores so the line can
be split on whitespace.
"""

__all__ = [
    "render_summary_line",
    "display_round",
    "format_number",
]


def display_round(value: float | str, digits: int = 2) -> float | str:
    """Round for presentation; the unbounded utilization marker passes through."""
    if value == UNBOUNDED_UTILIZATION or isinstance(value, str):
        return value
    return round(value, digits)


def format_number(value: float) -> str:
    # Handle very small numbers and integer values appropriately
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: ReconciliationResult) -> str:
    """Render the SUMMARY line for one reconciliation run.

    Example output::

        SUMMARY projects=2 activities=3 transactions=10 dropped_rows=1 \
unknown_project_tx=0 cache=stored status=complete elapsed_sec=0.412
    """
    diag = result.diagnostics
    status = result.status.replace(" ", "_")
    return (
        f"SUMMARY projects={len(result.projects)} "
        f"activities={result.activity_count} "
        f"transactions={result.transaction_count} "
        f"dropped_rows={diag.dropped_rows} "
        f"unknown_project_tx={diag.transactions_unknown_project} "
        f"cache={result.cache_status} "
        f"status={status} "
        f"elapsed_sec={format_number(result.elapsed_seconds)}"
    )
