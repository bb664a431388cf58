from __future__ import annotations

from datetime import UTC, datetime

from budget_recon.models.processing_result import STATUS_COMPLETE, Diagnostics, ReconciliationResult
from budget_recon.models.project import Activity, Project


class TestDiagnostics:
    def test_defaults(self):
        d = Diagnostics()
        assert d.dropped_rows == 0
        assert d.unresolved_columns == {}
        assert d.missing_sources == []

    def test_dropped_rows_counts_sentinel_and_missing_key(self):
        d = Diagnostics(rows_dropped_sentinel=2, rows_dropped_missing_key=3, rows_excluded_by_rule=4)
        # rule exclusions are reported separately
        assert d.dropped_rows == 5


class TestReconciliationResult:
    def _result(self, status: str) -> ReconciliationResult:
        p1 = Project(id="P1", name="A", transaction_count=3)
        p1.activities = [Activity(id="P1:1:main", project_id="P1", activity_seq="1")]
        p2 = Project(id="P2", name="B", transaction_count=1)
        p2.activities = [
            Activity(id="P2:main:main", project_id="P2", activity_seq=""),
            Activity(id="P2:2:main", project_id="P2", activity_seq="2"),
        ]
        now = datetime(2024, 1, 1, tzinfo=UTC)
        return ReconciliationResult(
            projects={"P1": p1, "P2": p2},
            employees={},
            diagnostics=Diagnostics(),
            status=status,
            cache_status="disabled",
            started_at=now,
            finished_at=now,
            elapsed_seconds=0.0,
        )

    def test_counts(self):
        result = self._result(STATUS_COMPLETE)
        assert result.activity_count == 3
        assert result.transaction_count == 4
        assert result.is_partial is False
        assert result.tables == {}

    def test_partial(self):
        assert self._result("partial: missing estimates").is_partial is True
