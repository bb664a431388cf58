from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from ..cache.store import CacheStore, CacheWriteError
from ..excel.columns import ColumnResolver
from ..excel.reader import SheetReadError, read_table
from ..excel.schemas import ESTIMATES_SCHEMA, PROJECTS_SCHEMA, TRANSACTIONS_SCHEMA, FieldSchema
from ..logging.error_log import DiagnosticRecord, ErrorLogBuffer
from ..models.config_models import ReconcileConfig, SourcePaths
from ..models.processing_result import STATUS_COMPLETE, Diagnostics, ReconciliationResult
from ..models.sheet_table import SheetTable
from .aggregate import aggregate_all, build_employee_index
from .budget_policy import BudgetPolicy, get_budget_policy
from .coordinator import CacheLoadCoordinator
from .ingest import IngestResult, ingest
from .join import JoinEngine
from .progress import LoadProgress
from .serialization import result_from_payload, result_to_payload

"""Reconciliation pipeline: load -> ingest -> join -> aggregate -> cache.

1. unless forced, a valid cache entry short-circuits the run (cache=hit)
2. the three workbooks are read in parallel and joined with a barrier; a
   source that cannot be read is skipped with a warning and the run is
   marked partial
3. ingest / join / aggregate run single-threaded on the loaded tables
4. complete results are stored in the cache; partial ones never are
5. dropped rows and load problems are flushed once to the diagnostics log

Only the case where no source could be read at all is raised
(ReconciliationError). Everything else is recorded in Diagnostics.
"""

__all__ = [
    "SOURCES",
    "ReconciliationError",
    "MissingSheetError",
    "ReconciliationPipeline",
]

logger = logging.getLogger(__name__)

SOURCES = ("projects", "transactions", "estimates")

SCHEMA_FOR: dict[str, FieldSchema] = {
    "projects": PROJECTS_SCHEMA,
    "transactions": TRANSACTIONS_SCHEMA,
    "estimates": ESTIMATES_SCHEMA,
}

Reader = Callable[..., list[SheetTable]]


class ReconciliationError(Exception):
    """Raised when a reconciliation run cannot produce any result."""


class MissingSheetError(Exception):
    """A source workbook or its sheet could not be loaded."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class ReconciliationPipeline:
    """Runs reconciliation for one configuration.

    Parameters
    ----------
    config: validated ReconcileConfig
    reader: workbook reader, ``reader(path, sheet_names) -> list[SheetTable]``
    cache: CacheStore or None to disable caching
    policy: budget policy override (default: ``config.budget_policy``)
    """

    def __init__(
        self,
        config: ReconcileConfig,
        reader: Reader = read_table,
        cache: CacheStore | None = None,
        policy: BudgetPolicy | None = None,
    ) -> None:
        self.config = config
        self.reader = reader
        self.cache = cache
        self.resolver = ColumnResolver(config.column_fallbacks)
        self.join_engine = JoinEngine(policy or get_budget_policy(config.budget_policy))
        self.coordinator: CacheLoadCoordinator[ReconciliationResult] = CacheLoadCoordinator()
        self._tz = ZoneInfo(config.timezone)

    @property
    def cache_type(self) -> str:
        return self.config.cache.cache_type

    # ------------------------------------------------------------------ loading

    def _load_source(self, source: str, path: str) -> SheetTable:
        p = Path(path)
        if not p.exists():
            raise MissingSheetError(source, f"file not found: {p}")
        wanted = self.config.sheet_names.get(source)
        try:
            tables = self.reader(p, [wanted] if wanted else None)
        except SheetReadError as e:
            raise MissingSheetError(source, str(e)) from e
        if not tables:
            what = f"sheet '{wanted}'" if wanted else "any sheet"
            raise MissingSheetError(source, f"{what} not found in {p.name}")
        return tables[0]

    def load_sources(self, paths: SourcePaths) -> tuple[dict[str, SheetTable], dict[str, str]]:
        """Read every source in parallel; returns (tables, missing source -> reason)."""
        tables: dict[str, SheetTable] = {}
        missing: dict[str, str] = {}
        locations = paths.as_dict()
        with LoadProgress(len(SOURCES)) as progress, ThreadPoolExecutor(max_workers=len(SOURCES)) as pool:
            future_to_source = {
                pool.submit(self._load_source, source, locations[source]): source for source in SOURCES
            }
            for future in as_completed(future_to_source):
                source = future_to_source[future]
                try:
                    tables[source] = future.result()
                except MissingSheetError as e:
                    missing[source] = e.reason
                    logger.warning("source %s skipped: %s", source, e.reason)
                    progress.finish_source(source, success=False)
                    continue
                progress.finish_source(source)
        return tables, missing

    # ------------------------------------------------------------------- running

    def _record_ingest(
        self,
        source: str,
        table: SheetTable,
        result: IngestResult,
        diagnostics: Diagnostics,
        error_log: ErrorLogBuffer,
    ) -> None:
        diagnostics.rows_read += len(table.rows)
        diagnostics.rows_dropped_sentinel += result.dropped_sentinel
        diagnostics.rows_dropped_missing_key += result.dropped_missing_key
        diagnostics.rows_excluded_by_rule += result.excluded_by_rule
        if result.unresolved_fields:
            diagnostics.unresolved_columns[source] = result.unresolved_fields
        for dropped in result.dropped:
            error_type, _, detail = dropped.reason.partition(":")
            error_log.append(
                DiagnosticRecord.create(
                    source=source,
                    sheet=table.sheet_name,
                    row=dropped.row_number,
                    error_type=error_type,
                    message=detail or error_type.lower().replace("_", " "),
                )
            )

    def _now(self) -> datetime:
        return datetime.now(self._tz)

    def reconcile(self, paths: SourcePaths | None = None, force: bool = False) -> ReconciliationResult:
        """Produce the reconciled project/employee graph.

        Raises:
            ReconciliationError: none of the sources could be loaded
        """
        paths = paths or self.config.sources
        started_at = self._now()
        t0 = time.perf_counter()

        if self.cache is not None and not force:
            cached = self._restore_cached()
            if cached is not None:
                projects, employees = cached
                logger.info("cache hit type=%s projects=%d", self.cache_type, len(projects))
                return ReconciliationResult(
                    projects=projects,
                    employees=employees,
                    diagnostics=Diagnostics(),
                    status=STATUS_COMPLETE,
                    cache_status="hit",
                    started_at=started_at,
                    finished_at=self._now(),
                    elapsed_seconds=time.perf_counter() - t0,
                )

        error_log = ErrorLogBuffer(self.config.diagnostics_dir)
        diagnostics = Diagnostics()
        tables, missing = self.load_sources(paths)
        for source, reason in missing.items():
            diagnostics.missing_sources.append(source)
            diagnostics.warnings.append(f"missing {source}: {reason}")
            error_log.append(
                DiagnosticRecord.create(source, "<FILE_LEVEL>", -1, "MISSING_SHEET", reason)
            )
        if len(missing) == len(SOURCES):
            self._flush(error_log)
            raise ReconciliationError("no source could be loaded: " + "; ".join(diagnostics.warnings))

        records: dict[str, list[Any]] = {source: [] for source in SOURCES}
        for source in SOURCES:
            table = tables.get(source)
            if table is None:
                continue
            rules = self.config.exclusions if source == "projects" else None
            result = ingest(
                table,
                SCHEMA_FOR[source],
                self.resolver,
                rules=rules,
                sentinels=self.config.header_sentinels,
            )
            self._record_ingest(source, table, result, diagnostics, error_log)
            records[source] = result.records

        joined = self.join_engine.join(records["transactions"], records["estimates"], records["projects"])
        diagnostics.transactions_unknown_project = joined.unknown_project_count
        if joined.unknown_project_count:
            error_log.append(
                DiagnosticRecord.create(
                    "transactions",
                    tables["transactions"].sheet_name if "transactions" in tables else "<FILE_LEVEL>",
                    -1,
                    "UNKNOWN_PROJECT",
                    f"{joined.unknown_project_count} transactions reference unknown projects",
                )
            )
        aggregate_all(joined.projects.values())
        employees = build_employee_index(joined.projects.values())

        if missing:
            status = "partial: missing " + ",".join(s for s in SOURCES if s in missing)
        else:
            status = STATUS_COMPLETE
        cache_status = self._store(joined.projects, employees, paths, partial=bool(missing))

        self._flush(error_log)
        finished_at = self._now()
        result = ReconciliationResult(
            projects=joined.projects,
            employees=employees,
            diagnostics=diagnostics,
            status=status,
            cache_status=cache_status,
            started_at=started_at,
            finished_at=finished_at,
            elapsed_seconds=time.perf_counter() - t0,
            tables=dict(tables),
        )
        logger.info(
            "reconciled projects=%d activities=%d transactions=%d status=%s",
            len(result.projects),
            result.activity_count,
            result.transaction_count,
            status,
        )
        return result

    def _restore_cached(self) -> tuple[dict, dict] | None:
        """Rebuild the graph from the cache entry, or None when there is no usable entry.

        An entry that parses as JSON but does not fit the current models (a
        foreign payload stored under the same type, or one written by an older
        version) is invalidated so the run falls through to a full load.
        """
        assert self.cache is not None
        payload = self.cache.load(self.cache_type)
        if payload is None:
            return None
        try:
            return result_from_payload(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                "cache entry type=%s does not match the data model, reloading sources: %s",
                self.cache_type,
                e,
            )
            self.cache.invalidate(self.cache_type)
            return None

    def _store(self, projects: dict, employees: dict, paths: SourcePaths, partial: bool) -> str:
        if self.cache is None:
            return "disabled"
        if partial:
            logger.info("partial result not cached")
            return "skipped_partial"
        payload = result_to_payload(projects, employees)
        sources = [Path(p).name for p in paths.as_dict().values()]
        try:
            entry = self.cache.save(self.cache_type, payload, sources)
        except CacheWriteError as e:
            logger.warning("cache write failed, continuing with in-memory result: %s", e)
            return "write_failed"
        return "stored" if entry is not None else "miss"

    def _flush(self, error_log: ErrorLogBuffer) -> None:
        try:
            path = error_log.flush()
        except OSError as e:
            logger.warning("diagnostics log not written: %s", e)
            return
        if path is not None:
            logger.info("diagnostics written to %s", path)

    # ------------------------------------------------------------ shared access

    def load(self, paths: SourcePaths | None = None) -> ReconciliationResult:
        """Single-flight access: concurrent callers share one reconcile() run."""
        return self.coordinator.get(lambda: self.reconcile(paths))

    def get_cached(self, cache_type: str | None = None) -> Any | None:
        if self.cache is None:
            return None
        return self.cache.load(cache_type or self.cache_type)

    def refresh(self, cache_type: str, payload: Any, source_files: Iterable[str] = ()) -> None:
        """Store ``payload`` directly and drop the coordinator's ready result."""
        if self.cache is None:
            raise ReconciliationError("cache is disabled")
        self.cache.save(cache_type, payload, list(source_files))
        self.coordinator.reset()

    def invalidate(self, cache_type: str | None = None) -> int:
        self.coordinator.reset()
        if self.cache is None:
            return 0
        return self.cache.invalidate(cache_type)
