from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..cache.store import CacheStore, open_cache_store
from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..excel.columns import ColumnResolver
from ..excel.reader import SheetReadError, read_table
from ..logging.init import log_summary, set_debug, setup_logging
from ..models.config_models import ReconcileConfig
from ..services.alerts import build_budget_alerts
from ..services.pipeline import SCHEMA_FOR, SOURCES, ReconciliationError, ReconciliationPipeline
from ..services.summary import display_round, render_summary_line

"""CLI entrypoint: ``python -m budget_recon.cli``.

Flow: load .env -> load config -> open cache -> reconcile -> SUMMARY line.

Exit codes:
- 0: reconciliation complete (or a maintenance command succeeded)
- 2: partial result (one or two sources missing)
- 1: fatal (config error, no source loadable)
"""

EXIT_SUCCESS = 0
EXIT_PARTIAL = 2
EXIT_FATAL = 1

ALL_TYPES = "*"


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env via python-dotenv; values override the process environment."""
    try:
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
    except OSError as e:  # pragma: no cover
        print(f"WARNING: failed to load .env via python-dotenv: {e}")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="budget_recon", description="Reconcile project budgets against estimates and transactions"
    )
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config YAML path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--force", action="store_true", help="Ignore a valid cache entry and reload sources")
    p.add_argument("--inspect-data", action="store_true", help="Print sheet headers & resolved columns then exit")
    p.add_argument("--alerts", action="store_true", help="Print budget alerts after reconciling")
    p.add_argument("--cache-info", action="store_true", help="Print cache status then exit")
    p.add_argument(
        "--invalidate",
        nargs="?",
        const=ALL_TYPES,
        default=None,
        metavar="TYPE",
        help="Delete cache entries (all types when TYPE is omitted) then exit",
    )
    return p.parse_args(argv)


def _open_cache(cfg: ReconcileConfig, logger) -> CacheStore | None:
    if not cfg.cache.enabled:
        return None
    try:
        return open_cache_store(cfg.cache)
    except Exception as e:
        # unreachable cache backend: run without caching
        logger.warning(f"cache unavailable ({cfg.cache.backend}) -> running without cache: {e}")
        return None


def _inspect_data(cfg: ReconcileConfig) -> int:
    resolver = ColumnResolver(cfg.column_fallbacks)
    sources = cfg.sources.as_dict()
    for source in SOURCES:
        path = Path(sources[source])
        print(f"FILE: {source} {path}")
        if not path.exists():
            print("  missing")
            continue
        try:
            tables = read_table(path)
        except SheetReadError as e:
            print(f"  read_error: {e}")
            continue
        schema = SCHEMA_FOR[source]
        for table in tables:
            columns = resolver.resolve_schema(
                table.headers, schema.headers(), schema.sheet_type, header_row=table.header_row
            )
            print(f"  SHEET: {table.sheet_name} header_row={table.header_row} rows={len(table.rows)}")
            print(f"    headers={table.headers}")
            print(f"    resolved={columns.indices} unresolved={columns.unresolved}")
    return EXIT_SUCCESS


def _cache_info(cache: CacheStore | None, cfg: ReconcileConfig) -> int:
    if cache is None:
        print("cache: disabled")
        return EXIT_SUCCESS
    info = cache.info(cfg.cache.cache_type)
    status = cache.entry_status(cfg.cache.cache_type)
    print(f"cache: backend={cache.backend} type={cfg.cache.cache_type} status={status.value}")
    print(f"  last_refresh={info.last_refresh.isoformat() if info.last_refresh else '-'}")
    print(f"  entries={info.cache_size} expired={info.is_expired}")
    print(f"  next_refresh_due={info.next_refresh_due.isoformat() if info.next_refresh_due else '-'}")
    for entry in cache.refresh_log(limit=5):
        line = f"  refresh id={entry.id} type={entry.type} at={entry.refreshed_at.isoformat()} status={entry.status}"
        if entry.error_message:
            line += f" error={entry.error_message}"
        print(line)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an explicit [] must not pick up the test runner's argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(cfg)

    cache = _open_cache(cfg, logger)
    try:
        if args.cache_info:
            return _cache_info(cache, cfg)
        pipeline = ReconciliationPipeline(cfg, cache=cache)
        if args.invalidate is not None:
            cache_type = None if args.invalidate == ALL_TYPES else args.invalidate
            removed = pipeline.invalidate(cache_type)
            logger.info(f"invalidated {removed} cache entries")
            return EXIT_SUCCESS

        try:
            result = pipeline.reconcile(force=args.force)
        except ReconciliationError as e:
            logger.error(f"reconcile: {e}")
            return EXIT_FATAL

        for warning in result.diagnostics.warnings:
            logger.warning(warning)
        if args.alerts:
            alerts = build_budget_alerts(result.projects.values(), threshold=cfg.alert_threshold)
            logger.info(f"alerts={len(alerts)} threshold={cfg.alert_threshold}")
            for alert in alerts:
                logger.info(
                    f"ALERT {alert.severity} project={alert.project_id} activity={alert.activity_id} "
                    f"cost_usage={display_round(alert.cost_usage_percent)}% "
                    f"hours_usage={display_round(alert.hours_usage_percent)}% "
                    f"variance={display_round(alert.variance)}"
                )

        summary_line = render_summary_line(result)
        # log_summary adds the "SUMMARY " label itself
        log_summary(summary_line[len("SUMMARY "):])
        return EXIT_PARTIAL if result.is_partial else EXIT_SUCCESS
    finally:
        if cache is not None:
            cache.close()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
