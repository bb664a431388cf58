"""Domain models for the project budget reconciliation pipeline.

This package contains the data classes shared by the reader, the
ingest/join/aggregate services and the cache store.
"""

from .cache_entry import CacheEntry, CacheInfo, CacheStatus, RefreshLogEntry
from .config_models import CacheConfig, ExclusionRules, ReconcileConfig, SourcePaths
from .processing_result import BudgetAlert, Diagnostics, ReconciliationResult
from .project import (
    Activity,
    EmployeeActivityWork,
    EmployeeProjectWork,
    EmployeeWork,
    Project,
    Transaction,
)
from .raw_cell import CellKind, RawCell
from .row_data import NormalizedRecord
from .sheet_table import SheetTable

__all__ = [
    # Configuration models
    "CacheConfig",
    "ExclusionRules",
    "ReconcileConfig",
    "SourcePaths",
    # Sheet / row models
    "CellKind",
    "RawCell",
    "SheetTable",
    "NormalizedRecord",
    # Reconciled graph
    "Activity",
    "EmployeeActivityWork",
    "EmployeeProjectWork",
    "EmployeeWork",
    "Project",
    "Transaction",
    # Results
    "BudgetAlert",
    "Diagnostics",
    "ReconciliationResult",
    # Cache
    "CacheEntry",
    "CacheInfo",
    "CacheStatus",
    "RefreshLogEntry",
]
