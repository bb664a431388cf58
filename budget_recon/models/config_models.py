from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the budget reconciliation pipeline.

These are the typed domain view of ``config/reconcile.yml``; the loader in
budget_recon/config/loader.py validates the raw YAML and builds them.
"""

DEFAULT_EXCLUDED_STATUSES = ("closed",)
DEFAULT_CO_OCCURRING_SUBSTRINGS = (("service", "line"),)
DEFAULT_LOCATION_CODES = (
    "680au", "480in", "622my", "115gb", "820tt",
    "211se", "550cn", "580kr", "621my", "110gb",
)


@dataclass(frozen=True)
class SourcePaths:
    """Workbook locations for the three required sources."""
    projects: str
    transactions: str
    estimates: str

    def as_dict(self) -> dict[str, str]:
        return {
            "projects": self.projects,
            "transactions": self.transactions,
            "estimates": self.estimates,
        }


@dataclass(frozen=True)
class ExclusionRules:
    """Junk-row suppression for the project master.

    Matching is case-insensitive against the project id and name. Each rule
    is named so diagnostics can say why a project was left out.
    """
    excluded_statuses: tuple[str, ...] = DEFAULT_EXCLUDED_STATUSES
    co_occurring_substrings: tuple[tuple[str, ...], ...] = DEFAULT_CO_OCCURRING_SUBSTRINGS
    location_codes: tuple[str, ...] = DEFAULT_LOCATION_CODES
    exclude_digit_prefix: bool = True

    def reason(self, project_id: str, name: str, status: str) -> str | None:
        """Return the name of the first rule that excludes the row, else None."""
        status_l = status.strip().lower()
        if status_l and status_l in {s.lower() for s in self.excluded_statuses}:
            return "status"
        id_l = project_id.lower()
        name_l = name.lower()
        for group in self.co_occurring_substrings:
            parts = [p.lower() for p in group]
            if parts and (all(p in id_l for p in parts) or all(p in name_l for p in parts)):
                return "substrings"
        for code in self.location_codes:
            code_l = code.lower()
            if code_l in id_l or code_l in name_l:
                return "location_code"
        if self.exclude_digit_prefix and id_l[:1].isdigit():
            return "digit_prefix"
        return None


@dataclass(frozen=True)
class CacheConfig:
    enabled: bool = True
    backend: str = "sqlite"  # sqlite | postgres
    path: str = "./cache/recon.db"  # sqlite file (":memory:" allowed)
    dsn: str | None = None  # postgres fallback when env vars are absent
    ttl_days: int = 7
    cache_type: str = "project_data"


@dataclass(frozen=True)
class ReconcileConfig:
    """Root configuration object for a reconciliation run."""
    sources: SourcePaths
    sheet_names: dict[str, str] = field(default_factory=dict)  # source -> sheet (default: first sheet)
    header_sentinels: tuple[str, ...] = ("Invoiced",)
    exclusions: ExclusionRules = field(default_factory=ExclusionRules)
    column_fallbacks: dict[str, dict[str, str]] = field(default_factory=dict)  # sheet type -> field -> letter
    budget_policy: str = "even_split"
    alert_threshold: float = 80.0
    cache: CacheConfig = field(default_factory=CacheConfig)
    diagnostics_dir: str = "./logs"
    timezone: str = "UTC"
