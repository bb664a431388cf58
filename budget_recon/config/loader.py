from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_CO_OCCURRING_SUBSTRINGS,
    DEFAULT_EXCLUDED_STATUSES,
    DEFAULT_LOCATION_CODES,
    CacheConfig,
    ExclusionRules,
    ReconcileConfig,
    SourcePaths,
)

"""Config loader: YAML -> validated ReconcileConfig.

Responsibilities:
- Load YAML (default config/reconcile.yml)
- Validate against config_schema.json (shipped next to this module)
- Apply defaults (timezone=UTC, even_split budget policy, sqlite cache)
- Resolve relative source paths against the config file's directory
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/reconcile.yml")
SCHEMA_PATH = Path(__file__).parent / "config_schema.json"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _resolve_source(base: Path, value: str) -> str:
    p = Path(value)
    if not p.is_absolute():
        p = base / p
    return str(p)


def _build_exclusions(raw: dict[str, Any]) -> ExclusionRules:
    return ExclusionRules(
        excluded_statuses=tuple(raw.get("statuses", DEFAULT_EXCLUDED_STATUSES)),
        co_occurring_substrings=tuple(
            tuple(group) for group in raw.get("co_occurring_substrings", DEFAULT_CO_OCCURRING_SUBSTRINGS)
        ),
        location_codes=tuple(raw.get("location_codes", DEFAULT_LOCATION_CODES)),
        exclude_digit_prefix=raw.get("exclude_digit_prefix", True),
    )


def load_config(path: Path | str = DEFAULT_CONFIG_PATH) -> ReconcileConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    base = path.parent
    src = data["sources"]
    sources = SourcePaths(
        projects=_resolve_source(base, src["projects"]),
        transactions=_resolve_source(base, src["transactions"]),
        estimates=_resolve_source(base, src["estimates"]),
    )
    cache_raw = data.get("cache", {})
    cache = CacheConfig(
        enabled=cache_raw.get("enabled", True),
        backend=cache_raw.get("backend", "sqlite"),
        path=cache_raw.get("path", "./cache/recon.db"),
        dsn=cache_raw.get("dsn"),
        ttl_days=cache_raw.get("ttl_days", 7),
        cache_type=cache_raw.get("cache_type", "project_data"),
    )
    fallbacks = {
        sheet_type: {field: letter.upper() for field, letter in mapping.items()}
        for sheet_type, mapping in data.get("column_fallbacks", {}).items()
    }
    return ReconcileConfig(
        sources=sources,
        sheet_names=dict(data.get("sheet_names", {})),
        header_sentinels=tuple(data.get("header_sentinels", ("Invoiced",))),
        exclusions=_build_exclusions(data.get("exclusions", {})),
        column_fallbacks=fallbacks,
        budget_policy=data.get("budget_policy", "even_split"),
        alert_threshold=float(data.get("alert_threshold", 80.0)),
        cache=cache,
        diagnostics_dir=data.get("diagnostics_dir", "./logs"),
        timezone=data.get("timezone", "UTC"),
    )
