"""
config
======

Configuration loading for :mod:`supadiff.cli`.

Sources, highest precedence first:

1. CLI flags (output directory, toggles, extra include/exclude patterns)
2. Environment variables ``SUPADIFF_<SIDE>_<FIELD>`` (``.env`` is loaded too)
3. YAML config file (``supadiff.yml`` by default)
4. Built-in defaults

API keys are read from the environment only. A key placed in the YAML file
is ignored, so config files can be committed safely.

Example ``supadiff.yml``::

    out_dir: database/schema-analysis
    tables: [users, user_profiles, destinations, trips]
    table_filter:
      exclude: ["tmp_%"]
    options:
      storage: true
      sync_script: true
    left:
      label: production
      url: https://<prod-ref>.supabase.co
    right:
      label: dev
      url: https://<dev-ref>.supabase.co

Environment::

    SUPADIFF_LEFT_KEY=...
    SUPADIFF_RIGHT_KEY=...
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import find_dotenv, load_dotenv

from .auth import SupaTarget
from .catalog import DEFAULT_BUCKET_CATALOG, BucketTemplate, catalog_from_config
from .collectors import DEFAULT_TABLES
from .utils import safe_name

ENV_PREFIX = "SUPADIFF"
DEFAULT_CONFIG = "supadiff.yml"
DEFAULT_OUT_DIR = "schema-analysis"
DEFAULT_LABELS = {"left": "production", "right": "dev"}


@dataclass(frozen=True)
class Options:
    """Boolean switches controlling which steps run."""
    storage: bool = True
    sync_script: bool = True


@dataclass(frozen=True)
class TableFilter:
    """Include/exclude patterns for table selection."""
    include: List[str]
    exclude: List[str]


def load_env(dotenv_path: Optional[Path] = None) -> None:
    """Load ``.env`` (searched from the working directory) without overriding set variables."""
    load_dotenv(dotenv_path=dotenv_path or find_dotenv(usecwd=True), override=False)


def load_config(path: Path) -> Dict[str, Any]:
    """Load a YAML config file.

    Raises
    ------
    SystemExit
        If the file does not exist or is not a mapping.
    """
    if not path.exists():
        raise SystemExit(f"ERROR: config not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise SystemExit(f"ERROR: config must be a mapping: {path}")
    return data


def deep_get(d: Dict[str, Any], keys: List[str], default: Any = None) -> Any:
    """Safely get nested dict value with default."""
    cur: Any = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def get_env_var(side: str, field: str) -> Optional[str]:
    """Return ``SUPADIFF_<SIDE>_<FIELD>`` or None when unset/empty."""
    value = os.environ.get(f"{ENV_PREFIX}_{side.upper()}_{field.upper()}")
    return value or None


def pick(*values: Optional[str], field: str) -> str:
    """Return the first non-empty value; error if none is set."""
    for v in values:
        if v:
            return str(v)
    raise SystemExit(f"ERROR: missing required field: {field}")


def build_target(cfg: Dict[str, Any], side: str) -> SupaTarget:
    """Build the :class:`SupaTarget` for ``side`` ("left" or "right")."""
    scfg = cfg.get(side, {}) or {}
    env_field = f"{ENV_PREFIX}_{side.upper()}"
    return SupaTarget(
        label=pick(get_env_var(side, "label"), scfg.get("label"), DEFAULT_LABELS.get(side), field=f"{side}.label"),
        url=pick(get_env_var(side, "url"), scfg.get("url"), field=f"{side}.url ({env_field}_URL)"),
        key=pick(get_env_var(side, "key"), field=f"{side}.key ({env_field}_KEY)"),
        side=side,
    )


def ensure_distinct_labels(left: SupaTarget, right: SupaTarget) -> None:
    """Reject labels that map to the same output file name (case-insensitively)."""
    if safe_name(left.label).lower() == safe_name(right.label).lower():
        raise SystemExit(
            f"ERROR: left and right labels must differ (both become '{safe_name(left.label)}'): "
            f"{left.label!r} vs {right.label!r}"
        )


def read_options(cfg: Dict[str, Any], no_storage: bool = False, no_sync_script: bool = False) -> Options:
    return Options(
        storage=bool(deep_get(cfg, ["options", "storage"], True)) and not no_storage,
        sync_script=bool(deep_get(cfg, ["options", "sync_script"], True)) and not no_sync_script,
    )


def read_table_filter(cfg: Dict[str, Any], include: Optional[List[str]] = None, exclude: Optional[List[str]] = None) -> TableFilter:
    """Config patterns extended by CLI patterns."""
    cfg_includes = deep_get(cfg, ["table_filter", "include"], []) or []
    cfg_excludes = deep_get(cfg, ["table_filter", "exclude"], []) or []
    return TableFilter(
        include=[str(p) for p in cfg_includes] + list(include or []),
        exclude=[str(p) for p in cfg_excludes] + list(exclude or []),
    )


def read_tables(cfg: Dict[str, Any]) -> List[str]:
    """Candidate table names; blanks are dropped."""
    tables = cfg.get("tables") or list(DEFAULT_TABLES)
    if not isinstance(tables, list):
        raise SystemExit("ERROR: 'tables' must be a list of table names")
    return [str(t).strip() for t in tables if str(t).strip()]


def read_bucket_catalog(cfg: Dict[str, Any]) -> Tuple[BucketTemplate, ...]:
    entries = cfg.get("bucket_catalog")
    if not entries:
        return DEFAULT_BUCKET_CATALOG
    try:
        return catalog_from_config(entries)
    except (TypeError, ValueError, AttributeError) as exc:
        raise SystemExit(f"ERROR: invalid bucket_catalog: {exc}")


def resolve_out_dir(cfg: Dict[str, Any], override: Optional[str]) -> Path:
    return Path(override or cfg.get("out_dir") or DEFAULT_OUT_DIR).resolve()
