"""Reference tables — versioned YAML data behind the engine.

Prefix/stopword/noise tables, the merchant dictionary, the nature rules and
the bank descriptor rules live in YAML files under ``descriptor_engine/data``.
A directory override (argument or DESCRIPTOR_ENGINE_TABLES) can replace any of
them; files missing from the override fall back to the bundled copy.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from .logging_setup import get_logger

logger = get_logger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
TABLES_ENV_VAR = "DESCRIPTOR_ENGINE_TABLES"

NORMALIZER_TABLE = "normalizer.yaml"
MERCHANT_TABLE = "merchants.yaml"
NATURE_TABLE = "nature_rules.yaml"
DESCRIPTOR_TABLE = "descriptor_rules.yaml"
ALL_TABLES = (NORMALIZER_TABLE, MERCHANT_TABLE, NATURE_TABLE, DESCRIPTOR_TABLE)


class TableError(ValueError):
    """A reference table file is missing required data or is malformed."""


def resolve_tables_dir(tables_dir: str | Path | None = None) -> Path | None:
    """Explicit directory first, then the environment, else None (bundled only)."""
    if tables_dir is not None:
        return Path(tables_dir)
    env_dir = os.environ.get(TABLES_ENV_VAR)
    return Path(env_dir) if env_dir else None


def table_path(name: str, tables_dir: str | Path | None = None) -> Path:
    override = resolve_tables_dir(tables_dir)
    if override is not None and (override / name).exists():
        return override / name
    return DATA_DIR / name


def load_table(name: str, tables_dir: str | Path | None = None) -> dict[str, Any]:
    """Load one YAML table as a dict."""
    path = table_path(name, tables_dir)
    if not path.exists():
        raise TableError(f"Table not found: {path}")
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise TableError(f"{path}: expected a mapping at the top level")
    logger.debug("Loaded %s (version %s) from %s", name, data.get("version"), path)
    return data


def string_list(data: dict[str, Any], key: str, source: str = "<table>") -> list[str]:
    """Read ``data[key]`` as a list of strings; absent means empty."""
    value = data.get(key) or []
    if not isinstance(value, list):
        raise TableError(f"{source}: '{key}' must be a list")
    return [str(item) for item in value]


def table_versions(tables_dir: str | Path | None = None) -> dict[str, Any]:
    """Map each table file name to its declared version."""
    return {name: load_table(name, tables_dir).get("version") for name in ALL_TABLES}
