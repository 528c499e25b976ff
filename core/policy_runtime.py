"""Configuration loading and runtime directory bootstrapping."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "default.yaml"


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_effective_config(root: Path, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Merge packaged defaults, ``<root>/config/sentinel.yaml`` and explicit overrides."""
    merged = load_yaml(DEFAULT_CONFIG_PATH)
    merged = merge_dicts(merged, load_yaml(root / "config" / "sentinel.yaml"))
    if overrides:
        merged = merge_dicts(merged, overrides)
    return merged


def ensure_runtime_dirs(root: Path, config: dict[str, Any]) -> dict[str, Path]:
    """Ensure project and log directories exist and return resolved paths."""
    paths_cfg = config.get("paths", {})
    project_dir = (root / paths_cfg.get("project_dir", ".")).resolve()
    db_path = (root / paths_cfg.get("db_path", ".sentinel/sentinel.db")).resolve()
    audit_log_path = (root / paths_cfg.get("audit_log_path", ".sentinel/audit.jsonl")).resolve()

    project_dir.mkdir(parents=True, exist_ok=True)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    audit_log_path.parent.mkdir(parents=True, exist_ok=True)

    return {
        "project_dir": project_dir,
        "db_path": db_path,
        "audit_log_path": audit_log_path,
    }
