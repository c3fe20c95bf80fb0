"""Configuration loading and runtime settings."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as SettingsError

from core.errors import ValidationError

DEFAULT_EMBEDDINGS_URL = "http://localhost:8080/embed"

DEFAULT_CONFIG: dict[str, Any] = {
    "paths": {"db_path": "~/.local/share/memo/memo.db"},
    "embeddings": {
        "provider": "tei",
        "url": DEFAULT_EMBEDDINGS_URL,
        "dimension": 768,
    },
    "prune": {"days": 30},
    "logging": {"level": "WARNING"},
}

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "EMBEDDINGS_URL": ("embeddings", "url"),
    "MEMO_EMBED_PROVIDER": ("embeddings", "provider"),
    "MEMO_DB_PATH": ("paths", "db_path"),
    "MEMO_LOG_LEVEL": ("logging", "level"),
}


class EmbeddingSettings(BaseModel):
    """Embedding gateway settings."""

    provider: str = "tei"
    url: str = DEFAULT_EMBEDDINGS_URL
    dimension: int = Field(default=768, gt=0)


class Settings(BaseModel):
    """Effective settings, resolved once per process."""

    db_path: Path
    embeddings: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    prune_days: int = Field(default=30, ge=0)
    log_level: str = "WARNING"


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


def user_config_path(environ: Mapping[str, str]) -> Path:
    explicit = environ.get("MEMO_CONFIG")
    if explicit:
        return Path(explicit).expanduser()
    return Path("~/.config/memo/config.yaml").expanduser()


def apply_env_overrides(config: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay non-empty environment variables onto the merged config."""
    overrides: dict[str, Any] = {}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            overrides.setdefault(section, {})[key] = value
    return merge_dicts(config, overrides)


def load_effective_config(root: Path, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Load defaults, repo config, user config and env overrides, in that order."""
    env = os.environ if environ is None else environ
    try:
        merged = merge_dicts(DEFAULT_CONFIG, load_yaml(root / "config" / "default.yaml"))
        merged = merge_dicts(merged, load_yaml(user_config_path(env)))
    except (ValueError, yaml.YAMLError) as exc:
        raise ValidationError(f"invalid config: {exc}") from exc
    return apply_env_overrides(merged, env)


def build_settings(config: dict[str, Any]) -> Settings:
    """Validate a merged config mapping into typed settings."""
    try:
        paths_cfg = config.get("paths", {})
        return Settings(
            db_path=Path(str(paths_cfg.get("db_path", DEFAULT_CONFIG["paths"]["db_path"]))).expanduser(),
            embeddings=EmbeddingSettings(**config.get("embeddings", {})),
            prune_days=int(config.get("prune", {}).get("days", 30)),
            log_level=str(config.get("logging", {}).get("level", "WARNING")).upper(),
        )
    except (SettingsError, AttributeError, TypeError, ValueError) as exc:
        raise ValidationError(f"invalid config: {exc}") from exc
