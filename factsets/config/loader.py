"""YAML config loading with env var expansion, layered with database overrides."""

from __future__ import annotations

import copy
import json
import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

import yaml
from pydantic import ValidationError

from .keys import CONFIG_KEYS, FRESHNESS_MAP_KEY, parse_freshness_map, parse_value
from .models import ConfigError, FactsetsConfig

logger = logging.getLogger(__name__)


class ConfigRows(Protocol):
    """Key/value persistence for configuration."""

    def get_all_config(self) -> dict[str, str]: ...

    def set_config(self, key: str, value: str) -> None: ...


def load_config(cli_path: str | None = None) -> FactsetsConfig:
    """Load config with resolution order: CLI > project-local > user-global > defaults."""
    config_paths = [
        Path(cli_path) if cli_path else None,
        Path("./factsets.yaml"),
        Path.home() / ".factsets" / "config.yaml",
    ]

    for path in config_paths:
        if path and path.exists():
            try:
                with open(path) as f:
                    raw = yaml.safe_load(f)
                if raw is None:
                    continue
                raw = _expand_env_vars(raw)
                return FactsetsConfig(**raw)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
            except ValidationError as e:
                raise ValueError(f"Invalid config in {path}: {e}") from e

    return FactsetsConfig()


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def _set_path(data: dict, path: tuple[str, ...], value: Any) -> None:
    target = data
    for part in path[:-1]:
        target = target[part]
    target[path[-1]] = value


def _candidate(data: dict, key: str, raw: str) -> dict:
    """Return a copy of *data* with one flat key applied. Raises ValueError/TypeError."""
    spec = CONFIG_KEYS[key]
    value = parse_value(spec, raw)
    trial = copy.deepcopy(data)
    if key == FRESHNESS_MAP_KEY:
        trial["freshness"].update(parse_freshness_map(value))
    else:
        _set_path(trial, spec.path, value)
    return trial


def _row_order(key: str) -> int:
    # The freshness map goes first so per-category keys can refine it.
    return 0 if key == FRESHNESS_MAP_KEY else 1


def apply_config_rows(config: FactsetsConfig, rows: Mapping[str, str]) -> FactsetsConfig:
    """Layer stored key/value rows over *config*.

    Each key is applied on its own: a malformed or out-of-range value is
    logged and skipped, leaving that setting at its previous value while
    the other keys still apply.
    """
    data = config.model_dump()
    for key in sorted(rows, key=_row_order):
        if key not in CONFIG_KEYS:
            continue
        try:
            trial = _candidate(data, key, rows[key])
            FactsetsConfig.model_validate(trial)
        except (ValueError, TypeError, KeyError) as e:
            # pydantic's ValidationError and json's JSONDecodeError are ValueErrors
            logger.warning("Ignoring config %s=%r: %s", key, rows[key], e)
            continue
        data = trial
    return FactsetsConfig.model_validate(data)


def validate_config_value(key: str, value: str) -> None:
    """Reject a value before it is stored. Unknown keys are allowed."""
    if key not in CONFIG_KEYS:
        return
    base = FactsetsConfig().model_dump()
    try:
        trial = _candidate(base, key, value)
    except json.JSONDecodeError as e:
        raise ConfigError(key, f"must be valid JSON ({e.msg})") from e
    except (ValueError, TypeError, KeyError) as e:
        raise ConfigError(key, str(e)) from e
    try:
        FactsetsConfig.model_validate(trial)
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise ConfigError(key, messages) from e


def set_config_value(rows: ConfigRows, key: str, value: str) -> None:
    """Validate then persist one configuration value."""
    validate_config_value(key, value)
    rows.set_config(key, value)
    logger.info("Config %s set to %r", key, value)


def resolve_config(
    cli_path: str | None = None,
    rows: ConfigRows | None = None,
    **overrides: Any,
) -> FactsetsConfig:
    """Defaults < YAML file < stored rows < explicit overrides.

    Overrides with a None value are ignored so CLI options can be passed
    through unconditionally.
    """
    config = load_config(cli_path)
    if rows is not None:
        config = apply_config_rows(config, rows.get_all_config())
    explicit = {k: v for k, v in overrides.items() if v is not None}
    if explicit:
        config = FactsetsConfig.model_validate({**config.model_dump(), **explicit})
    return config


def describe_config_keys() -> dict[str, dict[str, Any]]:
    """Key metadata with current defaults, for discovery."""
    defaults = FactsetsConfig().model_dump()
    described = {}
    for key, spec in CONFIG_KEYS.items():
        value: Any = defaults
        for part in spec.path:
            value = value[part]
        described[key] = {"type": spec.kind, "description": spec.description, "default": value}
    return described


# Default YAML template for `factsets config init`
DEFAULT_CONFIG_TEMPLATE = """\
# factsets.yaml

database_url: ".facts.db"
client: "github-copilot"        # github-copilot | cursor | claude | generic
# skills_dir: ".claude/skills"

# Hours before a resource in each category is considered stale
freshness:
  source_code: 12
  lock_files: 168
  config_files: 24
  documentation: 72
  generated_files: 1
  api_schemas: 24
  database: 72
  scripts: 72
  tests: 24
  assets: 168
  infrastructure: 24
  default: 168

staleness_warning_threshold: 0.8  # warn at 80% of the limit

# Fact lifecycle (null = disabled)
facts:
  auto_verify_after_days: null
  expiration_days: null

# Snapshots
snapshots:
  max_size_kb: 100
  overflow_behavior: "summarize"   # truncate | summarize | remove_noise | auto
  retention_versions: 1

# Maintenance
maintenance:
  auto_prune_orphan_tags: false
  soft_delete_retention_days: 7

# Background worker intervals (seconds)
# worker:
#   poll_interval: 60
#   auto_verify: 3600

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
