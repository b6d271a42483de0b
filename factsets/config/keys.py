"""Flat key/value configuration surface stored in the database.

Each key maps onto a field path inside ``FactsetsConfig``. Values are
persisted as text and parsed according to their kind.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Literal

from factsets.freshness.categories import FreshnessCategory

ValueKind = Literal["number", "integer", "boolean", "string", "json"]

FRESHNESS_MAP_KEY = "freshness"


@dataclass(frozen=True)
class ConfigKey:
    path: tuple[str, ...]
    kind: ValueKind
    description: str
    nullable: bool = False


def _freshness_keys() -> dict[str, ConfigKey]:
    keys = {}
    for cat in FreshnessCategory:
        label = cat.name.replace("_", " ")
        keys[f"freshness_{cat.name}"] = ConfigKey(
            ("freshness", cat.name), "number", f"Hours before {label} resources are considered stale"
        )
    return keys


CONFIG_KEYS: dict[str, ConfigKey] = {
    "client": ConfigKey(("client",), "string", "Client type; determines the default skills directory"),
    "skills_dir": ConfigKey(("skills_dir",), "string", "Override skills directory path", nullable=True),
    **_freshness_keys(),
    FRESHNESS_MAP_KEY: ConfigKey(
        ("freshness",), "json", "JSON object mapping categories to staleness hours"
    ),
    "staleness_warning_threshold": ConfigKey(
        ("staleness_warning_threshold",), "number",
        "Fraction of the freshness limit at which to warn (0-1, e.g. 0.8)",
    ),
    "fact_auto_verify_after_days": ConfigKey(
        ("facts", "auto_verify_after_days"), "number",
        "Days after which retrieved, uncontested facts are auto-verified (null = disabled)",
        nullable=True,
    ),
    "fact_expiration_days": ConfigKey(
        ("facts", "expiration_days"), "number",
        "Days after which unverified facts are soft-deleted by the sweep (null = disabled)",
        nullable=True,
    ),
    "snapshot_max_size_kb": ConfigKey(
        ("snapshots", "max_size_kb"), "integer", "Maximum snapshot size in KB before overflow applies"
    ),
    "snapshot_overflow_behavior": ConfigKey(
        ("snapshots", "overflow_behavior"), "string",
        "Overflow policy: truncate, summarize, remove_noise, auto",
    ),
    "snapshot_retention_versions": ConfigKey(
        ("snapshots", "retention_versions"), "integer", "Snapshot versions retained per resource"
    ),
    "snapshot_noise_patterns": ConfigKey(
        ("snapshots", "noise_patterns"), "json", "JSON array of regexes stripped by remove_noise"
    ),
    "auto_prune_orphan_tags": ConfigKey(
        ("maintenance", "auto_prune_orphan_tags"), "boolean", "Prune tags not linked to any entity"
    ),
    "soft_delete_retention_days": ConfigKey(
        ("maintenance", "soft_delete_retention_days"), "integer",
        "Days to keep soft-deleted items before hard deletion",
    ),
    "worker_interval_auto_verify": ConfigKey(
        ("worker", "auto_verify"), "number", "Seconds between auto-verify runs"
    ),
    "worker_interval_expire_facts": ConfigKey(
        ("worker", "expire_facts"), "number", "Seconds between fact expiration runs"
    ),
    "worker_interval_prune_snapshots": ConfigKey(
        ("worker", "prune_snapshots"), "number", "Seconds between snapshot pruning runs"
    ),
    "worker_interval_prune_tags": ConfigKey(
        ("worker", "prune_tags"), "number", "Seconds between orphan tag pruning runs"
    ),
    "worker_interval_hard_delete": ConfigKey(
        ("worker", "hard_delete"), "number", "Seconds between hard deletion runs"
    ),
}


def parse_value(key: ConfigKey, raw: str) -> Any:
    """Parse stored text into a Python value. Raises ValueError when malformed."""
    text = raw.strip()
    if key.nullable and text.lower() in ("", "null", "none"):
        return None
    if key.kind == "number":
        return float(text)
    if key.kind == "integer":
        number = float(text)
        if not number.is_integer():
            raise ValueError(f"expected an integer, got {raw!r}")
        return int(number)
    if key.kind == "boolean":
        if text not in ("true", "false"):
            raise ValueError("must be 'true' or 'false'")
        return text == "true"
    if key.kind == "json":
        return json.loads(text)
    return raw


def parse_freshness_map(value: Any) -> dict[str, float]:
    """Normalise a ``{category: hours}`` object onto FreshnessConfig field names."""
    if not isinstance(value, dict):
        raise ValueError("freshness must be a JSON object")
    parsed = {}
    for name, hours in value.items():
        parsed[FreshnessCategory.parse(name).name] = float(hours)
    return parsed
