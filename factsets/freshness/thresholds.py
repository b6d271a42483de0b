"""Per-category staleness thresholds."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from factsets.freshness.categories import FreshnessCategory

# Hours after which a verified resource counts as stale.
DEFAULT_THRESHOLD_HOURS: dict[FreshnessCategory, float] = {
    FreshnessCategory.source_code: 12,  # active development
    FreshnessCategory.lock_files: 24 * 7,
    FreshnessCategory.config_files: 24,
    FreshnessCategory.documentation: 24 * 3,
    FreshnessCategory.generated_files: 1,
    FreshnessCategory.api_schemas: 24,
    FreshnessCategory.database: 24 * 3,
    FreshnessCategory.scripts: 24 * 3,
    FreshnessCategory.tests: 24,
    FreshnessCategory.assets: 24 * 7,
    FreshnessCategory.infrastructure: 24,
    FreshnessCategory.default: 24 * 7,
}


def threshold_hours(
    category: FreshnessCategory,
    overrides: Mapping[Any, float] | Any | None = None,
) -> float:
    """Resolve the threshold for *category*.

    *overrides* is either a mapping keyed by category (member, camelCase
    value or snake_case name) or an object with one attribute per category
    name, such as ``FreshnessConfig``. Missing entries fall back to the
    compiled default. Values are assumed validated (> 0) upstream.
    """
    if overrides is not None:
        if isinstance(overrides, Mapping):
            for key in (category, category.value, category.name):
                value = overrides.get(key)
                if value is not None:
                    return float(value)
        else:
            value = getattr(overrides, category.name, None)
            if value is not None:
                return float(value)
    return float(DEFAULT_THRESHOLD_HOURS[category])
