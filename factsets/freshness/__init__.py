"""Freshness engine: categories, thresholds, staleness verdicts and dependency drift."""

from factsets.freshness.categories import (
    CATEGORY_RULES,
    CategoryRule,
    Exclusion,
    FreshnessCategory,
    classify,
    matching_categories,
)
from factsets.freshness.dependencies import (
    SkillDependencyVerdict,
    StaleDependency,
    compute_hash,
    current_fingerprints,
    evaluate_skill,
    fingerprint,
)
from factsets.freshness.evaluator import (
    FactVerdict,
    ResourceVerdict,
    StalenessState,
    StalenessVerdict,
    evaluate,
    evaluate_fact,
    evaluate_resource,
)
from factsets.freshness.thresholds import DEFAULT_THRESHOLD_HOURS, threshold_hours

__all__ = [
    "CATEGORY_RULES",
    "CategoryRule",
    "DEFAULT_THRESHOLD_HOURS",
    "Exclusion",
    "FactVerdict",
    "FreshnessCategory",
    "ResourceVerdict",
    "SkillDependencyVerdict",
    "StaleDependency",
    "StalenessState",
    "StalenessVerdict",
    "classify",
    "compute_hash",
    "current_fingerprints",
    "evaluate",
    "evaluate_fact",
    "evaluate_resource",
    "evaluate_skill",
    "fingerprint",
    "matching_categories",
    "threshold_hours",
]
