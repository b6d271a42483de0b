"""Staleness reports, refresh/review operations and background sweeps."""

from factsets.maintenance.operations import (
    RefreshResult,
    ResourceFreshness,
    SkillReviewResult,
    SkillToReview,
    SnapshotUpdateResult,
    check_stale,
    get_resource_freshness,
    mark_resources_refreshed,
    review_skill,
    update_resource_snapshot,
)
from factsets.maintenance.report import (
    ApproachingStaleResourceItem,
    CheckStaleInput,
    CheckStaleOutput,
    MaintenanceReportBuilder,
    SkillReviewItem,
    StaleDependencyItem,
    StaleResourceItem,
    StaleSkillItem,
    StaleSummary,
    UnverifiedFactItem,
)
from factsets.maintenance.sweeps import SWEEPS, SweepOutcome
from factsets.maintenance.worker import MaintenanceWorker

__all__ = [
    "ApproachingStaleResourceItem",
    "CheckStaleInput",
    "CheckStaleOutput",
    "MaintenanceReportBuilder",
    "MaintenanceWorker",
    "RefreshResult",
    "ResourceFreshness",
    "SWEEPS",
    "SkillReviewItem",
    "SkillReviewResult",
    "SkillToReview",
    "SnapshotUpdateResult",
    "StaleDependencyItem",
    "StaleResourceItem",
    "StaleSkillItem",
    "StaleSummary",
    "SweepOutcome",
    "UnverifiedFactItem",
    "check_stale",
    "get_resource_freshness",
    "mark_resources_refreshed",
    "review_skill",
    "update_resource_snapshot",
]
