"""Maintenance operations exposed to agents and the CLI."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from pydantic import Field

from factsets.config.models import FactsetsConfig
from factsets.freshness.dependencies import current_fingerprints, evaluate_skill
from factsets.freshness.evaluator import evaluate_fact, evaluate_resource
from factsets.interfaces.store import KnowledgeStore
from factsets.maintenance.report import (
    CamelModel,
    CheckStaleInput,
    CheckStaleOutput,
    MaintenanceReportBuilder,
)
from factsets.snapshots.overflow import Summarizer, apply_overflow_policy
from factsets.timeutil import utc_now

logger = logging.getLogger(__name__)


class SkillToReview(CamelModel):
    id: int
    name: str


class RefreshResult(CamelModel):
    updated: int = 0
    skills_to_review: list[SkillToReview] = Field(default_factory=list)


class SnapshotUpdateResult(CamelModel):
    found: bool
    updated: bool = False
    policy_applied: str | None = None
    original_bytes: int = 0
    stored_bytes: int = 0
    skills_to_review: list[SkillToReview] = Field(default_factory=list)


class SkillReviewResult(CamelModel):
    found: bool
    refreshed: int = 0
    dangling: int = 0
    reviewed: bool = False


class ResourceFreshness(CamelModel):
    found: bool
    id: int | None = None
    uri: str | None = None
    category: str | None = None
    state: str | None = None
    age_hours: float | None = None
    threshold_hours: float | None = None
    hours_until_stale: float | None = None


def check_stale(
    store: KnowledgeStore,
    request: CheckStaleInput | None = None,
    config: FactsetsConfig | None = None,
    *,
    now: datetime | None = None,
) -> CheckStaleOutput:
    """Evaluate every matching resource, skill and fact against one clock reading."""
    request = request or CheckStaleInput()
    config = config or FactsetsConfig()
    now = now or utc_now()
    builder = MaintenanceReportBuilder()

    if request.check_resources:
        for resource in store.get_resources_by_filter(tags=request.tags):
            verdict = evaluate_resource(
                resource,
                config.freshness,
                config.staleness_warning_threshold,
                now=now,
                max_age_hours=request.max_age_hours,
            )
            builder.add_resource(resource, verdict)

    if request.check_skills:
        for skill in store.get_skills_by_filter(tags=request.tags):
            builder.add_skill(skill, evaluate_skill(skill, store.resolve_reference_target))

    if request.check_facts:
        for fact in store.get_facts_by_filter(verified=False, tags=request.tags):
            verdict = evaluate_fact(fact, now=now, expiration_days=config.facts.expiration_days)
            builder.add_fact(fact, verdict)

    output = builder.build()
    logger.info(
        "Staleness check: %d stale resources, %d stale skills, %d unverified facts, %d pending review",
        output.summary.resources,
        output.summary.skills,
        output.summary.facts,
        output.summary.pending_review,
    )
    return output


def _skills_to_review(store: KnowledgeStore, resource_ids: list[int]) -> list[SkillToReview]:
    return [
        SkillToReview(id=skill_id, name=name)
        for skill_id, name in store.skills_referencing_resources(resource_ids)
    ]


def mark_resources_refreshed(
    store: KnowledgeStore,
    resource_ids: Iterable[int],
    *,
    now: datetime | None = None,
) -> RefreshResult:
    """Stamp resources as verified now. Unknown or deleted ids are skipped."""
    now = now or utc_now()
    refreshed: list[int] = []
    for resource_id in dict.fromkeys(resource_ids):
        if store.update_last_verified_at(resource_id, now):
            refreshed.append(resource_id)
        else:
            logger.debug("Resource %s not refreshed (missing, deleted or newer)", resource_id)

    return RefreshResult(
        updated=len(refreshed),
        skills_to_review=_skills_to_review(store, refreshed),
    )


def update_resource_snapshot(
    store: KnowledgeStore,
    resource_id: int,
    snapshot: str | bytes,
    config: FactsetsConfig | None = None,
    summarizer: Summarizer | None = None,
    *,
    now: datetime | None = None,
) -> SnapshotUpdateResult:
    """Store re-fetched content, applying the overflow policy first."""
    config = config or FactsetsConfig()
    resource = store.get_resource(resource_id)
    if resource is None or resource.deleted:
        return SnapshotUpdateResult(found=False)

    result = apply_overflow_policy(
        snapshot,
        config.snapshots.max_size_kb,
        config.snapshots.overflow_behavior,
        summarizer=summarizer,
        noise_patterns=config.snapshots.noise_patterns,
    )
    updated = store.write_snapshot(
        resource_id,
        result.snapshot,
        now or utc_now(),
        config.snapshots.retention_versions,
    )
    if not updated:
        logger.info("Snapshot for %s not stored: a newer fetch is already recorded", resource.uri)
    elif result.policy_applied:
        logger.info(
            "Snapshot for %s exceeded %d KB; applied %s (%d -> %d bytes)",
            resource.uri,
            config.snapshots.max_size_kb,
            result.policy_applied,
            result.original_bytes,
            result.stored_bytes,
        )

    return SnapshotUpdateResult(
        found=True,
        updated=updated,
        policy_applied=result.policy_applied,
        original_bytes=result.original_bytes,
        stored_bytes=result.stored_bytes,
        skills_to_review=_skills_to_review(store, [resource_id]) if updated else [],
    )


def review_skill(store: KnowledgeStore, skill_id: int) -> SkillReviewResult:
    """Accept a skill's dependencies as they are now and clear its review flag.

    Dangling references keep their old fingerprint and stay stale until
    the skill is edited to drop them.
    """
    skill = store.get_skill(skill_id)
    if skill is None or skill.deleted:
        return SkillReviewResult(found=False)

    refreshed = 0
    dangling = 0
    live = current_fingerprints(skill, store.resolve_reference_target)
    for index, (ref, current) in enumerate(zip(skill.references, live)):
        if current is None:
            dangling += 1
            continue
        if current == ref.recorded_fingerprint:
            continue
        if store.update_recorded_fingerprint(skill.id, index, current, expected=ref.recorded_fingerprint):
            refreshed += 1
        else:
            logger.warning(
                "Reference %d of skill %s changed concurrently; leaving it for the next review",
                index,
                skill.name,
            )

    reviewed = store.set_skill_reviewed(skill.id, True)
    logger.info("Reviewed skill %s: %d references refreshed, %d dangling", skill.name, refreshed, dangling)
    return SkillReviewResult(found=True, refreshed=refreshed, dangling=dangling, reviewed=reviewed)


def get_resource_freshness(
    store: KnowledgeStore,
    resource_id: int | None = None,
    uri: str | None = None,
    config: FactsetsConfig | None = None,
    *,
    now: datetime | None = None,
) -> ResourceFreshness:
    """Freshness verdict for one resource, looked up by id or URI."""
    config = config or FactsetsConfig()
    if resource_id is not None:
        resource = store.get_resource(resource_id)
    elif uri is not None:
        resource = store.get_resource_by_uri(uri)
    else:
        raise ValueError("resource_id or uri is required")

    if resource is None or resource.deleted:
        return ResourceFreshness(found=False)

    verdict = evaluate_resource(
        resource,
        config.freshness,
        config.staleness_warning_threshold,
        now=now or utc_now(),
    )
    return ResourceFreshness(
        found=True,
        id=resource.id,
        uri=resource.uri,
        category=verdict.category.value,
        state=verdict.state.value,
        age_hours=verdict.age_hours,
        threshold_hours=verdict.threshold_hours,
        hours_until_stale=verdict.hours_until_stale,
    )
