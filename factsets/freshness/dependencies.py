"""Skill dependency tracking via recorded fingerprints.

Every ``SkillReference`` remembers the fingerprint its target had when the
skill was last reviewed. Recomputing the fingerprint from the live entity
and comparing the two tells us whether the skill may have drifted.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from factsets.interfaces.entities import (
    Entity,
    Fact,
    ReferenceType,
    Resource,
    Skill,
)
from factsets.timeutil import to_iso

logger = logging.getLogger(__name__)

REASON_CHANGED = "dependency_changed"
REASON_DELETED = "reference_target_deleted"

_NAME_LIMIT = 80

EntityResolver = Callable[[ReferenceType, int], Entity | None]


def compute_hash(content: str) -> str:
    """Full SHA-256 hex digest of UTF-8 text."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def fingerprint(entity: Entity) -> str:
    """Comparable snapshot of the entity state a skill depends on.

    Resources use their snapshot content when one is stored, otherwise
    their verification time. Facts and skills use their content.
    """
    if isinstance(entity, Resource):
        if entity.snapshot is not None:
            return f"snapshot:{entity.snapshot_hash or compute_hash(entity.snapshot)}"
        if entity.last_verified_at is None:
            return "verified:never"
        return f"verified:{to_iso(entity.last_verified_at)}"
    if isinstance(entity, Skill):
        return f"content:{entity.content_hash or compute_hash(entity.content)}"
    if isinstance(entity, Fact):
        return f"content:{compute_hash(entity.content)}"
    raise TypeError(f"Cannot fingerprint {type(entity).__name__}")


def display_name(entity: Entity) -> str:
    if isinstance(entity, Resource):
        return entity.uri
    if isinstance(entity, Skill):
        return entity.name
    content = entity.content
    return content if len(content) <= _NAME_LIMIT else content[: _NAME_LIMIT - 3] + "..."


class StaleDependency(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ReferenceType
    id: int
    name: str
    reason: str


class SkillDependencyVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill_id: int
    stale: bool
    reason: str | None = None
    stale_dependencies: list[StaleDependency] = Field(default_factory=list)


def _live(entity: Entity | None) -> Entity | None:
    if entity is None or entity.deleted_at is not None:
        return None
    return entity


def current_fingerprints(skill: Skill, resolve_entity: EntityResolver) -> list[str | None]:
    """Live fingerprint per reference, None where the target is gone."""
    result: list[str | None] = []
    for ref in skill.references:
        target = _live(resolve_entity(ref.type, ref.target_id))
        result.append(fingerprint(target) if target is not None else None)
    return result


def evaluate_skill(skill: Skill, resolve_entity: EntityResolver) -> SkillDependencyVerdict:
    """Check every reference of *skill*; all failures are reported."""
    stale: list[StaleDependency] = []

    for ref in skill.references:
        resolved = resolve_entity(ref.type, ref.target_id)
        target = _live(resolved)
        if target is None:
            name = display_name(resolved) if resolved is not None else f"{ref.type.value}#{ref.target_id}"
            stale.append(StaleDependency(
                type=ref.type, id=ref.target_id, name=name, reason=REASON_DELETED,
            ))
            continue
        if fingerprint(target) != ref.recorded_fingerprint:
            stale.append(StaleDependency(
                type=ref.type, id=ref.target_id, name=display_name(target), reason=REASON_CHANGED,
            ))

    if not stale:
        return SkillDependencyVerdict(skill_id=skill.id, stale=False)

    seen = {dep.reason for dep in stale}
    reason = "+".join(r for r in (REASON_CHANGED, REASON_DELETED) if r in seen)
    logger.debug("skill %s stale: %s (%d deps)", skill.name, reason, len(stale))
    return SkillDependencyVerdict(
        skill_id=skill.id,
        stale=True,
        reason=reason,
        stale_dependencies=stale,
    )
