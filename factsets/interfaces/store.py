"""Storage interface consumed by the freshness engine."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol, runtime_checkable

from factsets.interfaces.entities import (
    Entity,
    Fact,
    ReferenceType,
    Resource,
    ResourceType,
    Skill,
)


class _Unset:
    """Sentinel for "no expected value" in compare-and-set updates."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


@runtime_checkable
class EntityReader(Protocol):
    """Filtered reads over resources, skills and facts."""

    def get_resources_by_filter(
        self,
        tags: Iterable[str] | None = None,
        type: ResourceType | None = None,
        include_deleted: bool = False,
    ) -> list[Resource]: ...

    def get_skills_by_filter(self, tags: Iterable[str] | None = None) -> list[Skill]: ...

    def get_facts_by_filter(
        self,
        verified: bool | None = None,
        tags: Iterable[str] | None = None,
    ) -> list[Fact]: ...

    def resolve_reference_target(self, type: ReferenceType, id: int) -> Entity | None: ...


@runtime_checkable
class FreshnessWriter(Protocol):
    """Single-row conditional updates issued after a caller re-fetches content."""

    def update_last_verified_at(self, resource_id: int, timestamp: datetime) -> bool: ...

    def update_recorded_fingerprint(
        self,
        skill_id: int,
        reference_index: int,
        fingerprint: str,
        expected: str | None | _Unset = UNSET,
    ) -> bool: ...


@runtime_checkable
class KnowledgeStore(EntityReader, FreshnessWriter, Protocol):
    """Everything the maintenance operations need from storage."""

    def get_resource(self, resource_id: int) -> Resource | None: ...

    def get_resource_by_uri(self, uri: str) -> Resource | None: ...

    def get_skill(self, skill_id: int) -> Skill | None: ...

    def set_skill_reviewed(self, skill_id: int, reviewed: bool = True) -> bool: ...

    def write_snapshot(
        self,
        resource_id: int,
        snapshot: str,
        verified_at: datetime,
        retention_versions: int = 1,
    ) -> bool: ...

    def skills_referencing_resources(self, resource_ids: Iterable[int]) -> list[tuple[int, str]]: ...
