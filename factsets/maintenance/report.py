"""Input/output models for check_stale and the builder that fills them."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from factsets.freshness.dependencies import SkillDependencyVerdict
from factsets.freshness.evaluator import FactVerdict, ResourceVerdict, StalenessState
from factsets.interfaces.entities import Fact, ReferenceType, Resource, RetrievalMethod, Skill


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire (``model_dump(by_alias=True)``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckStaleInput(CamelModel):
    check_resources: bool = True
    check_skills: bool = True
    check_facts: bool = True
    max_age_hours: float | None = Field(default=None, gt=0)
    tags: list[str] | None = None


class StaleResourceItem(CamelModel):
    id: int
    uri: str
    type: str
    last_verified_at: datetime | None = None
    days_stale: int
    hours_stale: int
    retrieval_method: RetrievalMethod


class ApproachingStaleResourceItem(CamelModel):
    id: int
    uri: str
    type: str
    category: str
    last_verified_at: datetime | None = None
    hours_until_stale: float
    threshold_hours: float


class StaleDependencyItem(CamelModel):
    type: ReferenceType
    id: int
    name: str


class StaleSkillItem(CamelModel):
    id: int
    name: str
    reason: str
    stale_dependencies: list[StaleDependencyItem] = Field(default_factory=list)


class UnverifiedFactItem(CamelModel):
    id: int
    content: str
    days_old: int
    source_type: str
    pending_expiration: bool = False


class SkillReviewItem(CamelModel):
    id: int
    name: str
    title: str
    file_path: str | None = None


class StaleSummary(CamelModel):
    total_stale: int = 0
    resources: int = 0
    skills: int = 0
    facts: int = 0
    pending_review: int = 0
    approaching: int = 0


class CheckStaleOutput(CamelModel):
    stale_resources: list[StaleResourceItem] = Field(default_factory=list)
    approaching_stale_resources: list[ApproachingStaleResourceItem] = Field(default_factory=list)
    stale_skills: list[StaleSkillItem] = Field(default_factory=list)
    unverified_facts: list[UnverifiedFactItem] = Field(default_factory=list)
    skills_needing_review: list[SkillReviewItem] = Field(default_factory=list)
    summary: StaleSummary = Field(default_factory=StaleSummary)


class MaintenanceReportBuilder:
    """Collects verdicts and turns them into a CheckStaleOutput.

    Pure aggregation: nothing here reads or writes storage. Adding the
    same entity twice replaces the earlier entry, so counts never double.
    """

    def __init__(self) -> None:
        self._stale_resources: dict[int, StaleResourceItem] = {}
        self._approaching: dict[int, ApproachingStaleResourceItem] = {}
        self._stale_skills: dict[int, StaleSkillItem] = {}
        self._review: dict[int, SkillReviewItem] = {}
        self._facts: dict[int, UnverifiedFactItem] = {}

    def add_resource(self, resource: Resource, verdict: ResourceVerdict) -> None:
        self._stale_resources.pop(resource.id, None)
        self._approaching.pop(resource.id, None)

        if verdict.state is StalenessState.stale:
            age = verdict.age_hours
            self._stale_resources[resource.id] = StaleResourceItem(
                id=resource.id,
                uri=resource.uri,
                type=resource.type.value,
                last_verified_at=resource.last_verified_at,
                days_stale=int(age // 24) if age is not None else 0,
                hours_stale=int(age) if age is not None else 0,
                retrieval_method=resource.retrieval_method,
            )
        elif verdict.state is StalenessState.warning:
            self._approaching[resource.id] = ApproachingStaleResourceItem(
                id=resource.id,
                uri=resource.uri,
                type=resource.type.value,
                category=verdict.category.value,
                last_verified_at=resource.last_verified_at,
                hours_until_stale=round(verdict.hours_until_stale, 2),
                threshold_hours=verdict.threshold_hours,
            )

    def add_skill(self, skill: Skill, verdict: SkillDependencyVerdict) -> None:
        self._stale_skills.pop(skill.id, None)
        self._review.pop(skill.id, None)

        if verdict.stale:
            self._stale_skills[skill.id] = StaleSkillItem(
                id=skill.id,
                name=skill.name,
                reason=verdict.reason or "",
                stale_dependencies=[
                    StaleDependencyItem(type=dep.type, id=dep.id, name=dep.name)
                    for dep in verdict.stale_dependencies
                ],
            )
        if not skill.reviewed:
            self._review[skill.id] = SkillReviewItem(
                id=skill.id, name=skill.name, title=skill.title, file_path=skill.file_path
            )

    def add_fact(self, fact: Fact, verdict: FactVerdict) -> None:
        self._facts.pop(fact.id, None)
        if not verdict.needs_attention:
            return
        self._facts[fact.id] = UnverifiedFactItem(
            id=fact.id,
            content=fact.content,
            days_old=int(verdict.age_days),
            source_type=fact.source_type.value if fact.source_type else "unknown",
            pending_expiration=verdict.pending_expiration,
        )

    def build(self) -> CheckStaleOutput:
        summary = StaleSummary(
            resources=len(self._stale_resources),
            skills=len(self._stale_skills),
            facts=len(self._facts),
            pending_review=len(self._review),
            approaching=len(self._approaching),
        )
        summary.total_stale = (
            summary.resources + summary.skills + summary.facts + summary.pending_review
        )
        return CheckStaleOutput(
            stale_resources=sorted(self._stale_resources.values(), key=lambda i: i.id),
            approaching_stale_resources=sorted(self._approaching.values(), key=lambda i: i.id),
            stale_skills=sorted(self._stale_skills.values(), key=lambda i: i.id),
            unverified_facts=sorted(self._facts.values(), key=lambda i: i.id),
            skills_needing_review=sorted(self._review.values(), key=lambda i: i.id),
            summary=summary,
        )
