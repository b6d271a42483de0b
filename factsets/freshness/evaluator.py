"""Stale / warning / fresh verdicts for resources and facts."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from factsets.freshness.categories import FreshnessCategory, classify
from factsets.freshness.thresholds import threshold_hours as resolve_threshold
from factsets.interfaces.entities import Fact, Resource
from factsets.timeutil import hours_between

DEFAULT_WARNING_FRACTION = 0.8


class StalenessState(str, Enum):
    fresh = "fresh"
    warning = "warning"
    stale = "stale"


class StalenessVerdict(BaseModel):
    """Outcome of comparing an age against a threshold.

    ``age_hours`` is None for entities that were never verified.
    """

    model_config = ConfigDict(frozen=True)

    state: StalenessState
    age_hours: float | None
    threshold_hours: float

    @property
    def hours_until_stale(self) -> float:
        if self.age_hours is None:
            return 0.0
        return max(0.0, self.threshold_hours - self.age_hours)


class ResourceVerdict(StalenessVerdict):
    resource_id: int
    category: FreshnessCategory


class FactVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    fact_id: int
    needs_attention: bool
    age_days: float
    pending_expiration: bool = False


def evaluate(
    last_verified_at: datetime | None,
    threshold_hours: float,
    warning_fraction: float = DEFAULT_WARNING_FRACTION,
    *,
    now: datetime,
) -> StalenessVerdict:
    """Classify an age against *threshold_hours*.

    Staleness is monotonic in age: once ``age >= threshold`` every older
    age is stale too. The warning band is ``[threshold * fraction,
    threshold)``.
    """
    if last_verified_at is None:
        return StalenessVerdict(
            state=StalenessState.stale, age_hours=None, threshold_hours=threshold_hours
        )

    age = hours_between(last_verified_at, now)
    if age >= threshold_hours:
        state = StalenessState.stale
    elif age >= threshold_hours * warning_fraction:
        state = StalenessState.warning
    else:
        state = StalenessState.fresh
    return StalenessVerdict(state=state, age_hours=age, threshold_hours=threshold_hours)


def evaluate_resource(
    resource: Resource,
    thresholds: Any = None,
    warning_fraction: float = DEFAULT_WARNING_FRACTION,
    *,
    now: datetime,
    max_age_hours: float | None = None,
) -> ResourceVerdict:
    """Classify a resource and evaluate it against its category threshold.

    A caller-supplied *max_age_hours* replaces the category threshold.
    """
    category = classify(resource.uri, resource.tags)
    if max_age_hours is not None:
        limit = float(max_age_hours)
    else:
        limit = resolve_threshold(category, thresholds)
    verdict = evaluate(resource.last_verified_at, limit, warning_fraction, now=now)
    return ResourceVerdict(
        resource_id=resource.id,
        category=category,
        **verdict.model_dump(),
    )


def evaluate_fact(
    fact: Fact,
    *,
    now: datetime,
    expiration_days: float | None = None,
) -> FactVerdict:
    """Unverified facts always need attention, whatever their age.

    With *expiration_days* set, unverified facts at least that old are
    flagged for soft deletion. Nothing is deleted here.
    """
    age_days = hours_between(fact.created_at, now) / 24
    pending = (
        not fact.verified
        and expiration_days is not None
        and age_days >= expiration_days
    )
    return FactVerdict(
        fact_id=fact.id,
        needs_attention=not fact.verified,
        age_days=age_days,
        pending_expiration=pending,
    )
