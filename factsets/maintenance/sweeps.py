"""Periodic cleanup tasks run by the maintenance worker.

Each sweep reads its settings from the resolved config and either does
its work through a single conditional statement on the store or reports
``skipped`` when the feature is disabled.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from factsets.config.models import FactsetsConfig
from factsets.interfaces.entities import TaskStatus, WorkerTaskState

logger = logging.getLogger(__name__)


class SweepStore(Protocol):
    """Bulk maintenance statements plus persisted task state."""

    def auto_verify_facts(self, cutoff: datetime) -> int: ...

    def expire_facts(self, cutoff: datetime, now: datetime | None = None) -> int: ...

    def prune_snapshot_versions(self, retention_versions: int) -> int: ...

    def prune_orphan_tags(self, dry_run: bool = False) -> list[str]: ...

    def hard_delete(self, cutoff: datetime) -> dict[str, int]: ...

    def load_task_state(self, task_name: str) -> WorkerTaskState | None: ...

    def save_task_state(self, state: WorkerTaskState) -> None: ...


@dataclass(frozen=True)
class SweepOutcome:
    status: TaskStatus
    items_processed: int = 0
    message: str | None = None


SweepTask = Callable[[SweepStore, FactsetsConfig, datetime], SweepOutcome]


def auto_verify(store: SweepStore, config: FactsetsConfig, now: datetime) -> SweepOutcome:
    days = config.facts.auto_verify_after_days
    if days is None:
        return SweepOutcome(TaskStatus.skipped, message="fact_auto_verify_after_days not set")
    count = store.auto_verify_facts(now - timedelta(days=days))
    return SweepOutcome(TaskStatus.success, count, f"Auto-verified {count} facts")


def expire_facts(store: SweepStore, config: FactsetsConfig, now: datetime) -> SweepOutcome:
    days = config.facts.expiration_days
    if days is None:
        return SweepOutcome(TaskStatus.skipped, message="fact_expiration_days not set")
    count = store.expire_facts(now - timedelta(days=days), now)
    return SweepOutcome(TaskStatus.success, count, f"Expired {count} unverified facts")


def prune_snapshots(store: SweepStore, config: FactsetsConfig, now: datetime) -> SweepOutcome:
    retention = config.snapshots.retention_versions
    count = store.prune_snapshot_versions(retention)
    return SweepOutcome(
        TaskStatus.success, count, f"Pruned {count} snapshot versions (keeping {retention})"
    )


def prune_tags(store: SweepStore, config: FactsetsConfig, now: datetime) -> SweepOutcome:
    if not config.maintenance.auto_prune_orphan_tags:
        return SweepOutcome(TaskStatus.skipped, message="auto_prune_orphan_tags disabled")
    pruned = store.prune_orphan_tags()
    return SweepOutcome(TaskStatus.success, len(pruned), f"Pruned {len(pruned)} orphan tags")


def hard_delete(store: SweepStore, config: FactsetsConfig, now: datetime) -> SweepOutcome:
    days = max(1, config.maintenance.soft_delete_retention_days)
    removed = store.hard_delete(now - timedelta(days=days))
    total = sum(removed.values())
    detail = ", ".join(f"{count} {kind}s" for kind, count in removed.items() if count)
    message = f"Hard-deleted {detail}" if detail else "Nothing to hard-delete"
    return SweepOutcome(TaskStatus.success, total, message)


# Run order within one worker cycle
SWEEPS: dict[str, SweepTask] = {
    "auto_verify": auto_verify,
    "expire_facts": expire_facts,
    "prune_snapshots": prune_snapshots,
    "prune_tags": prune_tags,
    "hard_delete": hard_delete,
}
