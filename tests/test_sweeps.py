"""Tests for the maintenance sweeps and the background worker."""

import threading
from datetime import timedelta

import pytest

from factsets.config.models import (
    FactLifecycleConfig,
    FactsetsConfig,
    MaintenanceConfig,
    SnapshotConfig,
    WorkerConfig,
)
from factsets.interfaces.entities import TaskStatus
from factsets.maintenance.sweeps import (
    SWEEPS,
    SweepOutcome,
    auto_verify,
    expire_facts,
    hard_delete,
    prune_snapshots,
    prune_tags,
)
from factsets.maintenance.worker import MaintenanceWorker


class _Clock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _make_config(**sections) -> FactsetsConfig:
    return FactsetsConfig(**sections)


# ---------------------------------------------------------------------------
# Sweeps
# ---------------------------------------------------------------------------


class TestAutoVerify:
    def test_skipped_when_disabled(self, store, now):
        assert auto_verify(store, FactsetsConfig(), now).status is TaskStatus.skipped

    def test_verifies_retrieved_old_facts(self, store, now):
        cfg = _make_config(facts=FactLifecycleConfig(auto_verify_after_days=7))
        old = store.submit_fact("old and used", created_at=now - timedelta(days=10))
        unused = store.submit_fact("old, never read", created_at=now - timedelta(days=10))
        young = store.submit_fact("recent", created_at=now - timedelta(days=1))
        guess = store.submit_fact("a hunch", source_type="inference", created_at=now - timedelta(days=10))
        store.record_fact_retrievals([old.id, young.id, guess.id])

        outcome = auto_verify(store, cfg, now)
        assert outcome.status is TaskStatus.success
        assert outcome.items_processed == 1
        assert store.get_fact(old.id).verified
        assert not store.get_fact(unused.id).verified
        assert not store.get_fact(young.id).verified
        assert not store.get_fact(guess.id).verified


class TestExpireFacts:
    def test_skipped_when_disabled(self, store, now):
        assert expire_facts(store, FactsetsConfig(), now).status is TaskStatus.skipped

    def test_soft_deletes_old_unverified(self, store, now):
        cfg = _make_config(facts=FactLifecycleConfig(expiration_days=30))
        stale = store.submit_fact("old", created_at=now - timedelta(days=40))
        kept = store.submit_fact("old but verified", verified=True, created_at=now - timedelta(days=40))
        store.submit_fact("new", created_at=now - timedelta(days=2))

        outcome = expire_facts(store, cfg, now)
        assert outcome.items_processed == 1
        assert store.get_fact(stale.id).deleted_at == now
        assert store.get_fact(kept.id).deleted_at is None


class TestPruneSnapshots:
    def test_keeps_retention_versions(self, store, now):
        r = store.add_resource("src/app.ts", snapshot="v1", last_verified_at=now - timedelta(hours=1))
        for i in range(2, 5):
            store.write_snapshot(r.id, f"v{i}", now, retention_versions=10)
        cfg = _make_config(snapshots=SnapshotConfig(retention_versions=2))

        outcome = prune_snapshots(store, cfg, now)
        assert outcome.items_processed == 2
        assert [v for v, _ in store.snapshot_versions(r.id)] == [4, 3]


class TestPruneTags:
    def test_skipped_by_default(self, store, now):
        assert prune_tags(store, FactsetsConfig(), now).status is TaskStatus.skipped

    def test_prunes_orphans(self, store, now):
        f = store.submit_fact("x", tags=["keep", "drop"])
        store.submit_fact("y", tags=["keep"])
        store.soft_delete("fact", [f.id])
        store.hard_delete(now + timedelta(days=3650))
        store.submit_fact("z", tags=["keep"])
        cfg = _make_config(maintenance=MaintenanceConfig(auto_prune_orphan_tags=True))

        outcome = prune_tags(store, cfg, now)
        assert outcome.items_processed == 1
        assert [t.name for t in store.list_tags()] == ["keep"]


class TestHardDelete:
    def test_removes_only_past_retention(self, store, now):
        old = store.submit_fact("old")
        recent = store.submit_fact("recent")
        store.soft_delete("fact", [old.id], now=now - timedelta(days=10))
        store.soft_delete("fact", [recent.id], now=now - timedelta(days=1))

        outcome = hard_delete(store, FactsetsConfig(), now)
        assert outcome.items_processed == 1
        assert "1 facts" in outcome.message
        assert store.get_fact(old.id) is None
        assert store.get_fact(recent.id) is not None

    def test_nothing_to_delete(self, store, now):
        assert hard_delete(store, FactsetsConfig(), now).message == "Nothing to hard-delete"


def test_run_order():
    assert list(SWEEPS) == ["auto_verify", "expire_facts", "prune_snapshots", "prune_tags", "hard_delete"]


# ---------------------------------------------------------------------------
# MaintenanceWorker
# ---------------------------------------------------------------------------


class TestWorker:
    def test_first_cycle_runs_everything(self, store, now):
        worker = MaintenanceWorker(store, FactsetsConfig, clock=_Clock(now))
        _, states = worker.run_cycle()
        assert [s.task_name for s in states] == worker.task_names
        assert {s.last_status for s in states} == {TaskStatus.success, TaskStatus.skipped}
        assert store.load_task_state("prune_snapshots").last_run_at == now

    def test_intervals_respected(self, store, now):
        clock = _Clock(now)
        cfg = _make_config(worker=WorkerConfig(auto_verify=60, hard_delete=3600))
        worker = MaintenanceWorker(store, lambda: cfg, clock=clock)
        worker.run_cycle()

        clock.advance(seconds=61)
        _, states = worker.run_cycle()
        assert [s.task_name for s in states] == ["auto_verify"]

        clock.advance(hours=1)
        _, states = worker.run_cycle()
        assert "hard_delete" in [s.task_name for s in states]

    def test_force_runs_all(self, store, now):
        worker = MaintenanceWorker(store, FactsetsConfig, clock=_Clock(now))
        worker.run_cycle()
        _, states = worker.run_cycle(force=True)
        assert len(states) == len(SWEEPS)

    def test_state_survives_new_worker(self, store, now):
        MaintenanceWorker(store, FactsetsConfig, clock=_Clock(now)).run_cycle()
        later = MaintenanceWorker(store, FactsetsConfig, clock=_Clock(now + timedelta(seconds=5)))
        _, states = later.run_cycle()
        assert states == []

    def test_failure_recorded_not_raised(self, store, now, caplog):
        def boom(store, config, now):
            raise RuntimeError("disk full")

        worker = MaintenanceWorker(store, FactsetsConfig, tasks={"auto_verify": boom}, clock=_Clock(now))
        _, states = worker.run_cycle()
        assert states[0].last_status is TaskStatus.error
        assert store.load_task_state("auto_verify").last_message == "disk full"
        assert "auto_verify failed" in caplog.text

    def test_config_reloaded_each_cycle(self, store, now):
        clock = _Clock(now)
        seen = []

        def task(store, config, now):
            seen.append(config.facts.auto_verify_after_days)
            return SweepOutcome(TaskStatus.success)

        configs = iter([
            _make_config(facts=FactLifecycleConfig(auto_verify_after_days=1)),
            _make_config(facts=FactLifecycleConfig(auto_verify_after_days=2)),
        ])
        worker = MaintenanceWorker(store, lambda: next(configs), tasks={"auto_verify": task}, clock=clock)
        worker.run_cycle()
        clock.advance(hours=2)
        worker.run_cycle()
        assert seen == [1, 2]

    def test_run_forever_stops(self, store, now):
        stop = threading.Event()
        calls = []

        def task(store, config, now):
            calls.append(now)
            stop.set()
            return SweepOutcome(TaskStatus.success)

        worker = MaintenanceWorker(store, FactsetsConfig, tasks={"auto_verify": task}, clock=_Clock(now))
        worker.run_forever(stop)
        assert len(calls) == 1

    def test_run_forever_not_started_when_stopped(self, store, now):
        stop = threading.Event()
        stop.set()
        worker = MaintenanceWorker(store, FactsetsConfig, clock=_Clock(now))
        worker.run_forever(stop)
        assert store.load_task_state("auto_verify") is None

    @pytest.mark.parametrize("name", list(SWEEPS))
    def test_every_sweep_has_an_interval(self, name):
        assert getattr(WorkerConfig(), name) > 0
