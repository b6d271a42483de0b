"""Tests for SQLiteKnowledgeStore: the local SQLite storage collaborator."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from factsets.freshness.dependencies import fingerprint
from factsets.interfaces.entities import (
    CommandRetrieval,
    ReferenceType,
    ResourceType,
    SourceType,
    TaskStatus,
    WorkerTaskState,
)
from factsets.interfaces.store import EntityReader, FreshnessWriter, KnowledgeStore
from factsets.store import SQLiteKnowledgeStore, StoreError

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Protocol conformance
# ---------------------------------------------------------------------------


class TestProtocol:
    def test_satisfies_store_protocols(self, store: SQLiteKnowledgeStore):
        assert isinstance(store, KnowledgeStore)
        assert isinstance(store, EntityReader)
        assert isinstance(store, FreshnessWriter)

    def test_creates_parent_directory(self, tmp_path):
        db = tmp_path / "nested" / "dir" / "facts.db"
        with SQLiteKnowledgeStore(str(db)):
            pass
        assert db.exists()

    def test_in_memory(self):
        with SQLiteKnowledgeStore(":memory:") as mem:
            assert mem.get_resources_by_filter() == []


# ---------------------------------------------------------------------------
# Submission and reads
# ---------------------------------------------------------------------------


class TestResources:
    def test_add_and_get(self, store: SQLiteKnowledgeStore):
        r = store.add_resource(
            "scripts/build.sh",
            type="command",
            tags=["ci", "build"],
            retrieval_method=CommandRetrieval(command="cat scripts/build.sh"),
        )
        got = store.get_resource(r.id)
        assert got.uri == "scripts/build.sh"
        assert got.type == ResourceType.command
        assert got.tags == frozenset({"ci", "build"})
        assert got.retrieval_method.command == "cat scripts/build.sh"
        assert got.last_verified_at is None

    def test_snapshot_counts_as_verification(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("README.md", snapshot="# hi")
        assert r.last_verified_at is not None
        assert r.snapshot_hash is not None
        assert store.snapshot_versions(r.id) == [(1, r.snapshot_hash)]

    def test_uri_unique_among_live(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("a.ts")
        with pytest.raises(StoreError):
            store.add_resource("a.ts")
        store.soft_delete("resource", [r.id])
        again = store.add_resource("a.ts")
        assert again.id != r.id

    def test_get_by_uri_skips_deleted(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("a.ts")
        store.soft_delete(ReferenceType.resource, [r.id])
        assert store.get_resource_by_uri("a.ts") is None
        assert store.get_resource(r.id).deleted

    def test_filter_by_tags_matches_any(self, store: SQLiteKnowledgeStore):
        a = store.add_resource("a.ts", tags=["x"])
        b = store.add_resource("b.ts", tags=["y"])
        store.add_resource("c.ts", tags=["z"])
        got = store.get_resources_by_filter(tags=["x", "y"])
        assert [r.id for r in got] == [a.id, b.id]

    def test_filter_by_type_and_deleted(self, store: SQLiteKnowledgeStore):
        a = store.add_resource("a.ts")
        u = store.add_resource("https://example.com", type=ResourceType.url)
        store.soft_delete("resource", [a.id])
        assert [r.id for r in store.get_resources_by_filter(type=ResourceType.url)] == [u.id]
        assert len(store.get_resources_by_filter()) == 1
        assert len(store.get_resources_by_filter(include_deleted=True)) == 2

    def test_restore(self, store: SQLiteKnowledgeStore):
        a = store.add_resource("a.ts")
        store.soft_delete("resource", [a.id])
        assert store.restore("resource", [a.id]) == 1
        assert store.get_resource_by_uri("a.ts") is not None


class TestFactsAndSkills:
    def test_submit_fact(self, store: SQLiteKnowledgeStore):
        f = store.submit_fact("uses postgres", tags=["db"], source_type="code", created_at=T0)
        assert f.source_type == SourceType.code
        assert f.created_at == T0
        assert f.verified is False

    def test_facts_filter(self, store: SQLiteKnowledgeStore):
        a = store.submit_fact("a")
        b = store.submit_fact("b", verified=True)
        assert [f.id for f in store.get_facts_by_filter(verified=False)] == [a.id]
        assert [f.id for f in store.get_facts_by_filter(verified=True)] == [b.id]

    def test_verify_and_retrieval_count(self, store: SQLiteKnowledgeStore):
        f = store.submit_fact("a")
        assert store.record_fact_retrievals([f.id, f.id]) == 1
        assert store.verify_facts([f.id]) == 1
        got = store.get_fact(f.id)
        assert got.verified is True
        assert got.retrieval_count == 1

    def test_link_records_fingerprint(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("a.ts", snapshot="v1")
        s = store.create_skill("deploy", "Deploy", "# steps", tags=["ops"])
        ref = store.link_skill(s.id, "resource", r.id)
        assert ref.recorded_fingerprint == fingerprint(r)
        assert store.get_skill(s.id).references == (ref,)

    def test_link_to_missing_target(self, store: SQLiteKnowledgeStore):
        s = store.create_skill("deploy", "Deploy", "# steps")
        assert store.link_skill(s.id, "fact", 999) is None
        assert store.get_skill(s.id).references == ()

    def test_references_keep_order(self, store: SQLiteKnowledgeStore):
        f1 = store.submit_fact("one")
        f2 = store.submit_fact("two")
        s = store.create_skill("deploy", "Deploy", "# steps")
        store.link_skill(s.id, "fact", f2.id)
        store.link_skill(s.id, "fact", f1.id)
        assert [r.target_id for r in store.get_skill(s.id).references] == [f2.id, f1.id]

    def test_resolve_includes_deleted(self, store: SQLiteKnowledgeStore):
        f = store.submit_fact("one")
        store.soft_delete("fact", [f.id])
        assert store.resolve_reference_target(ReferenceType.fact, f.id).deleted

    def test_update_skill_content_changes_hash(self, store: SQLiteKnowledgeStore):
        s = store.create_skill("deploy", "Deploy", "old")
        assert store.update_skill_content(s.id, "new")
        assert store.get_skill(s.id).content_hash != s.content_hash

    def test_update_fact_content(self, store: SQLiteKnowledgeStore):
        f = store.submit_fact("uses postgres 15")
        gone = store.submit_fact("uses mysql")
        store.soft_delete("fact", [gone.id])
        assert store.update_fact_content(f.id, "uses postgres 16")
        assert not store.update_fact_content(gone.id, "uses mariadb")
        assert store.get_fact(f.id).content == "uses postgres 16"
        assert store.get_fact(gone.id).content == "uses mysql"

    def test_get_skill_by_name(self, store: SQLiteKnowledgeStore):
        s = store.create_skill("deploy", "Deploy", "# steps")
        assert store.get_skill_by_name("deploy").id == s.id
        assert store.get_skill_by_name("nope") is None

    def test_skills_referencing_resources(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("a.ts")
        s1 = store.create_skill("one", "One", "x")
        s2 = store.create_skill("two", "Two", "x")
        store.link_skill(s1.id, "resource", r.id)
        store.link_skill(s1.id, "resource", r.id)
        store.link_skill(s2.id, "resource", r.id)
        store.soft_delete("skill", [s2.id])
        assert store.skills_referencing_resources([r.id]) == [(s1.id, "one")]


class TestTags:
    def test_usage_counts_live_entities(self, store: SQLiteKnowledgeStore):
        store.add_resource("a.ts", tags=["api"])
        f = store.submit_fact("x", tags=["api", "db"])
        store.soft_delete("fact", [f.id])
        usage = {t.name: t.usage_count for t in store.list_tags()}
        assert usage == {"api": 1, "db": 0}

    def test_prune_orphans(self, store: SQLiteKnowledgeStore):
        f = store.submit_fact("x", tags=["keep", "drop"])
        store.submit_fact("y", tags=["keep"])
        store.soft_delete("fact", [f.id])
        store.hard_delete(datetime.now(UTC) + timedelta(days=1))
        assert store.prune_orphan_tags(dry_run=True) == ["drop"]
        assert store.prune_orphan_tags() == ["drop"]
        assert [t.name for t in store.list_tags()] == ["keep"]


# ---------------------------------------------------------------------------
# Conditional mutations
# ---------------------------------------------------------------------------


class TestConditionalUpdates:
    def test_last_verified_only_moves_forward(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("a.ts")
        assert store.update_last_verified_at(r.id, T0)
        assert not store.update_last_verified_at(r.id, T0 - timedelta(hours=1))
        assert store.get_resource(r.id).last_verified_at == T0
        assert store.update_last_verified_at(r.id, T0 + timedelta(hours=1))

    def test_same_timestamp_is_idempotent(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("a.ts")
        store.update_last_verified_at(r.id, T0)
        store.update_last_verified_at(r.id, T0)
        assert store.get_resource(r.id).last_verified_at == T0

    def test_unknown_or_deleted_resource(self, store: SQLiteKnowledgeStore):
        assert not store.update_last_verified_at(999, T0)
        r = store.add_resource("a.ts")
        store.soft_delete("resource", [r.id])
        assert not store.update_last_verified_at(r.id, T0)

    def test_fingerprint_compare_and_set(self, store: SQLiteKnowledgeStore):
        f = store.submit_fact("one")
        s = store.create_skill("deploy", "Deploy", "x")
        ref = store.link_skill(s.id, "fact", f.id)
        assert not store.update_recorded_fingerprint(s.id, 0, "content:new", expected="content:other")
        assert store.update_recorded_fingerprint(s.id, 0, "content:new", expected=ref.recorded_fingerprint)
        assert store.get_skill(s.id).references[0].recorded_fingerprint == "content:new"

    def test_fingerprint_unconditional_and_out_of_range(self, store: SQLiteKnowledgeStore):
        f = store.submit_fact("one")
        s = store.create_skill("deploy", "Deploy", "x")
        store.link_skill(s.id, "fact", f.id)
        assert store.update_recorded_fingerprint(s.id, 0, "content:any")
        assert not store.update_recorded_fingerprint(s.id, 5, "content:any")

    def test_expected_none_matches_null(self, store: SQLiteKnowledgeStore):
        f = store.submit_fact("one")
        s = store.create_skill("deploy", "Deploy", "x")
        store.link_skill(s.id, "fact", f.id)
        store.update_recorded_fingerprint(s.id, 0, None)
        assert store.update_recorded_fingerprint(s.id, 0, "content:x", expected=None)


class TestSnapshots:
    def test_write_snapshot_versions_and_retention(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("a.ts", snapshot="v1", last_verified_at=T0)
        assert store.write_snapshot(r.id, "v2", T0 + timedelta(hours=1), retention_versions=2)
        assert store.write_snapshot(r.id, "v3", T0 + timedelta(hours=2), retention_versions=2)
        assert [v for v, _ in store.snapshot_versions(r.id)] == [3, 2]
        got = store.get_resource(r.id)
        assert got.snapshot == "v3"
        assert got.last_verified_at == T0 + timedelta(hours=2)

    def test_older_fetch_rejected(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("a.ts")
        assert store.write_snapshot(r.id, "fetched later", T0)
        assert not store.write_snapshot(r.id, "fetched earlier", T0 - timedelta(hours=1))
        got = store.get_resource(r.id)
        assert got.snapshot == "fetched later"
        assert got.last_verified_at == T0
        assert [v for v, _ in store.snapshot_versions(r.id)] == [1]

    def test_overlapping_writes_converge(self, store: SQLiteKnowledgeStore):
        first = store.add_resource("a.ts")
        second = store.add_resource("b.ts")
        store.write_snapshot(first.id, "old", T0 - timedelta(hours=1))
        store.write_snapshot(first.id, "new", T0)
        store.write_snapshot(second.id, "new", T0)
        store.write_snapshot(second.id, "old", T0 - timedelta(hours=1))
        a, b = store.get_resource(first.id), store.get_resource(second.id)
        assert (a.snapshot, a.snapshot_hash, a.last_verified_at) == (b.snapshot, b.snapshot_hash, b.last_verified_at)

    def test_refresh_blocks_older_snapshot(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("a.ts", snapshot="v1", last_verified_at=T0 - timedelta(hours=2))
        store.update_last_verified_at(r.id, T0)
        assert not store.write_snapshot(r.id, "v2", T0 - timedelta(hours=1))
        assert store.get_resource(r.id).snapshot == "v1"

    def test_deleted_resource_not_written(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("a.ts")
        store.soft_delete("resource", [r.id])
        assert not store.write_snapshot(r.id, "v1", T0)

    def test_prune_snapshot_versions(self, store: SQLiteKnowledgeStore):
        r = store.add_resource("a.ts", snapshot="v1", last_verified_at=T0 - timedelta(hours=1))
        for i in range(2, 6):
            store.write_snapshot(r.id, f"v{i}", T0, retention_versions=10)
        assert store.prune_snapshot_versions(2) == 3
        assert [v for v, _ in store.snapshot_versions(r.id)] == [5, 4]


# ---------------------------------------------------------------------------
# Config rows and worker state
# ---------------------------------------------------------------------------


class TestConfigRows:
    def test_set_get_overwrite_delete(self, store: SQLiteKnowledgeStore):
        assert store.get_config("client") is None
        store.set_config("client", "cursor")
        store.set_config("client", "claude")
        assert store.get_config("client") == "claude"
        assert store.get_all_config() == {"client": "claude"}
        assert store.delete_config("client")
        assert store.get_all_config() == {}


class TestWorkerState:
    def test_round_trip(self, store: SQLiteKnowledgeStore):
        assert store.load_task_state("auto_verify") is None
        state = WorkerTaskState(
            task_name="auto_verify",
            last_run_at=T0,
            last_status=TaskStatus.success,
            last_message="ok",
            items_processed=3,
        )
        store.save_task_state(state)
        assert store.load_task_state("auto_verify") == state

    def test_persists_across_connections(self, tmp_path):
        path = str(tmp_path / "facts.db")
        with SQLiteKnowledgeStore(path) as first:
            first.save_task_state(WorkerTaskState(task_name="prune_tags", last_run_at=T0))
        with SQLiteKnowledgeStore(path) as second:
            assert second.load_task_state("prune_tags").last_run_at == T0
