"""KnowledgeStore implementation backed by a local SQLite database."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from pydantic import TypeAdapter

from factsets.freshness.dependencies import compute_hash, fingerprint
from factsets.interfaces.entities import (
    Entity,
    Fact,
    ReferenceType,
    Resource,
    ResourceType,
    RetrievalMethod,
    Skill,
    SkillReference,
    SourceType,
    Tag,
    TaskStatus,
    WorkerTaskState,
)
from factsets.interfaces.store import UNSET, _Unset
from factsets.store.schema import SCHEMA, TAGGED_TABLES
from factsets.timeutil import parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)

_RETRIEVAL = TypeAdapter(RetrievalMethod)

_RESOURCE_COLUMNS = (
    "id, uri, type, snapshot, snapshot_hash, retrieval_method_json, "
    "last_verified_at, created_at, deleted_at"
)
_FACT_COLUMNS = "id, content, source_type, verified, retrieval_count, created_at, deleted_at"
_SKILL_COLUMNS = (
    "id, name, title, content, content_hash, reviewed, file_path, "
    "created_at, updated_at, deleted_at"
)


class StoreError(Exception):
    """A storage operation failed; wraps the underlying sqlite3 error."""

    def __init__(self, operation: str, cause: Exception) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


def _qmarks(count: int) -> str:
    return ", ".join("?" * count)


def _normalize_tags(tags: Iterable[str] | None) -> list[str]:
    if not tags:
        return []
    seen: dict[str, None] = {}
    for tag in tags:
        name = tag.strip()
        if name:
            seen[name] = None
    return list(seen)


class SQLiteKnowledgeStore:
    """KnowledgeStore implementation using SQLite with WAL mode.

    Every write that reads before it updates runs inside ``BEGIN
    IMMEDIATE`` so that the worker and interactive commands can share
    one database file.
    """

    def __init__(self, db_path: str = ".facts.db") -> None:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.db_path = str(db_path)
        # isolation_level=None => autocommit mode; multi-statement writes
        # open their own transaction.
        try:
            self._conn = sqlite3.connect(self.db_path, isolation_level=None, timeout=5)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise StoreError("open", e) from e

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SQLiteKnowledgeStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- helpers ---------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Cursor]:
        cursor = self._conn.cursor()
        try:
            cursor.execute("BEGIN IMMEDIATE")
            yield cursor
            cursor.execute("COMMIT")
        except sqlite3.Error as e:
            self._conn.rollback()
            raise StoreError(operation, e) from e
        except Exception:
            self._conn.rollback()
            raise

    def _execute(self, operation: str, sql: str, params: Iterable = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, tuple(params))
        except sqlite3.Error as e:
            raise StoreError(operation, e) from e

    def _link_tags(self, cursor: sqlite3.Cursor, kind: str, entity_id: int, tags: list[str]) -> None:
        if not tags:
            return
        _, link_table, link_column = TAGGED_TABLES[kind]
        now = to_iso(utc_now())
        cursor.executemany(
            "INSERT OR IGNORE INTO tags (name, created_at) VALUES (?, ?)",
            [(name, now) for name in tags],
        )
        cursor.execute(
            f"INSERT OR IGNORE INTO {link_table} ({link_column}, tag_id) "
            f"SELECT ?, id FROM tags WHERE name IN ({_qmarks(len(tags))})",
            (entity_id, *tags),
        )

    def _load_tags(self, kind: str, ids: list[int]) -> dict[int, frozenset[str]]:
        if not ids:
            return {}
        _, link_table, link_column = TAGGED_TABLES[kind]
        rows = self._conn.execute(
            f"SELECT lt.{link_column}, t.name FROM {link_table} lt "
            f"JOIN tags t ON t.id = lt.tag_id WHERE lt.{link_column} IN ({_qmarks(len(ids))})",
            ids,
        ).fetchall()
        grouped: dict[int, set[str]] = {}
        for entity_id, name in rows:
            grouped.setdefault(entity_id, set()).add(name)
        return {entity_id: frozenset(names) for entity_id, names in grouped.items()}

    def _load_references(self, ids: list[int]) -> dict[int, tuple[SkillReference, ...]]:
        if not ids:
            return {}
        rows = self._conn.execute(
            "SELECT skill_id, target_type, target_id, relation, recorded_fingerprint "
            f"FROM skill_references WHERE skill_id IN ({_qmarks(len(ids))}) "
            "ORDER BY skill_id, position",
            ids,
        ).fetchall()
        grouped: dict[int, list[SkillReference]] = {}
        for skill_id, target_type, target_id, relation, recorded in rows:
            grouped.setdefault(skill_id, []).append(SkillReference(
                type=ReferenceType(target_type),
                target_id=target_id,
                relation=relation,
                recorded_fingerprint=recorded,
            ))
        return {skill_id: tuple(refs) for skill_id, refs in grouped.items()}

    def _tag_clause(self, kind: str, tags: list[str]) -> str:
        _, link_table, link_column = TAGGED_TABLES[kind]
        return (
            f"id IN (SELECT lt.{link_column} FROM {link_table} lt JOIN tags t ON t.id = lt.tag_id "
            f"WHERE t.name IN ({_qmarks(len(tags))}))"
        )

    def _row_to_resource(self, row: sqlite3.Row, tags: frozenset[str]) -> Resource:
        method = json.loads(row["retrieval_method_json"]) if row["retrieval_method_json"] else {"type": "none"}
        return Resource(
            id=row["id"],
            uri=row["uri"],
            type=ResourceType(row["type"]),
            tags=tags,
            snapshot=row["snapshot"],
            snapshot_hash=row["snapshot_hash"],
            retrieval_method=method,
            last_verified_at=parse_iso(row["last_verified_at"]),
            created_at=parse_iso(row["created_at"]),
            deleted_at=parse_iso(row["deleted_at"]),
        )

    def _row_to_fact(self, row: sqlite3.Row, tags: frozenset[str]) -> Fact:
        return Fact(
            id=row["id"],
            content=row["content"],
            tags=tags,
            verified=bool(row["verified"]),
            source_type=SourceType(row["source_type"]) if row["source_type"] else None,
            retrieval_count=row["retrieval_count"],
            created_at=parse_iso(row["created_at"]),
            deleted_at=parse_iso(row["deleted_at"]),
        )

    def _row_to_skill(
        self, row: sqlite3.Row, tags: frozenset[str], references: tuple[SkillReference, ...]
    ) -> Skill:
        return Skill(
            id=row["id"],
            name=row["name"],
            title=row["title"],
            content=row["content"],
            content_hash=row["content_hash"],
            tags=tags,
            references=references,
            reviewed=bool(row["reviewed"]),
            file_path=row["file_path"],
            created_at=parse_iso(row["created_at"]),
            updated_at=parse_iso(row["updated_at"]),
            deleted_at=parse_iso(row["deleted_at"]),
        )

    def _resources_from_rows(self, rows: list[sqlite3.Row]) -> list[Resource]:
        tags = self._load_tags("resource", [r["id"] for r in rows])
        return [self._row_to_resource(r, tags.get(r["id"], frozenset())) for r in rows]

    def _facts_from_rows(self, rows: list[sqlite3.Row]) -> list[Fact]:
        tags = self._load_tags("fact", [r["id"] for r in rows])
        return [self._row_to_fact(r, tags.get(r["id"], frozenset())) for r in rows]

    def _skills_from_rows(self, rows: list[sqlite3.Row]) -> list[Skill]:
        ids = [r["id"] for r in rows]
        tags = self._load_tags("skill", ids)
        refs = self._load_references(ids)
        return [
            self._row_to_skill(r, tags.get(r["id"], frozenset()), refs.get(r["id"], ()))
            for r in rows
        ]

    # -- submission ------------------------------------------------------------

    def add_resource(
        self,
        uri: str,
        type: ResourceType | str = ResourceType.file,
        tags: Iterable[str] | None = None,
        snapshot: str | None = None,
        retrieval_method: object | None = None,
        last_verified_at: datetime | None = None,
    ) -> Resource:
        """Register a resource. Storing a snapshot counts as verifying it."""
        now = utc_now()
        method = _RETRIEVAL.validate_python(retrieval_method or {"type": "none"})
        if snapshot is not None and last_verified_at is None:
            last_verified_at = now
        snapshot_hash = compute_hash(snapshot) if snapshot is not None else None

        with self._transaction("add_resource") as cur:
            cur.execute(
                "INSERT INTO resources (uri, type, snapshot, snapshot_hash, retrieval_method_json, "
                "last_verified_at, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    uri,
                    ResourceType(type).value,
                    snapshot,
                    snapshot_hash,
                    _RETRIEVAL.dump_json(method).decode(),
                    to_iso(last_verified_at) if last_verified_at else None,
                    to_iso(now),
                    to_iso(now),
                ),
            )
            resource_id = cur.lastrowid
            if snapshot is not None:
                cur.execute(
                    "INSERT INTO resource_snapshots (resource_id, version, snapshot, snapshot_hash, created_at) "
                    "VALUES (?, 1, ?, ?, ?)",
                    (resource_id, snapshot, snapshot_hash, to_iso(now)),
                )
            self._link_tags(cur, "resource", resource_id, _normalize_tags(tags))

        logger.debug("Added resource %d: %s", resource_id, uri)
        return self.get_resource(resource_id)

    def submit_fact(
        self,
        content: str,
        tags: Iterable[str] | None = None,
        source_type: SourceType | str | None = None,
        verified: bool = False,
        created_at: datetime | None = None,
    ) -> Fact:
        created = created_at or utc_now()
        with self._transaction("submit_fact") as cur:
            cur.execute(
                "INSERT INTO facts (content, source_type, verified, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    content,
                    SourceType(source_type).value if source_type else None,
                    int(verified),
                    to_iso(created),
                    to_iso(created),
                ),
            )
            fact_id = cur.lastrowid
            self._link_tags(cur, "fact", fact_id, _normalize_tags(tags))
        return self.get_fact(fact_id)

    def create_skill(
        self,
        name: str,
        title: str,
        content: str,
        tags: Iterable[str] | None = None,
        file_path: str | None = None,
        reviewed: bool = True,
    ) -> Skill:
        now = to_iso(utc_now())
        with self._transaction("create_skill") as cur:
            cur.execute(
                "INSERT INTO skills (name, title, content, content_hash, reviewed, file_path, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (name, title, content, compute_hash(content), int(reviewed), file_path, now, now),
            )
            skill_id = cur.lastrowid
            self._link_tags(cur, "skill", skill_id, _normalize_tags(tags))
        return self.get_skill(skill_id)

    def link_skill(
        self,
        skill_id: int,
        type: ReferenceType | str,
        target_id: int,
        relation: str = "references",
    ) -> SkillReference | None:
        """Append a reference, recording the target's current fingerprint.

        Returns None when the skill or the target does not exist.
        """
        ref_type = ReferenceType(type)
        target = self.resolve_reference_target(ref_type, target_id)
        if target is None or target.deleted:
            return None
        recorded = fingerprint(target)

        with self._transaction("link_skill") as cur:
            exists = cur.execute(
                "SELECT 1 FROM skills WHERE id = ? AND deleted_at IS NULL", (skill_id,)
            ).fetchone()
            if exists is None:
                return None
            (position,) = cur.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM skill_references WHERE skill_id = ?",
                (skill_id,),
            ).fetchone()
            cur.execute(
                "INSERT INTO skill_references (skill_id, position, target_type, target_id, relation, "
                "recorded_fingerprint, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (skill_id, position, ref_type.value, target_id, relation, recorded, to_iso(utc_now())),
            )
        return SkillReference(
            type=ref_type, target_id=target_id, relation=relation, recorded_fingerprint=recorded
        )

    def update_skill_content(self, skill_id: int, content: str) -> bool:
        cur = self._execute(
            "update_skill_content",
            "UPDATE skills SET content = ?, content_hash = ?, updated_at = ? "
            "WHERE id = ? AND deleted_at IS NULL",
            (content, compute_hash(content), to_iso(utc_now()), skill_id),
        )
        return cur.rowcount > 0

    def update_fact_content(self, fact_id: int, content: str) -> bool:
        cur = self._execute(
            "update_fact_content",
            "UPDATE facts SET content = ?, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
            (content, to_iso(utc_now()), fact_id),
        )
        return cur.rowcount > 0

    def verify_facts(self, fact_ids: Iterable[int]) -> int:
        ids = list(fact_ids)
        if not ids:
            return 0
        cur = self._execute(
            "verify_facts",
            f"UPDATE facts SET verified = 1, updated_at = ? "
            f"WHERE id IN ({_qmarks(len(ids))}) AND deleted_at IS NULL",
            (to_iso(utc_now()), *ids),
        )
        return cur.rowcount

    def record_fact_retrievals(self, fact_ids: Iterable[int]) -> int:
        ids = list(fact_ids)
        if not ids:
            return 0
        cur = self._execute(
            "record_fact_retrievals",
            f"UPDATE facts SET retrieval_count = retrieval_count + 1 "
            f"WHERE id IN ({_qmarks(len(ids))}) AND deleted_at IS NULL",
            ids,
        )
        return cur.rowcount

    def soft_delete(self, kind: ReferenceType | str, ids: Iterable[int], now: datetime | None = None) -> int:
        table, _, _ = TAGGED_TABLES[ReferenceType(kind).value]
        id_list = list(ids)
        if not id_list:
            return 0
        cur = self._execute(
            "soft_delete",
            f"UPDATE {table} SET deleted_at = ? "
            f"WHERE id IN ({_qmarks(len(id_list))}) AND deleted_at IS NULL",
            (to_iso(now or utc_now()), *id_list),
        )
        return cur.rowcount

    def restore(self, kind: ReferenceType | str, ids: Iterable[int]) -> int:
        table, _, _ = TAGGED_TABLES[ReferenceType(kind).value]
        id_list = list(ids)
        if not id_list:
            return 0
        cur = self._execute(
            "restore",
            f"UPDATE {table} SET deleted_at = NULL "
            f"WHERE id IN ({_qmarks(len(id_list))}) AND deleted_at IS NOT NULL",
            id_list,
        )
        return cur.rowcount

    # -- reads -----------------------------------------------------------------

    def get_resource(self, resource_id: int) -> Resource | None:
        """Fetch by id, soft-deleted rows included."""
        rows = self._conn.execute(
            f"SELECT {_RESOURCE_COLUMNS} FROM resources WHERE id = ?", (resource_id,)
        ).fetchall()
        found = self._resources_from_rows(rows)
        return found[0] if found else None

    def get_resource_by_uri(self, uri: str) -> Resource | None:
        rows = self._conn.execute(
            f"SELECT {_RESOURCE_COLUMNS} FROM resources WHERE uri = ? AND deleted_at IS NULL", (uri,)
        ).fetchall()
        found = self._resources_from_rows(rows)
        return found[0] if found else None

    def get_fact(self, fact_id: int) -> Fact | None:
        rows = self._conn.execute(f"SELECT {_FACT_COLUMNS} FROM facts WHERE id = ?", (fact_id,)).fetchall()
        found = self._facts_from_rows(rows)
        return found[0] if found else None

    def get_skill(self, skill_id: int) -> Skill | None:
        rows = self._conn.execute(f"SELECT {_SKILL_COLUMNS} FROM skills WHERE id = ?", (skill_id,)).fetchall()
        found = self._skills_from_rows(rows)
        return found[0] if found else None

    def get_skill_by_name(self, name: str) -> Skill | None:
        rows = self._conn.execute(
            f"SELECT {_SKILL_COLUMNS} FROM skills WHERE name = ?", (name,)
        ).fetchall()
        found = self._skills_from_rows(rows)
        return found[0] if found else None

    def get_resources_by_filter(
        self,
        tags: Iterable[str] | None = None,
        type: ResourceType | None = None,
        include_deleted: bool = False,
    ) -> list[Resource]:
        """Resources carrying any of *tags*, ordered by id."""
        clauses: list[str] = []
        params: list[object] = []
        if not include_deleted:
            clauses.append("deleted_at IS NULL")
        if type is not None:
            clauses.append("type = ?")
            params.append(ResourceType(type).value)
        tag_list = _normalize_tags(tags)
        if tag_list:
            clauses.append(self._tag_clause("resource", tag_list))
            params.extend(tag_list)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(
            f"SELECT {_RESOURCE_COLUMNS} FROM resources {where} ORDER BY id", params
        ).fetchall()
        return self._resources_from_rows(rows)

    def get_skills_by_filter(self, tags: Iterable[str] | None = None) -> list[Skill]:
        clauses = ["deleted_at IS NULL"]
        params: list[object] = []
        tag_list = _normalize_tags(tags)
        if tag_list:
            clauses.append(self._tag_clause("skill", tag_list))
            params.extend(tag_list)
        rows = self._conn.execute(
            f"SELECT {_SKILL_COLUMNS} FROM skills WHERE {' AND '.join(clauses)} ORDER BY id", params
        ).fetchall()
        return self._skills_from_rows(rows)

    def get_facts_by_filter(
        self,
        verified: bool | None = None,
        tags: Iterable[str] | None = None,
    ) -> list[Fact]:
        clauses = ["deleted_at IS NULL"]
        params: list[object] = []
        if verified is not None:
            clauses.append("verified = ?")
            params.append(int(verified))
        tag_list = _normalize_tags(tags)
        if tag_list:
            clauses.append(self._tag_clause("fact", tag_list))
            params.extend(tag_list)
        rows = self._conn.execute(
            f"SELECT {_FACT_COLUMNS} FROM facts WHERE {' AND '.join(clauses)} ORDER BY id", params
        ).fetchall()
        return self._facts_from_rows(rows)

    def resolve_reference_target(self, type: ReferenceType, id: int) -> Entity | None:
        """Look up a reference target. Soft-deleted targets are returned as-is."""
        ref_type = ReferenceType(type)
        if ref_type is ReferenceType.resource:
            return self.get_resource(id)
        if ref_type is ReferenceType.skill:
            return self.get_skill(id)
        return self.get_fact(id)

    def list_tags(self) -> list[Tag]:
        """All tags with their usage across live entities, most used first."""
        usage = " + ".join(
            f"(SELECT COUNT(*) FROM {link} lt JOIN {table} e ON e.id = lt.{column} "
            f"WHERE lt.tag_id = t.id AND e.deleted_at IS NULL)"
            for table, link, column in TAGGED_TABLES.values()
        )
        rows = self._conn.execute(
            f"SELECT t.id, t.name, t.description, {usage} AS usage_count "
            "FROM tags t ORDER BY usage_count DESC, t.name"
        ).fetchall()
        return [
            Tag(id=r["id"], name=r["name"], description=r["description"], usage_count=r["usage_count"])
            for r in rows
        ]

    def snapshot_versions(self, resource_id: int) -> list[tuple[int, str]]:
        """Retained (version, snapshot_hash) pairs, newest first."""
        rows = self._conn.execute(
            "SELECT version, snapshot_hash FROM resource_snapshots WHERE resource_id = ? "
            "ORDER BY version DESC",
            (resource_id,),
        ).fetchall()
        return [(r[0], r[1]) for r in rows]

    def skills_referencing_resources(self, resource_ids: Iterable[int]) -> list[tuple[int, str]]:
        """Live skills with at least one reference to any of *resource_ids*."""
        ids = list(resource_ids)
        if not ids:
            return []
        rows = self._conn.execute(
            "SELECT DISTINCT s.id, s.name FROM skill_references r "
            "JOIN skills s ON s.id = r.skill_id "
            f"WHERE r.target_type = ? AND r.target_id IN ({_qmarks(len(ids))}) "
            "AND s.deleted_at IS NULL ORDER BY s.id",
            (ReferenceType.resource.value, *ids),
        ).fetchall()
        return [(r[0], r[1]) for r in rows]

    # -- conditional mutations -------------------------------------------------

    def update_last_verified_at(self, resource_id: int, timestamp: datetime) -> bool:
        """Move the verification time forward. Returns False when nothing changed.

        An older timestamp never overwrites a newer one.
        """
        ts = to_iso(timestamp)
        cur = self._execute(
            "update_last_verified_at",
            "UPDATE resources SET last_verified_at = ?, updated_at = ? "
            "WHERE id = ? AND deleted_at IS NULL "
            "AND (last_verified_at IS NULL OR last_verified_at <= ?)",
            (ts, to_iso(utc_now()), resource_id, ts),
        )
        return cur.rowcount > 0

    def update_recorded_fingerprint(
        self,
        skill_id: int,
        reference_index: int,
        fingerprint: str,
        expected: str | None | _Unset = UNSET,
    ) -> bool:
        """Overwrite one reference's recorded fingerprint.

        With *expected*, the write only happens if the stored value still
        equals it (compare-and-set).
        """
        with self._transaction("update_recorded_fingerprint") as cur:
            row = cur.execute(
                "SELECT position FROM skill_references WHERE skill_id = ? "
                "ORDER BY position LIMIT 1 OFFSET ?",
                (skill_id, reference_index),
            ).fetchone()
            if row is None:
                return False
            sql = "UPDATE skill_references SET recorded_fingerprint = ? WHERE skill_id = ? AND position = ?"
            params: list[object] = [fingerprint, skill_id, row[0]]
            if expected is not UNSET:
                sql += " AND recorded_fingerprint IS ?"
                params.append(expected)
            return cur.execute(sql, params).rowcount > 0

    def set_skill_reviewed(self, skill_id: int, reviewed: bool = True) -> bool:
        cur = self._execute(
            "set_skill_reviewed",
            "UPDATE skills SET reviewed = ?, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
            (int(reviewed), to_iso(utc_now()), skill_id),
        )
        return cur.rowcount > 0

    def write_snapshot(
        self,
        resource_id: int,
        snapshot: str,
        verified_at: datetime,
        retention_versions: int = 1,
    ) -> bool:
        """Store new snapshot content as the next version and prune old ones.

        Content fetched before the resource's current verification time is
        rejected, so overlapping writers settle on the newest fetch.
        """
        snapshot_hash = compute_hash(snapshot)
        ts = to_iso(verified_at)
        with self._transaction("write_snapshot") as cur:
            updated = cur.execute(
                "UPDATE resources SET snapshot = ?, snapshot_hash = ?, last_verified_at = ?, "
                "updated_at = ? WHERE id = ? AND deleted_at IS NULL "
                "AND (last_verified_at IS NULL OR last_verified_at <= ?)",
                (snapshot, snapshot_hash, ts, to_iso(utc_now()), resource_id, ts),
            ).rowcount
            if not updated:
                return False
            (version,) = cur.execute(
                "SELECT COALESCE(MAX(version), 0) + 1 FROM resource_snapshots WHERE resource_id = ?",
                (resource_id,),
            ).fetchone()
            cur.execute(
                "INSERT INTO resource_snapshots (resource_id, version, snapshot, snapshot_hash, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (resource_id, version, snapshot, snapshot_hash, ts),
            )
            cur.execute(
                "DELETE FROM resource_snapshots WHERE resource_id = ? AND version <= ?",
                (resource_id, version - max(1, retention_versions)),
            )
        return True

    # -- config rows -----------------------------------------------------------

    def get_config(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM config WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set_config(self, key: str, value: str) -> None:
        self._execute(
            "set_config",
            "INSERT INTO config (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
            (key, value, to_iso(utc_now())),
        )

    def delete_config(self, key: str) -> bool:
        return self._execute("delete_config", "DELETE FROM config WHERE key = ?", (key,)).rowcount > 0

    def get_all_config(self) -> dict[str, str]:
        rows = self._conn.execute("SELECT key, value FROM config ORDER BY key").fetchall()
        return {r[0]: r[1] for r in rows}

    # -- sweeps ----------------------------------------------------------------

    def auto_verify_facts(self, cutoff: datetime) -> int:
        """Verify retrieved, non-inference facts created before *cutoff*."""
        cur = self._execute(
            "auto_verify_facts",
            "UPDATE facts SET verified = 1, updated_at = ? "
            "WHERE verified = 0 AND deleted_at IS NULL AND retrieval_count > 0 "
            "AND created_at < ? AND (source_type IS NULL OR source_type != ?)",
            (to_iso(utc_now()), to_iso(cutoff), SourceType.inference.value),
        )
        return cur.rowcount

    def expire_facts(self, cutoff: datetime, now: datetime | None = None) -> int:
        """Soft-delete unverified facts created before *cutoff*."""
        cur = self._execute(
            "expire_facts",
            "UPDATE facts SET deleted_at = ? "
            "WHERE verified = 0 AND deleted_at IS NULL AND created_at < ?",
            (to_iso(now or utc_now()), to_iso(cutoff)),
        )
        return cur.rowcount

    def prune_snapshot_versions(self, retention_versions: int) -> int:
        cur = self._execute(
            "prune_snapshot_versions",
            "DELETE FROM resource_snapshots WHERE version <= "
            "(SELECT MAX(s.version) FROM resource_snapshots s "
            "WHERE s.resource_id = resource_snapshots.resource_id) - ?",
            (max(1, retention_versions),),
        )
        return cur.rowcount

    def prune_orphan_tags(self, dry_run: bool = False) -> list[str]:
        """Delete tags linked to no entity at all and return their names."""
        orphan = " AND ".join(
            f"NOT EXISTS (SELECT 1 FROM {link} lt WHERE lt.tag_id = t.id)"
            for _, link, _ in TAGGED_TABLES.values()
        )
        with self._transaction("prune_orphan_tags") as cur:
            names = [r[0] for r in cur.execute(
                f"SELECT t.name FROM tags t WHERE {orphan} ORDER BY t.name"
            ).fetchall()]
            if names and not dry_run:
                cur.execute(f"DELETE FROM tags WHERE name IN ({_qmarks(len(names))})", names)
        return names

    def hard_delete(self, cutoff: datetime) -> dict[str, int]:
        """Permanently remove entities soft-deleted before *cutoff*."""
        removed: dict[str, int] = {}
        with self._transaction("hard_delete") as cur:
            for kind, (table, _, _) in TAGGED_TABLES.items():
                removed[kind] = cur.execute(
                    f"DELETE FROM {table} WHERE deleted_at IS NOT NULL AND deleted_at < ?",
                    (to_iso(cutoff),),
                ).rowcount
        return removed

    # -- worker state ----------------------------------------------------------

    def load_task_state(self, task_name: str) -> WorkerTaskState | None:
        row = self._conn.execute(
            "SELECT task_name, last_run_at, last_status, last_message, items_processed "
            "FROM worker_state WHERE task_name = ?",
            (task_name,),
        ).fetchone()
        if row is None:
            return None
        return WorkerTaskState(
            task_name=row["task_name"],
            last_run_at=parse_iso(row["last_run_at"]),
            last_status=TaskStatus(row["last_status"]) if row["last_status"] else None,
            last_message=row["last_message"],
            items_processed=row["items_processed"],
        )

    def save_task_state(self, state: WorkerTaskState) -> None:
        self._execute(
            "save_task_state",
            "INSERT INTO worker_state (task_name, last_run_at, last_status, last_message, "
            "items_processed, updated_at) VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(task_name) DO UPDATE SET last_run_at = excluded.last_run_at, "
            "last_status = excluded.last_status, last_message = excluded.last_message, "
            "items_processed = excluded.items_processed, updated_at = excluded.updated_at",
            (
                state.task_name,
                to_iso(state.last_run_at) if state.last_run_at else None,
                state.last_status.value if state.last_status else None,
                state.last_message,
                state.items_processed,
                to_iso(utc_now()),
            ),
        )
