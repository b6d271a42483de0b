"""SQLite schema for the knowledge store."""

SCHEMA = """\
CREATE TABLE IF NOT EXISTS config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS resources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uri TEXT NOT NULL,
    type TEXT NOT NULL,
    snapshot TEXT,
    snapshot_hash TEXT,
    retrieval_method_json TEXT,
    last_verified_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_resources_live_uri ON resources(uri) WHERE deleted_at IS NULL;
CREATE INDEX IF NOT EXISTS idx_resources_deleted_at ON resources(deleted_at);

CREATE TABLE IF NOT EXISTS resource_tags (
    resource_id INTEGER NOT NULL REFERENCES resources(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (resource_id, tag_id)
);

CREATE TABLE IF NOT EXISTS resource_snapshots (
    resource_id INTEGER NOT NULL REFERENCES resources(id) ON DELETE CASCADE,
    version INTEGER NOT NULL,
    snapshot TEXT NOT NULL,
    snapshot_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (resource_id, version)
);

CREATE TABLE IF NOT EXISTS facts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    content TEXT NOT NULL,
    source_type TEXT,
    verified INTEGER NOT NULL DEFAULT 0,
    retrieval_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_facts_verified ON facts(verified);
CREATE INDEX IF NOT EXISTS idx_facts_deleted_at ON facts(deleted_at);

CREATE TABLE IF NOT EXISTS fact_tags (
    fact_id INTEGER NOT NULL REFERENCES facts(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (fact_id, tag_id)
);

CREATE TABLE IF NOT EXISTS skills (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    content_hash TEXT NOT NULL,
    reviewed INTEGER NOT NULL DEFAULT 1,
    file_path TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_skills_deleted_at ON skills(deleted_at);

CREATE TABLE IF NOT EXISTS skill_tags (
    skill_id INTEGER NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (skill_id, tag_id)
);

CREATE TABLE IF NOT EXISTS skill_references (
    skill_id INTEGER NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    target_type TEXT NOT NULL,
    target_id INTEGER NOT NULL,
    relation TEXT NOT NULL,
    recorded_fingerprint TEXT,
    created_at TEXT NOT NULL,
    PRIMARY KEY (skill_id, position)
);
CREATE INDEX IF NOT EXISTS idx_skill_references_target ON skill_references(target_type, target_id);

CREATE TABLE IF NOT EXISTS worker_state (
    task_name TEXT PRIMARY KEY,
    last_run_at TEXT,
    last_status TEXT,
    last_message TEXT,
    items_processed INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL
);
"""

# entity kind -> (table, tag link table, link column)
TAGGED_TABLES: dict[str, tuple[str, str, str]] = {
    "resource": ("resources", "resource_tags", "resource_id"),
    "fact": ("facts", "fact_tags", "fact_id"),
    "skill": ("skills", "skill_tags", "skill_id"),
}
