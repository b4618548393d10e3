"""SQLite schema creation and migration for the context database."""

import sqlite3

SCHEMA_VERSION = 2

# A file-scoped context has node_id ''; NULL would defeat the primary key.
_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS contexts (
    file_key TEXT NOT NULL,
    node_id TEXT NOT NULL DEFAULT '',
    document TEXT NOT NULL,
    stored_at TEXT,
    updated_at TEXT,
    written_at INTEGER NOT NULL,
    PRIMARY KEY (file_key, node_id)
);

CREATE INDEX IF NOT EXISTS idx_contexts_file_key ON contexts(file_key);
CREATE INDEX IF NOT EXISTS idx_contexts_written ON contexts(written_at DESC);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes."""
    conn.executescript(_SCHEMA_SQL)
    set_metadata(conn, "schema_version", str(SCHEMA_VERSION))


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Return the current schema version, or None if metadata table doesn't exist."""
    try:
        value = get_metadata(conn, "schema_version")
    except sqlite3.OperationalError:
        return None
    return int(value) if value else None


def _migrate_v1_to_v2(conn: sqlite3.Connection) -> None:
    """Re-key contexts on (file_key, node_id) instead of the joined string key."""
    conn.executescript(
        """\
        ALTER TABLE contexts RENAME TO contexts_v1;
        DROP INDEX IF EXISTS idx_contexts_file_key;
        DROP INDEX IF EXISTS idx_contexts_written;
        """
    )
    conn.executescript(_SCHEMA_SQL)
    conn.execute(
        """INSERT OR REPLACE INTO contexts
           (file_key, node_id, document, stored_at, updated_at, written_at)
           SELECT file_key, COALESCE(node_id, ''), document, stored_at, updated_at, written_at
           FROM contexts_v1 ORDER BY written_at"""
    )
    conn.execute("DROP TABLE contexts_v1")
    set_metadata(conn, "schema_version", "2")


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Create or migrate the database schema to the latest version."""
    version = get_schema_version(conn)
    if version is None:
        create_schema(conn)
    elif version < 2:
        _migrate_v1_to_v2(conn)


def get_metadata(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def set_metadata(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
        (key, value),
    )
    conn.commit()
