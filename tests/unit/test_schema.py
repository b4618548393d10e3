"""Tests for database schema."""

import sqlite3

from design_context.core.database.schema import (
    create_schema,
    get_metadata,
    get_schema_version,
    migrate_schema,
    set_metadata,
)


def test_create_schema_creates_contexts_table() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='contexts'")
    assert cursor.fetchone() is not None


def test_create_schema_creates_file_key_index() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    indexes = {
        row[0]
        for row in conn.execute("SELECT name FROM sqlite_master WHERE type='index'").fetchall()
    }
    assert "idx_contexts_file_key" in indexes


def test_migrate_schema_on_empty_db_creates_schema_and_sets_version() -> None:
    conn = sqlite3.connect(":memory:")
    assert get_schema_version(conn) is None
    migrate_schema(conn)
    assert get_schema_version(conn) == 2


def test_migrate_schema_is_idempotent() -> None:
    conn = sqlite3.connect(":memory:")
    migrate_schema(conn)
    migrate_schema(conn)
    assert get_schema_version(conn) == 2


def test_metadata_round_trip() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    assert get_metadata(conn, "last_write_at") is None
    set_metadata(conn, "last_write_at", "123")
    set_metadata(conn, "last_write_at", "456")
    assert get_metadata(conn, "last_write_at") == "456"


def test_migrate_schema_rekeys_version_1_contexts() -> None:
    conn = sqlite3.connect(":memory:")
    conn.executescript(
        """\
        CREATE TABLE contexts (
            key TEXT PRIMARY KEY, file_key TEXT NOT NULL, node_id TEXT,
            document TEXT NOT NULL, stored_at TEXT, updated_at TEXT, written_at INTEGER NOT NULL
        );
        CREATE INDEX idx_contexts_file_key ON contexts(file_key);
        CREATE TABLE metadata (key TEXT PRIMARY KEY, value TEXT NOT NULL);
        INSERT INTO metadata VALUES ('schema_version', '1');
        INSERT INTO contexts VALUES ('fileA', 'fileA', NULL, '{"v": 1}', NULL, NULL, 1);
        INSERT INTO contexts VALUES ('fileA-1:1', 'fileA', '1:1', '{"v": 2}', NULL, NULL, 2);
        """
    )

    migrate_schema(conn)

    assert get_schema_version(conn) == 2
    rows = conn.execute(
        "SELECT file_key, node_id, document FROM contexts ORDER BY node_id"
    ).fetchall()
    assert rows == [("fileA", "", '{"v": 1}'), ("fileA", "1:1", '{"v": 2}')]


def test_file_and_node_rows_with_joined_lookalike_keys_coexist() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    conn.execute("INSERT INTO contexts (file_key, node_id, document, written_at) VALUES ('a-b', '', '{}', 1)")
    conn.execute("INSERT INTO contexts (file_key, node_id, document, written_at) VALUES ('a', 'b', '{}', 1)")
    assert conn.execute("SELECT COUNT(*) FROM contexts").fetchone()[0] == 2
