"""
hybridstore.infrastructure.metadata_index - SQLite Metadata Index
==================================================================

Single source of truth for the searchable and sortable attributes of
artifacts. The index holds the flattened Pointer projection (path, size,
checksum, compression flag) and the access counters, never payload bytes.

Schema:
    artifacts        One row per artifact (primary key: id)
    artifact_tags    (artifact_id, tag) pairs; exact-match tag filter
    artifact_events  Time series of created/updated/accessed/deleted events
    schema_version   Version marker

    Indexes: type, category, priority DESC, last_accessed DESC,
    created_at DESC, tag.

    Triggers:
        updated_at     refreshed on every row update that does not set it
        last_accessed  refreshed when access_count is incremented

Connection Model:
    One SQLite connection per worker thread (``threading.local``). Every
    call runs in a worker thread via ``asyncio.to_thread``; SQLite's WAL
    journal serializes writers and lets readers proceed concurrently.
    The database must be a file: an in-memory database would be private
    to each connection.

Usage:
    >>> index = MetadataIndex(IndexConfig(database_path="/tmp/store.db"))
    >>> await index.connect()
    >>> await index.upsert(record)
    >>> page = await index.search(IndexQuery(category="knowledge", tags=["t"]))
    >>> await index.close()
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

import structlog

from hybridstore.core.config import IndexConfig
from hybridstore.core.enums import (
    ArtifactEventType,
    HealthStatus,
    OrderBy,
    OrderDirection,
)
from hybridstore.core.exceptions import ConfigurationError, StorageError
from hybridstore.core.models import (
    ArtifactEvent,
    ArtifactRecord,
    IndexHealth,
    IndexQuery,
    IndexStats,
    PointerProjection,
    TagCount,
)

# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()

SCHEMA_VERSION = 2

# ISO-8601 UTC with milliseconds; matches datetime.isoformat(timespec="milliseconds").
_SQL_NOW = "strftime('%Y-%m-%dT%H:%M:%f', 'now') || '+00:00'"

# Fires on increments only, so a re-create can reset the counters to 0 / NULL.
_LAST_ACCESSED_TRIGGER = f"""
CREATE TRIGGER IF NOT EXISTS trg_artifacts_last_accessed
AFTER UPDATE OF access_count ON artifacts
FOR EACH ROW WHEN NEW.access_count > OLD.access_count
BEGIN
    UPDATE artifacts SET last_accessed = {_SQL_NOW} WHERE id = NEW.id;
END;
"""

# Applied in order to databases created by an older SCHEMA_VERSION.
_MIGRATIONS = {
    2: f"DROP TRIGGER IF EXISTS trg_artifacts_last_accessed;\n{_LAST_ACCESSED_TRIGGER}",
}

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS artifacts (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    category TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    file_path TEXT NOT NULL,
    file_offset INTEGER,
    file_size INTEGER NOT NULL DEFAULT 0,
    metadata TEXT NOT NULL DEFAULT '{{}}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    access_count INTEGER NOT NULL DEFAULT 0,
    last_accessed TEXT,
    priority INTEGER NOT NULL DEFAULT 0 CHECK (priority BETWEEN 0 AND 10),
    tags TEXT NOT NULL DEFAULT '[]',
    compressed INTEGER NOT NULL DEFAULT 0,
    checksum TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS artifact_tags (
    artifact_id TEXT NOT NULL REFERENCES artifacts(id) ON DELETE CASCADE,
    tag TEXT NOT NULL,
    PRIMARY KEY (artifact_id, tag)
);

CREATE TABLE IF NOT EXISTS artifact_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    artifact_id TEXT NOT NULL,
    event TEXT NOT NULL,
    occurred_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_artifacts_type ON artifacts(type);
CREATE INDEX IF NOT EXISTS idx_artifacts_category ON artifacts(category);
CREATE INDEX IF NOT EXISTS idx_artifacts_priority ON artifacts(priority DESC);
CREATE INDEX IF NOT EXISTS idx_artifacts_last_accessed ON artifacts(last_accessed DESC);
CREATE INDEX IF NOT EXISTS idx_artifacts_created_at ON artifacts(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_artifact_tags_tag ON artifact_tags(tag);
CREATE INDEX IF NOT EXISTS idx_artifact_events_artifact
    ON artifact_events(artifact_id, occurred_at);

CREATE TRIGGER IF NOT EXISTS trg_artifacts_updated_at
AFTER UPDATE ON artifacts
FOR EACH ROW WHEN NEW.updated_at IS OLD.updated_at
BEGIN
    UPDATE artifacts SET updated_at = {_SQL_NOW} WHERE id = NEW.id;
END;

{_LAST_ACCESSED_TRIGGER}
"""

# Access counters are owned by record_access(); an upsert only sets them on insert.
_UPSERT = """
INSERT INTO artifacts (
    id, type, category, title, description, file_path, file_offset, file_size,
    metadata, created_at, updated_at, access_count, last_accessed, priority,
    tags, compressed, checksum
) VALUES (
    :id, :type, :category, :title, :description, :file_path, :file_offset, :file_size,
    :metadata, :created_at, :updated_at, :access_count, :last_accessed, :priority,
    :tags, :compressed, :checksum
)
ON CONFLICT(id) DO UPDATE SET
    type = excluded.type,
    category = excluded.category,
    title = excluded.title,
    description = excluded.description,
    file_path = excluded.file_path,
    file_offset = excluded.file_offset,
    file_size = excluded.file_size,
    metadata = excluded.metadata,
    created_at = excluded.created_at,
    updated_at = excluded.updated_at,
    priority = excluded.priority,
    tags = excluded.tags,
    compressed = excluded.compressed,
    checksum = excluded.checksum
"""

# Re-creating an id replaces the whole row, counters included.
_REPLACE = _UPSERT.rstrip() + """,
    access_count = excluded.access_count,
    last_accessed = excluded.last_accessed
"""

# title has no index; it falls back to priority and the Artifact API re-sorts.
_ORDER_COLUMNS = {
    OrderBy.PRIORITY: "a.priority",
    OrderBy.LAST_ACCESSED: "a.last_accessed",
    OrderBy.CREATED_AT: "a.created_at",
    OrderBy.ACCESS_COUNT: "a.access_count",
    OrderBy.TITLE: "a.priority",
}


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601 UTC with millisecond precision."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _record_params(record: ArtifactRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "type": record.type,
        "category": record.category,
        "title": record.title,
        "description": record.description,
        "file_path": record.storage.file_path,
        "file_offset": record.storage.file_offset,
        "file_size": record.storage.file_size,
        "metadata": json.dumps(record.metadata, separators=(",", ":")),
        "created_at": format_timestamp(record.created_at),
        "updated_at": format_timestamp(record.updated_at),
        "access_count": record.access_count,
        "last_accessed": format_timestamp(record.last_accessed),
        "priority": record.priority,
        "tags": json.dumps(record.tags),
        "compressed": int(record.compressed),
        "checksum": record.checksum,
    }


def _row_to_record(row: sqlite3.Row) -> ArtifactRecord:
    return ArtifactRecord(
        id=row["id"],
        type=row["type"],
        category=row["category"],
        title=row["title"],
        description=row["description"],
        metadata=json.loads(row["metadata"]),
        priority=row["priority"],
        tags=json.loads(row["tags"]),
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
        access_count=row["access_count"],
        last_accessed=parse_timestamp(row["last_accessed"]),
        storage=PointerProjection(
            file_path=row["file_path"],
            file_offset=row["file_offset"],
            file_size=row["file_size"],
            checksum=row["checksum"],
            compressed=bool(row["compressed"]),
        ),
    )


class MetadataIndex:
    """SQLite-backed index of artifact records.

    Attributes:
        config: Index settings (path, pragmas, analytics switch).

    Example:
        >>> async with MetadataIndex(IndexConfig(database_path="/tmp/a.db")) as index:
        ...     await index.upsert(record)
        ...     await index.record_access(record.id)
    """

    def __init__(self, config: Optional[IndexConfig] = None) -> None:
        self.config = config or IndexConfig()
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._generation = 0
        self._connected = False
        self._logger = logger.bind(component="metadata_index")

    @property
    def is_connected(self) -> bool:
        return self._connected

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------
    async def connect(self) -> None:
        """Open the database, apply pragmas and create the schema.

        Raises:
            ConfigurationError: If the database path is ``:memory:``.
            StorageError: If the database cannot be opened or initialized.
        """
        if self._connected:
            return
        if self.config.database_path == ":memory:":
            raise ConfigurationError(
                message="The metadata index requires a database file",
                error_code="INVALID_DATABASE_PATH",
                details={"database_path": self.config.database_path},
            )

        self._generation += 1
        self._connected = True
        try:
            await asyncio.to_thread(
                Path(self.config.database_path).parent.mkdir, parents=True, exist_ok=True,
            )
            await self._run("initialize", self._initialize_schema)
        except (OSError, StorageError) as exc:
            self._connected = False
            self._close_all()
            if isinstance(exc, StorageError):
                raise
            raise StorageError(
                message=f"Cannot open metadata index at {self.config.database_path}",
                error_code="INDEX_QUERY_FAILED",
                details={"database_path": self.config.database_path, "reason": str(exc)},
            ) from exc

        self._logger.info(
            "metadata_index_connected",
            database_path=self.config.database_path,
            schema_version=SCHEMA_VERSION,
        )

    async def close(self) -> None:
        """Close every connection opened by this index."""
        if not self._connected:
            return
        self._connected = False
        self._close_all()
        self._logger.info("metadata_index_closed")

    async def __aenter__(self) -> MetadataIndex:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _close_all(self) -> None:
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as exc:
                self._logger.warning("connection_close_failed", error=str(exc))

    def _connection(self) -> sqlite3.Connection:
        """Connection for the current thread, opened on first use."""
        cached = getattr(self._local, "conn", None)
        if cached is not None and cached[0] == self._generation:
            return cached[1]

        conn = sqlite3.connect(
            self.config.database_path,
            timeout=self.config.busy_timeout_seconds,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.execute(f"PRAGMA cache_size = -{int(self.config.cache_size_kib)}")
        conn.execute("PRAGMA temp_store = MEMORY")
        conn.execute(f"PRAGMA mmap_size = {int(self.config.mmap_size)}")
        conn.execute("PRAGMA foreign_keys = ON")

        with self._connections_lock:
            self._connections.append(conn)
        self._local.conn = (self._generation, conn)
        return conn

    async def _run(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        """Run ``fn(conn, *args)`` in a worker thread, wrapping sqlite3 errors."""
        if not self._connected:
            raise StorageError(
                message="Metadata index is not connected",
                error_code="INDEX_NOT_CONNECTED",
                details={"operation": operation},
            )

        def call() -> Any:
            return fn(self._connection(), *args)

        try:
            return await asyncio.to_thread(call)
        except sqlite3.Error as exc:
            self._logger.error("index_query_failed", operation=operation, error=str(exc))
            raise StorageError(
                message=f"Metadata index {operation} failed: {exc}",
                error_code="INDEX_QUERY_FAILED",
                details={"operation": operation, "reason": str(exc)},
            ) from exc

    def _initialize_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(_SCHEMA)
        current = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
        if current is not None:
            for version in sorted(v for v in _MIGRATIONS if v > current):
                conn.executescript(_MIGRATIONS[version])
                self._logger.info(
                    "index_schema_migrated", from_version=current, to_version=version,
                )
        with conn:
            conn.execute(
                "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
                (SCHEMA_VERSION, format_timestamp(datetime.now(timezone.utc))),
            )

    def _record_event(
        self, conn: sqlite3.Connection, artifact_id: str, event: ArtifactEventType,
    ) -> None:
        if not self.config.enable_analytics:
            return
        conn.execute(
            "INSERT INTO artifact_events (artifact_id, event, occurred_at) VALUES (?, ?, ?)",
            (artifact_id, event.value, format_timestamp(datetime.now(timezone.utc))),
        )

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------
    async def upsert(self, record: ArtifactRecord, *, reset_counters: bool = False) -> None:
        """Insert a record or replace the existing row with the same id.

        The row and its tag rows are written in one transaction. On
        conflict, ``access_count`` and ``last_accessed`` keep their stored
        values unless ``reset_counters`` is set, in which case they are
        overwritten with the record's own and the change is recorded as a
        created event.
        """
        await self._run("upsert", self._upsert_sync, record, reset_counters)
        self._logger.debug(
            "artifact_indexed", artifact_id=record.id, reset_counters=reset_counters,
        )

    def _upsert_sync(
        self, conn: sqlite3.Connection, record: ArtifactRecord, reset_counters: bool,
    ) -> None:
        with conn:
            exists = conn.execute(
                "SELECT 1 FROM artifacts WHERE id = ?", (record.id,),
            ).fetchone() is not None
            conn.execute(_REPLACE if reset_counters else _UPSERT, _record_params(record))
            conn.execute("DELETE FROM artifact_tags WHERE artifact_id = ?", (record.id,))
            conn.executemany(
                "INSERT OR IGNORE INTO artifact_tags (artifact_id, tag) VALUES (?, ?)",
                [(record.id, tag) for tag in record.tags],
            )
            self._record_event(
                conn,
                record.id,
                ArtifactEventType.UPDATED
                if exists and not reset_counters
                else ArtifactEventType.CREATED,
            )

    async def delete(self, artifact_id: str) -> bool:
        """Remove a row (and its tags). Returns False if the id is unknown."""
        deleted = await self._run("delete", self._delete_sync, artifact_id)
        if deleted:
            self._logger.debug("artifact_unindexed", artifact_id=artifact_id)
        return deleted

    def _delete_sync(self, conn: sqlite3.Connection, artifact_id: str) -> bool:
        with conn:
            cursor = conn.execute("DELETE FROM artifacts WHERE id = ?", (artifact_id,))
            if cursor.rowcount == 0:
                return False
            self._record_event(conn, artifact_id, ArtifactEventType.DELETED)
            return True

    async def record_access(self, artifact_id: str) -> bool:
        """Increment the access counter of a row.

        The ``last_accessed`` trigger refreshes the access time. Returns
        False if the id is unknown.
        """
        return await self._run("record_access", self._record_access_sync, artifact_id)

    def _record_access_sync(self, conn: sqlite3.Connection, artifact_id: str) -> bool:
        with conn:
            cursor = conn.execute(
                "UPDATE artifacts SET access_count = access_count + 1 WHERE id = ?",
                (artifact_id,),
            )
            if cursor.rowcount == 0:
                return False
            self._record_event(conn, artifact_id, ArtifactEventType.ACCESSED)
            return True

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------
    async def get(self, artifact_id: str) -> Optional[ArtifactRecord]:
        def query(conn: sqlite3.Connection) -> Optional[ArtifactRecord]:
            row = conn.execute(
                "SELECT * FROM artifacts WHERE id = ?", (artifact_id,),
            ).fetchone()
            return _row_to_record(row) if row is not None else None

        return await self._run("get", query)

    async def search(self, query: IndexQuery) -> list[ArtifactRecord]:
        """Filter by type, category and tags; order and paginate.

        A record matches the tag filter when it carries ANY of the
        requested tags. ``OrderBy.TITLE`` is served in priority order.
        Ties are broken by id so pagination is stable.
        """
        clauses: list[str] = []
        params: list[Any] = []

        if query.type is not None:
            clauses.append("a.type = ?")
            params.append(query.type)
        if query.category is not None:
            clauses.append("a.category = ?")
            params.append(query.category)
        if query.tags:
            placeholders = ", ".join("?" for _ in query.tags)
            clauses.append(
                f"a.id IN (SELECT artifact_id FROM artifact_tags WHERE tag IN ({placeholders}))"
            )
            params.extend(query.tags)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        column = _ORDER_COLUMNS[OrderBy(query.order_by)]
        direction = "ASC" if OrderDirection(query.order_direction) == OrderDirection.ASC else "DESC"
        sql = (
            f"SELECT a.* FROM artifacts a {where} "
            f"ORDER BY {column} {direction}, a.id ASC LIMIT ? OFFSET ?"
        )
        params.extend([query.limit, query.offset])

        def run(conn: sqlite3.Connection) -> list[ArtifactRecord]:
            return [_row_to_record(row) for row in conn.execute(sql, params).fetchall()]

        return await self._run("search", run)

    async def count(self) -> int:
        def run(conn: sqlite3.Connection) -> int:
            return conn.execute("SELECT COUNT(*) FROM artifacts").fetchone()[0]

        return await self._run("count", run)

    async def stats(self) -> IndexStats:
        """Totals, per-type and per-category counts, size and access average."""

        def run(conn: sqlite3.Connection) -> IndexStats:
            total, total_size, avg_access = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(file_size), 0), COALESCE(AVG(access_count), 0) "
                "FROM artifacts"
            ).fetchone()
            by_type = {
                row[0]: row[1]
                for row in conn.execute(
                    "SELECT type, COUNT(*) FROM artifacts GROUP BY type ORDER BY type"
                )
            }
            by_category = {
                row[0]: row[1]
                for row in conn.execute(
                    "SELECT category, COUNT(*) FROM artifacts GROUP BY category ORDER BY category"
                )
            }
            return IndexStats(
                total_artifacts=total,
                by_type=by_type,
                by_category=by_category,
                total_size=total_size,
                average_access_count=float(avg_access),
            )

        return await self._run("stats", run)

    async def tag_counts(self, limit: int = 10) -> list[TagCount]:
        """Most frequent tags, ties broken alphabetically."""

        def run(conn: sqlite3.Connection) -> list[TagCount]:
            rows = conn.execute(
                "SELECT tag, COUNT(*) AS n FROM artifact_tags "
                "GROUP BY tag ORDER BY n DESC, tag ASC LIMIT ?",
                (limit,),
            ).fetchall()
            return [TagCount(tag=row["tag"], count=row["n"]) for row in rows]

        return await self._run("tag_counts", run)

    async def events(
        self, artifact_id: Optional[str] = None, limit: int = 50,
    ) -> list[ArtifactEvent]:
        """Recorded events, newest first, optionally for one artifact."""

        def run(conn: sqlite3.Connection) -> list[ArtifactEvent]:
            if artifact_id is None:
                rows = conn.execute(
                    "SELECT * FROM artifact_events ORDER BY id DESC LIMIT ?", (limit,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM artifact_events WHERE artifact_id = ? "
                    "ORDER BY id DESC LIMIT ?",
                    (artifact_id, limit),
                ).fetchall()
            return [
                ArtifactEvent(
                    artifact_id=row["artifact_id"],
                    event=ArtifactEventType(row["event"]),
                    occurred_at=parse_timestamp(row["occurred_at"]),
                )
                for row in rows
            ]

        return await self._run("events", run)

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------
    async def health_check(self) -> IndexHealth:
        """Probe the database; never raises."""
        if not self._connected:
            return IndexHealth(
                status=HealthStatus.UNHEALTHY,
                details={"error": "not connected"},
            )

        def run(conn: sqlite3.Connection) -> dict[str, Any]:
            return {
                "total_artifacts": conn.execute("SELECT COUNT(*) FROM artifacts").fetchone()[0],
                "journal_mode": conn.execute("PRAGMA journal_mode").fetchone()[0],
                "schema_version": conn.execute(
                    "SELECT MAX(version) FROM schema_version"
                ).fetchone()[0],
            }

        try:
            details = await self._run("health_check", run)
        except StorageError as exc:
            return IndexHealth(status=HealthStatus.UNHEALTHY, details={"error": exc.message})

        details["database_path"] = self.config.database_path
        return IndexHealth(status=HealthStatus.HEALTHY, details=details)
