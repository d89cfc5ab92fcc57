"""SQLite-backed raw record store with run tracking."""

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from hubspot_sync.models.raw import STANDARD_OBJECT_TYPES, RawRecord, is_engagement_type


class RunRecord:
    """Record of a sync run."""

    def __init__(
        self,
        id: int,
        object_type: str,
        started_at: datetime,
        finished_at: Optional[datetime],
        status: str,
        items_total: int,
        items_succeeded: int,
        items_failed: int,
        items_dead_lettered: int = 0,
        error: Optional[str] = None,
    ):
        self.id = id
        self.object_type = object_type
        self.started_at = started_at
        self.finished_at = finished_at
        self.status = status
        self.items_total = items_total
        self.items_succeeded = items_succeeded
        self.items_failed = items_failed
        self.items_dead_lettered = items_dead_lettered
        self.error = error


def connect_db(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def ensure_schema(db_path: Path) -> None:
    schema_path = Path(__file__).parent / "schema.sql"
    with connect_db(db_path) as conn:
        conn.executescript(schema_path.read_text())


def table_for(object_type: str) -> str:
    """Raw table name for an object type (engagement types share one table)."""
    if is_engagement_type(object_type):
        return "hubspot_raw_engagements"
    if object_type not in STANDARD_OBJECT_TYPES:
        raise ValueError(f"No raw table for object type: {object_type}")
    return f"hubspot_raw_{object_type}"


class RawRecordStore:
    """
    SQLite store for raw HubSpot records, one table per object kind.
    Keyed by id (engagements by (id, object_type)); writes are idempotent upserts
    so at-least-once delivery from the sync side is safe.
    """

    def __init__(self, db_path: str | Path = "hubspot_sync.db"):
        self._db_path = Path(db_path)
        ensure_schema(self._db_path)

    def _connection(self) -> sqlite3.Connection:
        return connect_db(self._db_path)

    def upsert(self, record: RawRecord) -> bool:
        """Insert or replace a raw record. Returns True if it was new."""
        if not record.id:
            raise ValueError("Cannot store a raw record without an id")
        table = table_for(record.object_type)
        engagement = is_engagement_type(record.object_type)
        properties = json.dumps(record.clean_properties(), sort_keys=True)
        created = record.created_at.isoformat()
        updated = record.updated_at.isoformat()
        archived = 1 if record.archived else 0

        with self._connection() as conn:
            if engagement:
                key_sql, key = "id = ? AND object_type = ?", (record.id, record.object_type)
            else:
                key_sql, key = "id = ?", (record.id,)
            existing = conn.execute(f"SELECT 1 FROM {table} WHERE {key_sql}", key).fetchone()

            if existing:
                conn.execute(
                    f"UPDATE {table} SET properties = ?, created_at = ?, updated_at = ?, archived = ? WHERE {key_sql}",
                    (properties, created, updated, archived, *key),
                )
            elif engagement:
                conn.execute(
                    f"""
                    INSERT INTO {table} (id, object_type, properties, created_at, updated_at, archived)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (record.id, record.object_type, properties, created, updated, archived),
                )
            else:
                conn.execute(
                    f"""
                    INSERT INTO {table} (id, properties, created_at, updated_at, archived)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (record.id, properties, created, updated, archived),
                )
            conn.commit()
        return existing is None

    def _row_to_record(self, row: sqlite3.Row, object_type: str) -> RawRecord:
        keys = row.keys()
        return RawRecord(
            id=row["id"],
            object_type=row["object_type"] if "object_type" in keys else object_type,
            properties=json.loads(row["properties"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            archived=bool(row["archived"]),
        )

    def get(self, object_type: str, record_id: str) -> Optional[RawRecord]:
        """Get one record by id (and object type, for engagements)."""
        table = table_for(object_type)
        with self._connection() as conn:
            if is_engagement_type(object_type) and object_type != "engagements":
                row = conn.execute(
                    f"SELECT * FROM {table} WHERE id = ? AND object_type = ?",
                    (record_id, object_type),
                ).fetchone()
            else:
                row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone()
        return self._row_to_record(row, object_type) if row else None

    def get_all(self, object_type: str) -> list[RawRecord]:
        """Return every stored record of one kind, most recently updated first."""
        table = table_for(object_type)
        with self._connection() as conn:
            rows = conn.execute(f"SELECT * FROM {table} ORDER BY updated_at DESC").fetchall()
        return [self._row_to_record(r, object_type) for r in rows]

    def get_updated_since(self, object_type: str, since: datetime) -> list[RawRecord]:
        """Return records with updated_at >= since (uses the updated_at index)."""
        table = table_for(object_type)
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM {table} WHERE updated_at >= ? ORDER BY updated_at DESC",
                (since.isoformat(),),
            ).fetchall()
        return [self._row_to_record(r, object_type) for r in rows]

    def count(self, object_type: str) -> int:
        table = table_for(object_type)
        with self._connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def start_run(self, object_type: str) -> RunRecord:
        """Record start of a sync run. Returns RunRecord with id."""
        now = datetime.now(timezone.utc).isoformat()
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT INTO runs (object_type, started_at, status) VALUES (?, ?, 'running')",
                (object_type, now),
            )
            conn.commit()
            run_id = cursor.lastrowid
        return RunRecord(
            id=run_id or 0,
            object_type=object_type,
            started_at=datetime.fromisoformat(now),
            finished_at=None,
            status="running",
            items_total=0,
            items_succeeded=0,
            items_failed=0,
        )

    def finish_run(
        self,
        run_id: int,
        items_total: int,
        items_succeeded: int,
        items_failed: int,
        items_dead_lettered: int = 0,
        status: str = "completed",
        error: Optional[str] = None,
    ) -> None:
        """Record completion (or failure) of a sync run."""
        now = datetime.now(timezone.utc).isoformat()
        with self._connection() as conn:
            conn.execute(
                """
                UPDATE runs SET finished_at = ?, status = ?, items_total = ?, items_succeeded = ?,
                    items_failed = ?, items_dead_lettered = ?, error = ?
                WHERE id = ?
                """,
                (now, status, items_total, items_succeeded, items_failed, items_dead_lettered, error, run_id),
            )
            conn.commit()

    def get_run(self, run_id: int) -> Optional[RunRecord]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM runs WHERE id = ?", (run_id,)).fetchone()
        if not row:
            return None
        return RunRecord(
            id=row["id"],
            object_type=row["object_type"],
            started_at=datetime.fromisoformat(row["started_at"]),
            finished_at=datetime.fromisoformat(row["finished_at"]) if row["finished_at"] else None,
            status=row["status"],
            items_total=row["items_total"],
            items_succeeded=row["items_succeeded"],
            items_failed=row["items_failed"],
            items_dead_lettered=row["items_dead_lettered"],
            error=row["error"],
        )
