"""SQLite store for dead-lettered raw records."""

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from hubspot_sync.models.dead_letter import DeadLetterEntry
from hubspot_sync.models.raw import RawRecord
from hubspot_sync.store.sqlite_store import connect_db, ensure_schema


class DeadLetterStore:
    """Append-only dead-letter table. Usable directly as a DeadLetterRouter sink."""

    def __init__(self, db_path: str | Path = "hubspot_sync.db"):
        self._db_path = Path(db_path)
        ensure_schema(self._db_path)

    def _connection(self) -> sqlite3.Connection:
        return connect_db(self._db_path)

    def write_dead_letter(self, entry: DeadLetterEntry) -> None:
        """Persist one entry. Never deduplicates: each failure is its own row."""
        raw = entry.original_record
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO dead_letters (object_type, record_id, original_record, failure_reason, failed_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    raw.object_type,
                    raw.id,
                    raw.model_dump_json(),
                    entry.failure_reason,
                    entry.failed_at.isoformat(),
                ),
            )
            conn.commit()

    def list_entries(self, object_type: Optional[str] = None) -> list[DeadLetterEntry]:
        """Entries, oldest first; optionally only one object type."""
        with self._connection() as conn:
            if object_type:
                rows = conn.execute(
                    "SELECT * FROM dead_letters WHERE object_type = ? ORDER BY failed_at, id",
                    (object_type,),
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM dead_letters ORDER BY failed_at, id").fetchall()
        return [self._row_to_entry(r) for r in rows]

    def count(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM dead_letters").fetchone()[0]

    def _row_to_entry(self, row: sqlite3.Row) -> DeadLetterEntry:
        return DeadLetterEntry(
            original_record=RawRecord.model_validate(json.loads(row["original_record"])),
            failure_reason=row["failure_reason"],
            failed_at=datetime.fromisoformat(row["failed_at"]),
        )
