"""SQLite store for normalized deals with a typed lookup query builder."""

import sqlite3
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from hubspot_sync.models.records import Deal
from hubspot_sync.store.sqlite_store import connect_db, ensure_schema


class DealQuery(BaseModel):
    """
    Optional lookup filters. Each set field contributes one predicate; the
    predicates are ANDed together with bound parameters.
    """

    deal_id: Optional[str] = None
    name_contains: Optional[str] = None
    owner_id: Optional[str] = None
    stage: Optional[str] = None
    include_archived: bool = True
    limit: int = Field(default=20, ge=1, le=1000)

    def predicates(self) -> list[tuple[str, tuple[Any, ...]]]:
        """(clause, params) for every active filter, in a fixed order."""
        clauses: list[tuple[str, tuple[Any, ...]]] = []
        if self.deal_id:
            clauses.append(("id = ?", (self.deal_id,)))
        if self.name_contains:
            clauses.append(("deal_name LIKE ? ESCAPE '\\'", (f"%{_escape_like(self.name_contains)}%",)))
        if self.owner_id:
            clauses.append(("owner_id = ?", (self.owner_id,)))
        if self.stage:
            clauses.append(("stage = ?", (self.stage,)))
        if not self.include_archived:
            clauses.append(("is_archived = 0", ()))
        return clauses

    def to_sql(self) -> tuple[str, list[Any]]:
        """Build the SELECT statement and its parameter list."""
        sql = "SELECT data FROM deals"
        params: list[Any] = []
        clauses = self.predicates()
        if clauses:
            sql += " WHERE " + " AND ".join(c for c, _ in clauses)
            for _, p in clauses:
                params.extend(p)
        sql += " ORDER BY last_modified_at DESC LIMIT ?"
        params.append(self.limit)
        return sql, params


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DealStore:
    """SQLite store for normalized deals keyed by deal id."""

    def __init__(self, db_path: str | Path = "hubspot_sync.db"):
        self._db_path = Path(db_path)
        ensure_schema(self._db_path)

    def _connection(self) -> sqlite3.Connection:
        return connect_db(self._db_path)

    def upsert(self, deal: Deal) -> bool:
        """Insert or replace a deal. Returns True if it was new."""
        with self._connection() as conn:
            existing = conn.execute("SELECT 1 FROM deals WHERE id = ?", (deal.id,)).fetchone()
            conn.execute(
                """
                INSERT OR REPLACE INTO deals (id, deal_name, owner_id, stage, is_archived, last_modified_at, data)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    deal.id,
                    deal.deal_name,
                    deal.owner_id,
                    deal.stage,
                    1 if deal.is_archived else 0,
                    deal.last_modified_at.isoformat(),
                    deal.model_dump_json(),
                ),
            )
            conn.commit()
        return existing is None

    def lookup(self, query: Optional[DealQuery] = None) -> list[Deal]:
        """Return deals matching every filter set on the query."""
        sql, params = (query or DealQuery()).to_sql()
        with self._connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [Deal.model_validate_json(r["data"]) for r in rows]

    def get(self, deal_id: str) -> Optional[Deal]:
        deals = self.lookup(DealQuery(deal_id=deal_id, limit=1))
        return deals[0] if deals else None
