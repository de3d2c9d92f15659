"""
In-Memory Storage Implementation

Dict-of-tables backend used by the test suite and by local runs
(APP storage_backend=memory). Same scoping and change-feed semantics as
the Google Sheets backend, without the network.
"""

import copy
from typing import Any, Optional
from uuid import uuid4

from finbuddy.models.audit import AuditEvent
from finbuddy.models.records import utcnow
from finbuddy.services.realtime import ChangeFeed, ChangeType
from finbuddy.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    RecordStorageInterface,
    sort_rows,
)


class InMemoryRecordStorage(RecordStorageInterface):
    """Rows kept in `{table: {row_id: row}}`."""

    def __init__(self, feed: Optional[ChangeFeed] = None):
        super().__init__(feed)
        self._tables: dict[str, dict[str, dict]] = {}

    def _table(self, table: str) -> dict[str, dict]:
        return self._tables.setdefault(table, {})

    async def insert(self, table: str, user_id: str, values: dict[str, Any]) -> dict:
        row = copy.deepcopy(values)
        row["id"] = str(row.get("id") or uuid4())
        row["user_id"] = user_id
        now = utcnow().isoformat()
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)

        rows = self._table(table)
        if row["id"] in rows:
            raise DuplicateError(f"Row already exists in {table}: {row['id']}")
        rows[row["id"]] = row

        self._publish(table, ChangeType.INSERT, user_id, new=copy.deepcopy(row))
        return copy.deepcopy(row)

    async def get(self, table: str, user_id: str, record_id: str) -> Optional[dict]:
        row = self._table(table).get(str(record_id))
        if row is None or row.get("user_id") != user_id:
            return None
        return copy.deepcopy(row)

    async def update(
        self,
        table: str,
        user_id: str,
        record_id: str,
        changes: dict[str, Any],
    ) -> dict:
        rows = self._table(table)
        current = rows.get(str(record_id))
        if current is None or current.get("user_id") != user_id:
            raise NotFoundError(f"Row not found in {table}: {record_id}")

        old = copy.deepcopy(current)
        for key, value in changes.items():
            if key in ("id", "user_id"):
                continue
            current[key] = copy.deepcopy(value)
        current["updated_at"] = utcnow().isoformat()

        self._publish(table, ChangeType.UPDATE, user_id, new=copy.deepcopy(current), old=old)
        return copy.deepcopy(current)

    async def delete(self, table: str, user_id: str, record_id: str) -> bool:
        rows = self._table(table)
        current = rows.get(str(record_id))
        if current is None or current.get("user_id") != user_id:
            return False

        del rows[str(record_id)]
        self._publish(table, ChangeType.DELETE, user_id, old=current)
        return True

    async def list(
        self,
        table: str,
        user_id: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        rows = [
            copy.deepcopy(r) for r in self._table(table).values()
            if r.get("user_id") == user_id
        ]
        return sort_rows(rows, order_by, descending, limit)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

