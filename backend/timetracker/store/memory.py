import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from timetracker.constants.tables import Table, UNIQUE_VIOLATION
from timetracker.schemas.store import Filter, OrderBy, StoreError, StoreResult
from timetracker.store.base import RemoteStoreClient, TableName, table_name

log = logging.getLogger(__name__)

# Columns with a unique constraint, mirroring the hosted schema
UNIQUE_COLUMNS = {
    Table.USERS.value: ("username",),
    Table.CSI_TASKS.value: ("name",),
}


def _matches(row: Dict[str, Any], filters: Optional[Sequence[Filter]]) -> bool:
    for f in filters or ():
        value = row.get(f.column)
        if f.op == "eq" and value != f.value:
            return False
        if f.op == "neq" and value == f.value:
            return False
    return True


def _sort_key(value: Any):
    # NULLs sort last ascending and first descending, as in Postgres
    return (value is None, "" if value is None else value)


class InMemoryStoreClient(RemoteStoreClient):
    """
    Process-local store with the same contract as the hosted one.
    Used for local runs (`store_backend=memory`) and as the test double.
    """

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._tables: Dict[str, List[Dict[str, Any]]] = {t.value: [] for t in Table}
        for name, rows in (tables or {}).items():
            self._tables[table_name(name)] = [dict(row) for row in rows]
        self.calls: List[str] = []

    def _rows(self, table: TableName) -> List[Dict[str, Any]]:
        return self._tables.setdefault(table_name(table), [])

    def _unique_conflict(self, table: str, row: Dict[str, Any], ignore_id: Any = None) -> Optional[StoreError]:
        for column in UNIQUE_COLUMNS.get(table, ()):
            for existing in self._tables[table]:
                if existing.get("id") == ignore_id:
                    continue
                if column in row and existing.get(column) == row[column]:
                    return StoreError(
                        message=f'duplicate key value violates unique constraint "{table}_{column}_key"',
                        code=UNIQUE_VIOLATION,
                    )
        return None

    async def fetch_rows(
        self,
        table: TableName,
        filters: Optional[Sequence[Filter]] = None,
        order_by: Optional[Sequence[OrderBy]] = None,
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> StoreResult:
        self.calls.append(f"fetch:{table_name(table)}")
        rows = [r for r in self._rows(table) if _matches(r, filters)]
        # Apply the least significant ordering first; sorted() is stable
        for order in reversed(list(order_by or ())):
            rows = sorted(rows, key=lambda r: _sort_key(r.get(order.column)), reverse=not order.ascending)
        if limit is not None:
            rows = rows[:limit]
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",")]
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        return StoreResult(rows=copy.deepcopy(rows))

    async def insert_rows(self, table: TableName, rows: List[Dict[str, Any]]) -> StoreResult:
        name = table_name(table)
        self.calls.append(f"insert:{name}")
        inserted = []
        for row in rows:
            conflict = self._unique_conflict(name, row)
            if conflict:
                return StoreResult(error=conflict)
            stored = dict(row)
            stored.setdefault("id", str(uuid.uuid4()))
            stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            self._rows(name).append(stored)
            inserted.append(stored)
        log.debug(f"Inserted {len(inserted)} row(s) into {name}")
        return StoreResult(rows=copy.deepcopy(inserted))

    async def update_rows(self, table: TableName, patch: Dict[str, Any], filters: Sequence[Filter]) -> StoreResult:
        name = table_name(table)
        self.calls.append(f"update:{name}")
        updated = []
        for row in self._rows(name):
            if not _matches(row, filters):
                continue
            conflict = self._unique_conflict(name, patch, ignore_id=row.get("id"))
            if conflict:
                return StoreResult(error=conflict)
            row.update(patch)
            updated.append(row)
        return StoreResult(rows=copy.deepcopy(updated))

    async def delete_rows(self, table: TableName, filters: Sequence[Filter]) -> StoreResult:
        name = table_name(table)
        self.calls.append(f"delete:{name}")
        kept = [r for r in self._rows(name) if not _matches(r, filters)]
        log.debug(f"Deleted {len(self._tables[name]) - len(kept)} row(s) from {name}")
        self._tables[name] = kept
        return StoreResult()
