from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

from timetracker.constants.tables import Table
from timetracker.schemas.store import Filter, OrderBy, StoreResult

TableName = Union[Table, str]


def table_name(table: TableName) -> str:
    return table.value if isinstance(table, Table) else table


class RemoteStoreClient(ABC):
    """Abstract CRUD client for the hosted relational store.

    Implementations never raise for remote failures; they return a
    StoreResult carrying a StoreError instead.
    """

    @abstractmethod
    async def fetch_rows(
        self,
        table: TableName,
        filters: Optional[Sequence[Filter]] = None,
        order_by: Optional[Sequence[OrderBy]] = None,
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> StoreResult:
        """Selects rows matching every filter, ordered and limited."""
        pass

    @abstractmethod
    async def insert_rows(self, table: TableName, rows: List[Dict[str, Any]]) -> StoreResult:
        """Inserts rows and returns them as stored (ids and defaults filled in)."""
        pass

    @abstractmethod
    async def update_rows(self, table: TableName, patch: Dict[str, Any], filters: Sequence[Filter]) -> StoreResult:
        """Applies `patch` to every matching row and returns the updated rows."""
        pass

    @abstractmethod
    async def delete_rows(self, table: TableName, filters: Sequence[Filter]) -> StoreResult:
        """Deletes every matching row."""
        pass

    async def close(self) -> None:
        pass
