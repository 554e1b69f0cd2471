from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

RowId = Union[int, str]


class StoreError(BaseModel):
    """Error surfaced by a remote store call (network, validation, constraint)."""
    message: str
    code: Optional[str] = None
    details: Optional[Any] = None


class StoreResult(BaseModel):
    """`{rows, error}` pair returned by every RemoteStoreClient operation."""
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[StoreError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Filter(BaseModel):
    column: str
    value: Any
    op: str = "eq"  # 'eq' or 'neq'


class OrderBy(BaseModel):
    column: str
    ascending: bool = True


class ServiceResult(BaseModel):
    """Envelope for DataService reads.

    `stale` is set when `data` is the last known good cached value served
    because the store could not be read.
    """
    data: Any = None
    error: Optional[StoreError] = None
    stale: bool = False
