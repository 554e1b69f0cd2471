from typing import Optional

from pydantic import BaseModel

from timetracker.schemas.store import RowId


class JobAddress(BaseModel):
    id: RowId
    user_id: Optional[RowId] = None
    address: Optional[str] = None


class JobAddressCreate(BaseModel):
    address: str
