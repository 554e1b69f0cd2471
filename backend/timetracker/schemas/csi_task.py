from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from timetracker.schemas.store import RowId


class CSITask(BaseModel):
    id: RowId
    name: str
    created_at: Optional[datetime] = None


class CSITaskWithStats(CSITask):
    usage_count: int = 0
    total_hours: float = 0.0
    unique_user_count: int = 0


class CSITaskWrite(BaseModel):
    name: str
