from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from timetracker.schemas.user import PublicUser


class UserStats(BaseModel):
    """Derived per-user rollup, recomputed on every cache miss and never persisted."""
    total_entries: int = 0
    total_hours: float = 0.0
    division_breakdown: Dict[str, int] = Field(default_factory=dict)
    last_entry: Optional[datetime] = None
    total_addresses: int = 0


class UserAggregate(BaseModel):
    user: PublicUser
    stats: UserStats
    job_address_count: int = 0
    entry_count: int = 0


class GroupStats(BaseModel):
    count: int = 0
    total_hours: float = 0.0
    unique_user_count: int = 0
