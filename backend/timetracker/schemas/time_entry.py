import datetime as dt
from typing import Optional

from pydantic import BaseModel

from timetracker.schemas.store import RowId


class TimeEntryBase(BaseModel):
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    duration: Optional[int] = None  # seconds
    job_address: Optional[str] = None
    csi_division: Optional[str] = None
    notes: Optional[str] = None
    date: Optional[dt.date] = None  # calendar date chosen by the user, not derived from start_time
    manual: bool = False


class TimeEntryCreate(TimeEntryBase):
    pass


class TimeEntryUpdate(TimeEntryBase):
    pass


class TimeEntry(TimeEntryBase):
    id: RowId
    user_id: Optional[RowId] = None
    created_at: Optional[dt.datetime] = None


class TimeEntryWithUser(TimeEntry):
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_role: Optional[str] = None
