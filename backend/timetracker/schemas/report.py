from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from timetracker.schemas.store import RowId


class ReportFilter(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    job_addresses: List[str] = Field(default_factory=list)
    tasks: List[str] = Field(default_factory=list)
    user_ids: List[RowId] = Field(default_factory=list)
    # An "all" flag collapses that dimension instead of grouping by it
    all_jobs: bool = False
    all_tasks: bool = False
    all_workers: bool = False


class ReportRow(BaseModel):
    date: str
    job: Optional[str] = None
    task: Optional[str] = None
    worker: Optional[str] = None
    hours: float = 0.0


class Report(BaseModel):
    headers: List[str]
    rows: List[ReportRow] = Field(default_factory=list)
