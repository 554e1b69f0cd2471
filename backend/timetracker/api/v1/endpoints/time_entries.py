from typing import Annotated, Any, Dict, List, Union
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query, status

from timetracker.config import settings
from timetracker.dependencies import check_error, get_current_user, get_data_service, require_self_or_admin
from timetracker.schemas.time_entry import TimeEntry, TimeEntryCreate, TimeEntryUpdate, TimeEntryWithUser
from timetracker.schemas.user import User
from timetracker.services import aggregation
from timetracker.services.data_service import DataService

router = APIRouter()

RowIdParam = Union[int, str]


@router.get("/", response_model=List[TimeEntryWithUser])
async def read_all_time_entries(
    service: Annotated[DataService, Depends(get_data_service)],
    limit: int = Query(100, ge=1),
):
    """Entries across all users with the owner's name joined in."""
    result = await service.get_all_time_entries(limit=limit)
    check_error(result.error)
    return result.data


@router.get("/grouped")
async def read_grouped_time_entries(
    service: Annotated[DataService, Depends(get_data_service)],
    limit: int = Query(1000, ge=1),
) -> Dict[str, Any]:
    """
    Entries grouped by year, month and biweek period, with count, hours and
    distinct users at every leaf and the top divisions per month.
    """
    result = await service.get_all_time_entries(limit=limit)
    check_error(result.error)

    tz = ZoneInfo(settings.display_timezone)
    tree: Dict[str, Any] = {}
    for year, months in aggregation.group_by_year_month_biweek(result.data, tz=tz).items():
        year_node = tree.setdefault(str(year), {})
        for month, periods in months.items():
            breakdown: Dict[str, int] = {}
            month_node = {"name": aggregation.month_name(month), "periods": {}}
            for period, entries in periods.items():
                for entry in entries:
                    key = entry.csi_division or aggregation.UNASSIGNED_DIVISION
                    breakdown[key] = breakdown.get(key, 0) + (entry.duration or 0)
                month_node["periods"][period] = {
                    "label": aggregation.biweek_label(period),
                    "stats": aggregation.compute_group_stats(entries),
                    "entries": entries,
                }
            month_node["top_divisions"] = aggregation.top_n_by_value(breakdown)
            year_node[str(month)] = month_node
    return tree


@router.get("/{user_id}", response_model=List[TimeEntry])
async def read_user_time_entries(
    user_id: RowIdParam,
    service: Annotated[DataService, Depends(get_data_service)],
    limit: int = Query(50, ge=1),
):
    result = await service.get_time_entries(user_id, limit=limit)
    check_error(result.error)
    return result.data


@router.post("/{user_id}", response_model=List[TimeEntry], status_code=status.HTTP_201_CREATED)
async def create_time_entry(
    user_id: RowIdParam,
    entry: TimeEntryCreate,
    service: Annotated[DataService, Depends(get_data_service)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    require_self_or_admin(current_user, user_id)
    result = await service.add_time_entry(user_id, entry)
    check_error(result.error)
    return result.rows


@router.put("/{user_id}/{entry_id}", response_model=List[TimeEntry])
async def update_time_entry(
    user_id: RowIdParam,
    entry_id: RowIdParam,
    entry: TimeEntryUpdate,
    service: Annotated[DataService, Depends(get_data_service)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    require_self_or_admin(current_user, user_id)
    result = await service.edit_time_entry(user_id, entry_id, entry)
    check_error(result.error)
    return result.rows


@router.delete("/{user_id}/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_time_entry(
    user_id: RowIdParam,
    entry_id: RowIdParam,
    service: Annotated[DataService, Depends(get_data_service)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    require_self_or_admin(current_user, user_id)
    result = await service.delete_time_entry(user_id, entry_id)
    check_error(result.error)
