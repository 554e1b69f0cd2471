from typing import Annotated, Dict, Union

from fastapi import APIRouter, Depends, Query, status

from timetracker.dependencies import check_error, get_current_admin_user, get_data_service
from timetracker.schemas.stats import UserAggregate, UserStats
from timetracker.schemas.user import PublicUser, User, UserCreate
from timetracker.services.data_service import DataService

router = APIRouter()


@router.get("/aggregate", response_model=Dict[str, UserAggregate])
async def read_all_users_aggregate(
    service: Annotated[DataService, Depends(get_data_service)],
    force_refresh: bool = Query(False, description="Bypass the aggregate cache"),
):
    """Per-user totals keyed by username."""
    result = await service.get_all_users_aggregate(force_refresh=force_refresh)
    check_error(result.error)
    return result.data


@router.get("/{user_id}/stats", response_model=UserStats)
async def read_user_stats(user_id: Union[int, str], service: Annotated[DataService, Depends(get_data_service)]):
    result = await service.get_user_stats(user_id)
    check_error(result.error)
    return result.data


@router.post("/", response_model=PublicUser, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    admin: Annotated[User, Depends(get_current_admin_user)],
    service: Annotated[DataService, Depends(get_data_service)],
):
    """Create a user with an explicit role (admins only)."""
    result = await service.create_user(payload.username, payload.password, payload.name, payload.role, actor=admin)
    check_error(result.error)
    return PublicUser.model_validate(result.rows[0])
