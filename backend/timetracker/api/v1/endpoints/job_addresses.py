from typing import Annotated, List, Union

from fastapi import APIRouter, Depends, Query, status

from timetracker.dependencies import check_error, get_current_user, get_data_service, require_self_or_admin
from timetracker.schemas.job_address import JobAddress, JobAddressCreate
from timetracker.schemas.user import User
from timetracker.services.data_service import DataService

router = APIRouter()

RowIdParam = Union[int, str]


@router.get("/", response_model=List[str])
async def read_all_job_addresses(
    service: Annotated[DataService, Depends(get_data_service)],
    force_refresh: bool = Query(False, description="Bypass the aggregate cache"),
):
    """Distinct job address labels across every user."""
    result = await service.get_deduplicated_job_addresses(force_refresh=force_refresh)
    check_error(result.error)
    return result.data


@router.get("/{user_id}", response_model=List[JobAddress])
async def read_user_job_addresses(user_id: RowIdParam, service: Annotated[DataService, Depends(get_data_service)]):
    result = await service.get_job_addresses(user_id)
    check_error(result.error)
    return result.data


@router.post("/{user_id}", response_model=List[JobAddress], status_code=status.HTTP_201_CREATED)
async def create_job_address(
    user_id: RowIdParam,
    payload: JobAddressCreate,
    service: Annotated[DataService, Depends(get_data_service)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    require_self_or_admin(current_user, user_id)
    result = await service.add_job_address(user_id, payload.address)
    check_error(result.error)
    return result.rows


@router.delete("/{user_id}/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job_address(
    user_id: RowIdParam,
    address_id: RowIdParam,
    service: Annotated[DataService, Depends(get_data_service)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    require_self_or_admin(current_user, user_id)
    result = await service.delete_job_address(user_id, address_id)
    check_error(result.error)
