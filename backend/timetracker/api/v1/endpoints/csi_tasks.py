from typing import Annotated, List, Union

from fastapi import APIRouter, Depends, Query, status

from timetracker.dependencies import check_error, get_current_admin_user, get_data_service
from timetracker.schemas.csi_task import CSITask, CSITaskWithStats, CSITaskWrite
from timetracker.services.data_service import DataService

router = APIRouter()

RowIdParam = Union[int, str]


@router.get("/", response_model=List[CSITaskWithStats])
async def read_csi_tasks(
    service: Annotated[DataService, Depends(get_data_service)],
    force_refresh: bool = Query(False, description="Bypass the aggregate cache"),
):
    """Task catalog with usage count, hours and distinct users per task."""
    result = await service.get_task_catalog_with_stats(force_refresh=force_refresh)
    check_error(result.error)
    return result.data


@router.get("/names", response_model=List[str])
async def read_task_names(service: Annotated[DataService, Depends(get_data_service)]):
    result = await service.get_available_task_names()
    return result.data


@router.post("/", dependencies=[Depends(get_current_admin_user)], response_model=List[CSITask], status_code=status.HTTP_201_CREATED)
async def create_csi_task(payload: CSITaskWrite, service: Annotated[DataService, Depends(get_data_service)]):
    result = await service.add_csi_task(payload.name)
    check_error(result.error)
    return result.rows


@router.put("/{task_id}", dependencies=[Depends(get_current_admin_user)], response_model=List[CSITask])
async def rename_csi_task(task_id: RowIdParam, payload: CSITaskWrite, service: Annotated[DataService, Depends(get_data_service)]):
    """Rename a task. Historical time entries keep the previous name."""
    result = await service.edit_csi_task(task_id, payload.name)
    check_error(result.error)
    return result.rows


@router.delete("/{task_id}", dependencies=[Depends(get_current_admin_user)], status_code=status.HTTP_204_NO_CONTENT)
async def delete_csi_task(task_id: RowIdParam, service: Annotated[DataService, Depends(get_data_service)]):
    result = await service.delete_csi_task(task_id)
    check_error(result.error)
