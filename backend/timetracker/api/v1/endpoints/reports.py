from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from timetracker.dependencies import check_error, get_data_service
from timetracker.schemas.report import Report, ReportFilter
from timetracker.services.data_service import DataService
from timetracker.services.reporting import build_report, report_to_csv

router = APIRouter()


async def _build(service: DataService, report_filter: ReportFilter, limit: int) -> Report:
    result = await service.get_all_time_entries(limit=limit)
    check_error(result.error)
    return build_report(result.data, report_filter)


@router.post("/", response_model=Report)
async def run_report(
    report_filter: ReportFilter,
    service: Annotated[DataService, Depends(get_data_service)],
    limit: int = Query(10000, ge=1),
):
    """Hours report over the filtered entries."""
    return await _build(service, report_filter, limit)


@router.post("/csv")
async def export_report_csv(
    report_filter: ReportFilter,
    service: Annotated[DataService, Depends(get_data_service)],
    limit: int = Query(10000, ge=1),
):
    report = await _build(service, report_filter, limit)
    return Response(
        content=report_to_csv(report),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="time-report.csv"'},
    )
