from fastapi import APIRouter, Depends

from timetracker.api.v1.endpoints import auth, csi_tasks, job_addresses, reports, time_entries, users
from timetracker.dependencies import get_current_user

# Everything except auth requires a bearer token
authenticated = [Depends(get_current_user)]

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"], dependencies=authenticated)
api_router.include_router(time_entries.router, prefix="/time-entries", tags=["time-entries"], dependencies=authenticated)
api_router.include_router(job_addresses.router, prefix="/job-addresses", tags=["job-addresses"], dependencies=authenticated)
api_router.include_router(csi_tasks.router, prefix="/csi-tasks", tags=["csi-tasks"], dependencies=authenticated)
api_router.include_router(reports.router, prefix="/reports", tags=["reports"], dependencies=authenticated)
