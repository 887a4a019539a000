from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.dependencies import get_current_user, get_scheduler
from app.errors import NotFound
from app.models.user import User
from app.services.scheduler import JobScheduler

router = APIRouter(prefix="/jobs", tags=["jobs"])

CurrentUser = Annotated[User, Depends(get_current_user)]
Scheduler = Annotated[JobScheduler, Depends(get_scheduler)]


class JobStatus(BaseModel):
    name: str
    status: str
    interval_seconds: float
    last_started_at: Optional[str]
    last_duration_ms: Optional[int]
    last_error: Optional[str]


class JobRunResponse(BaseModel):
    name: str
    success: bool


@router.get("", response_model=list[JobStatus])
async def list_jobs(current_user: CurrentUser, scheduler: Scheduler):
    return [JobStatus(**job) for job in scheduler.describe()]


@router.post("/{job_name}/run", response_model=JobRunResponse)
async def run_job(job_name: str, current_user: CurrentUser, scheduler: Scheduler):
    """Run one tick now, outside the regular schedule."""
    if job_name not in scheduler.job_names():
        raise NotFound(f"Job '{job_name}' not found", code="JOB_NOT_FOUND")
    return JobRunResponse(name=job_name, success=await scheduler.run_now(job_name))
