from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from dealtracker.api.deps import get_current_user
from dealtracker.database import get_db
from dealtracker.models import JobLog, User
from dealtracker.scheduler import get_scheduler_status
from dealtracker.schemas import JobLogResponse, JobRunResponse
from dealtracker.services.deals_job import is_job_running, trigger_manual_job

router = APIRouter()


@router.get("/logs", response_model=List[JobLogResponse])
async def list_job_logs(
    limit: int = Query(default=20, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return db.query(JobLog).order_by(
        JobLog.started_at.desc(), JobLog.id.desc()
    ).limit(limit).all()


@router.post("/run", response_model=JobRunResponse)
async def run_job(user: User = Depends(get_current_user)):
    """Run the daily deals job now and wait for the result."""
    if is_job_running():
        raise HTTPException(status_code=409, detail="Job already running")
    result = await trigger_manual_job()
    return result.to_dict()


@router.get("/scheduler")
async def scheduler_status(user: User = Depends(get_current_user)):
    status = get_scheduler_status()
    status["job_running"] = is_job_running()
    return status
