"""
Admin endpoints for the background scheduler
"""

import logging
import secrets
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel

from .. import config
from ..errors import NotFoundError
from ..scheduler.orchestrator import SchedulerOrchestrator

logger = logging.getLogger(__name__)


def require_admin_token(x_admin_token: Optional[str] = Header(default=None)) -> None:
    """Checks X-Admin-Token when ADMIN_API_TOKEN is configured"""
    expected = config.ADMIN_API_TOKEN
    if not expected:
        return
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=401, detail="Invalid admin token")


router = APIRouter(
    prefix="/scheduler", tags=["scheduler"], dependencies=[Depends(require_admin_token)]
)


class JobStatus(BaseModel):
    name: str
    trigger: str
    enabled: bool
    armed: bool
    is_running: bool
    last_run_at: Optional[datetime] = None
    last_manual_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    last_error: Optional[str] = None
    run_count: int = 0


class SchedulerStatus(BaseModel):
    is_running: bool
    jobs: dict[str, JobStatus]


class LifecycleResult(BaseModel):
    changed: bool
    is_running: bool


class TriggerResult(BaseModel):
    job: str
    ran: bool
    result: Any = None
    error: Optional[str] = None


def get_orchestrator(request: Request) -> SchedulerOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialised")
    return orchestrator


@router.get("/status", response_model=SchedulerStatus)
async def get_scheduler_status(orchestrator: SchedulerOrchestrator = Depends(get_orchestrator)):
    """Current state of the scheduler and every registered job"""
    return SchedulerStatus(**orchestrator.status())


@router.post("/start", response_model=LifecycleResult)
async def start_scheduler(orchestrator: SchedulerOrchestrator = Depends(get_orchestrator)):
    changed = orchestrator.start()
    return LifecycleResult(changed=changed, is_running=orchestrator.is_running)


@router.post("/stop", response_model=LifecycleResult)
async def stop_scheduler(orchestrator: SchedulerOrchestrator = Depends(get_orchestrator)):
    changed = orchestrator.stop()
    return LifecycleResult(changed=changed, is_running=orchestrator.is_running)


@router.post("/jobs/{name}/trigger", response_model=TriggerResult)
async def trigger_job(name: str, orchestrator: SchedulerOrchestrator = Depends(get_orchestrator)):
    """
    Run a job immediately, outside its schedule.
    Skipped (ran=false) when the same job is already running.
    """
    try:
        outcome = await orchestrator.trigger_now(name)
    except NotFoundError:
        raise HTTPException(status_code=404, detail=f"Job not found: {name}") from None
    return TriggerResult(**outcome)
