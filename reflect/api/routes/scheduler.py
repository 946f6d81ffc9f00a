from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status

from reflect.api.deps import get_job_runtime
from reflect.core.security import require_internal_api_key
from reflect.jobs.runtime import JobRuntime
from reflect.scheduling.reflection_checker import OUTCOME_NOT_FOUND

router = APIRouter(prefix="/scheduler", tags=["scheduler"], dependencies=[Depends(require_internal_api_key)])
logger = logging.getLogger(__name__)


@router.post("/reflections/run")
async def run_reflection_scan(runtime: Annotated[JobRuntime, Depends(get_job_runtime)]) -> dict[str, Any]:
  """Run one scan; called hourly by an external cron in multi-instance deployments."""
  if runtime.scheduler is not None:
    summary = await runtime.scheduler.trigger_now()
  else:
    summary = await runtime.checker.check_and_process_users()
  return summary.to_dict()


@router.post("/reflections/users/{user_id}")
async def trigger_user_reflection(user_id: str, runtime: Annotated[JobRuntime, Depends(get_job_runtime)]) -> dict[str, Any]:
  result = await runtime.checker.trigger_user(user_id)
  if result.outcome == OUTCOME_NOT_FOUND:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
  return {"userId": result.user_id, "outcome": result.outcome, "operationId": result.operation_id, "error": result.error}


@router.get("/reflections/status")
async def reflection_scheduler_status(runtime: Annotated[JobRuntime, Depends(get_job_runtime)]) -> dict[str, Any]:
  if runtime.scheduler is not None:
    return runtime.scheduler.status()
  last_summary = runtime.checker.last_summary
  return {"running": False, "scanInProgress": runtime.checker.scanning, "lastScan": last_summary.to_dict() if last_summary is not None else None}
