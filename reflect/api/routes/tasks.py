from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from reflect.api.deps import get_job_runtime
from reflect.api.models import TaskCallbackPayload
from reflect.core.security import require_internal_api_key
from reflect.jobs.models import OperationStatus, OperationType
from reflect.jobs.processors.local import InMemoryJobProcessor
from reflect.jobs.runtime import JobRuntime

router = APIRouter(prefix="/jobs", tags=["tasks"], dependencies=[Depends(require_internal_api_key)])
logger = logging.getLogger(__name__)


async def _run_callback(request: Request, job_type: str, payload: TaskCallbackPayload, runtime: JobRuntime) -> JSONResponse:
  """Run a delivered job; every response is safe to redeliver against."""
  logger.info("Received %s task for operation %s", job_type, payload.operation_id)

  if runtime.settings.task_callback_mode == "async":
    runtime.service.start_job(job_type, payload.user_id, payload.operation_id, payload.input_data)
    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content={"status": "accepted", "operationId": payload.operation_id})

  result = await runtime.service.process_job(job_type, payload.user_id, payload.operation_id, payload.input_data)

  if result.skipped:
    if result.status == OperationStatus.PROCESSING:
      # A non-2xx answer makes the queue retry after the running delivery finishes.
      raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.error)
    return JSONResponse(status_code=status.HTTP_200_OK, content={"status": result.status.value if result.status else "skipped", "operationId": payload.operation_id, "skipped": True, "error": result.error})

  if not result.success:
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": result.error, "operationId": payload.operation_id, "requestId": request_id})

  return JSONResponse(status_code=status.HTTP_200_OK, content={"status": OperationStatus.COMPLETED.value, "operationId": payload.operation_id, "result": result.data})


@router.post("/career-plan")
async def career_plan_task(request: Request, payload: TaskCallbackPayload, runtime: Annotated[JobRuntime, Depends(get_job_runtime)]) -> JSONResponse:
  return await _run_callback(request, OperationType.CAREER_PLAN_GENERATION.value, payload, runtime)


@router.post("/weekly-reflection")
async def weekly_reflection_task(request: Request, payload: TaskCallbackPayload, runtime: Annotated[JobRuntime, Depends(get_job_runtime)]) -> JSONResponse:
  return await _run_callback(request, OperationType.WEEKLY_REFLECTION.value, payload, runtime)


@router.post("/performance-assessment")
async def performance_assessment_task(request: Request, payload: TaskCallbackPayload, runtime: Annotated[JobRuntime, Depends(get_job_runtime)]) -> JSONResponse:
  return await _run_callback(request, OperationType.PERFORMANCE_ASSESSMENT.value, payload, runtime)


@router.get("/queue")
async def queue_status(runtime: Annotated[JobRuntime, Depends(get_job_runtime)]) -> dict[str, Any]:
  """Expose the local queue for debugging."""
  if not isinstance(runtime.processor, InMemoryJobProcessor):
    return {"processor": runtime.settings.job_processor, "detail": "Queue status is only tracked by the in-memory processor."}
  return {"processor": runtime.settings.job_processor, **runtime.processor.queue_status()}
