import logging
from typing import Any

from fastapi import APIRouter, Depends, Header

from reflect.api.deps import get_job_runtime
from reflect.api.models import WeeklyReflectionTriggerRequest
from reflect.core.security import get_current_user
from reflect.jobs.handlers.weekly_reflection import WeeklyReflectionHandler
from reflect.jobs.models import OperationType
from reflect.jobs.runtime import JobRuntime
from reflect.scheduling.preferences import resolve_preferences
from reflect.scheduling.week import week_bounds
from reflect.services.operations import create_queued_operation, dispatch_operation, job_request_for
from reflect.storage.users_repo import UserProfileRecord

router = APIRouter()
logger = logging.getLogger("reflect.api.routes.reflections")


def _wants_completion(raw: str | None) -> bool:
  return (raw or "").strip().lower() == "true"


@router.post("/weekly-reflection")
async def trigger_weekly_reflection(  # noqa: B008
  payload: WeeklyReflectionTriggerRequest | None = None,
  x_wait_for_completion: str | None = Header(default=None),
  current_user: UserProfileRecord = Depends(get_current_user),  # noqa: B008
  runtime: JobRuntime = Depends(get_job_runtime),  # noqa: B008
) -> dict[str, Any]:
  """Manually trigger this week's reflection for the caller."""
  payload = payload or WeeklyReflectionTriggerRequest()
  now = runtime.clock()
  operation_type = OperationType.WEEKLY_REFLECTION.value

  async with runtime.store_scope() as store:
    in_flight = await store.operations.find_in_flight(current_user.id, operation_type)
    if in_flight is not None:
      logger.info("Reflection for user %s already in flight as %s", current_user.id, in_flight.id)
      return {"status": "already_processing", "operationId": in_flight.id, "operationStatus": in_flight.status.value, "progress": in_flight.progress}

    preferences = resolve_preferences(current_user.reflection_preferences)
    default_start, default_end = week_bounds(now.astimezone(preferences.zone))
    include_integrations = payload.include_integrations if payload.include_integrations is not None else list(preferences.include_integrations)
    input_data = {
      "weekStart": payload.week_start or default_start.isoformat(),
      "weekEnd": payload.week_end or default_end.isoformat(),
      "includeIntegrations": include_integrations,
      "includePreviousContext": payload.include_previous_context,
      "automated": False,
      "testMode": payload.test_mode,
    }
    record = await create_queued_operation(
      store.operations,
      user_id=current_user.id,
      operation_type=operation_type,
      input_data=input_data,
      now=now,
      estimated_duration=WeeklyReflectionHandler.estimated_duration,
      metadata={"triggerType": "manual", "priority": "high", "timezone": preferences.timezone},
    )

  if _wants_completion(x_wait_for_completion):
    result = await runtime.processor.process_immediate(job_request_for(record))
    return {"status": result.status.value if result.status else "failed", "operationId": record.id, "result": result.data, "error": result.error}

  await dispatch_operation(runtime.processor, runtime.service, record)
  return {"status": record.status.value, "operationId": record.id, "estimatedDuration": record.estimated_duration, "createdAt": record.created_at}
