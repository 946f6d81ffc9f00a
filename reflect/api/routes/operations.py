import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from reflect.api.deps import get_job_runtime
from reflect.api.models import CreateOperationRequest, OperationCreatedResponse
from reflect.core.security import get_current_user
from reflect.jobs.errors import UnknownJobTypeError
from reflect.jobs.models import OperationStatus, OperationType
from reflect.jobs.runtime import JobRuntime
from reflect.services.operations import create_queued_operation, dispatch_operation, get_owned_operation, operation_status_payload, operation_summary_payload
from reflect.storage.users_repo import UserProfileRecord

router = APIRouter()
logger = logging.getLogger("reflect.api.routes.operations")


@router.post("", response_model=OperationCreatedResponse)
async def create_operation(  # noqa: B008
  payload: CreateOperationRequest,
  current_user: UserProfileRecord = Depends(get_current_user),  # noqa: B008
  runtime: JobRuntime = Depends(get_job_runtime),  # noqa: B008
) -> OperationCreatedResponse:
  """Create a queued operation and hand it to the job processor."""
  handler = runtime.registry.get(payload.operation_type)
  estimated_duration = payload.estimated_duration or (handler.estimated_duration if handler is not None else None)

  async with runtime.store_scope() as store:
    record = await create_queued_operation(
      store.operations,
      user_id=current_user.id,
      operation_type=payload.operation_type,
      input_data=payload.input_data,
      now=runtime.clock(),
      estimated_duration=estimated_duration,
      metadata=payload.metadata,
    )

  status = record.status
  try:
    await dispatch_operation(runtime.processor, runtime.service, record)
  except UnknownJobTypeError:
    # No callback route for this type; the operation is already failed.
    logger.warning("Operation %s of type %s has no dispatch target", record.id, record.operation_type)
    status = OperationStatus.FAILED

  return OperationCreatedResponse(operation_id=record.id, status=status.value, estimated_duration=record.estimated_duration, created_at=record.created_at)


@router.get("")
async def list_operations(  # noqa: B008
  operation_type: OperationType | None = Query(default=None, alias="type"),  # noqa: B008
  status_filter: OperationStatus | None = Query(default=None, alias="status"),  # noqa: B008
  limit: int = Query(default=10, ge=1, le=100),
  current_user: UserProfileRecord = Depends(get_current_user),  # noqa: B008
  runtime: JobRuntime = Depends(get_job_runtime),  # noqa: B008
) -> dict[str, Any]:
  """List the caller's newest operations."""
  async with runtime.store_scope() as store:
    records = await store.operations.list_operations(current_user.id, operation_type=operation_type.value if operation_type else None, status=status_filter, limit=limit)
  return {"operations": [operation_summary_payload(record) for record in records]}


@router.get("/{operation_id}")
async def get_operation_status(  # noqa: B008
  operation_id: str,
  current_user: UserProfileRecord = Depends(get_current_user),  # noqa: B008
  runtime: JobRuntime = Depends(get_job_runtime),  # noqa: B008
) -> dict[str, Any]:
  """Fetch the status surface of one operation."""
  async with runtime.store_scope() as store:
    record = await get_owned_operation(store.operations, operation_id, current_user.id)
  return operation_status_payload(record, runtime.clock())
