"""Route-facing helpers for creating, dispatching and reporting async operations."""

from __future__ import annotations

import datetime
import logging
from typing import Any

from reflect.jobs.errors import OperationNotFoundError
from reflect.jobs.models import AsyncOperationRecord, JobRequest, OperationStatus
from reflect.jobs.processors.interface import JobProcessor
from reflect.jobs.service import JobService
from reflect.storage.operations_repo import OperationsRepository
from reflect.utils.ids import generate_operation_id

logger = logging.getLogger(__name__)

DEFAULT_ESTIMATED_DURATION = 30


async def create_queued_operation(
  operations: OperationsRepository,
  *,
  user_id: str,
  operation_type: str,
  input_data: dict[str, Any] | None,
  now: datetime.datetime,
  estimated_duration: int | None = None,
  metadata: dict[str, Any] | None = None,
) -> AsyncOperationRecord:
  """Persist a new operation in the queued state."""
  record = AsyncOperationRecord(
    id=generate_operation_id(),
    user_id=user_id,
    operation_type=operation_type,
    status=OperationStatus.QUEUED,
    created_at=now,
    progress=0,
    input_data=dict(input_data or {}),
    estimated_duration=estimated_duration if estimated_duration is not None else DEFAULT_ESTIMATED_DURATION,
    metadata=dict(metadata or {}),
  )
  return await operations.create_operation(record)


def job_request_for(record: AsyncOperationRecord) -> JobRequest:
  return JobRequest(type=record.operation_type, user_id=record.user_id, operation_id=record.id, input_data=dict(record.input_data or {}), metadata=dict(record.metadata))


async def dispatch_operation(processor: JobProcessor, job_service: JobService, record: AsyncOperationRecord) -> None:
  """Enqueue a queued operation; a dispatch failure fails the operation and propagates."""
  try:
    await processor.enqueue(job_request_for(record))
  except Exception as exc:
    message = f"Dispatch failed: {exc}"
    logger.error("Failed to dispatch operation %s (%s)", record.id, record.operation_type, exc_info=True)
    await job_service.fail_undispatched(record.id, message)
    raise


def operation_status_payload(record: AsyncOperationRecord, now: datetime.datetime) -> dict[str, Any]:
  """Render the status surface for one operation."""
  return {
    "id": record.id,
    "operationType": record.operation_type,
    "status": record.status.value,
    "progress": record.progress,
    "inputData": record.input_data,
    "resultData": record.result_data,
    "errorMessage": record.error_message,
    "estimatedDuration": record.estimated_duration,
    "createdAt": record.created_at,
    "startedAt": record.started_at,
    "completedAt": record.completed_at,
    "metadata": record.metadata,
    "isComplete": record.is_complete,
    "timeRemaining": record.time_remaining(now),
  }


def operation_summary_payload(record: AsyncOperationRecord) -> dict[str, Any]:
  return {
    "id": record.id,
    "operationType": record.operation_type,
    "status": record.status.value,
    "progress": record.progress,
    "createdAt": record.created_at,
    "completedAt": record.completed_at,
    "errorMessage": record.error_message,
  }


async def get_owned_operation(operations: OperationsRepository, operation_id: str, user_id: str) -> AsyncOperationRecord:
  """Fetch an operation owned by the user; other users' operations are reported as missing."""
  record = await operations.get_operation(operation_id, user_id=user_id)
  if record is None:
    raise OperationNotFoundError(f"Operation {operation_id} not found")
  return record
