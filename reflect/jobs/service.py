"""Job service: runs one tracked operation end-to-end."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from reflect.jobs.errors import JobTimeoutError, UnknownJobTypeError
from reflect.jobs.handlers.base import JobContext
from reflect.jobs.models import AsyncOperationRecord, JobResult, OperationStatus, OperationType
from reflect.jobs.registry import JobHandlerRegistry
from reflect.storage.factory import DataStore, DataStoreScope
from reflect.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

MAX_HANDLER_PROGRESS = 99

ResultSideEffect = Callable[[DataStore, str, Any, Clock], Awaitable[None]]


async def _store_career_plan(store: DataStore, user_id: str, result: Any, clock: Clock) -> None:
  """Write a generated career plan onto the owner's profile."""
  await store.users.store_career_plan(user_id, current_level_plan=str(result.get("currentLevelPlan") or ""), next_level_expectations=str(result.get("nextLevelExpectations") or ""), generated_at=clock())


_RESULT_SIDE_EFFECTS: dict[str, ResultSideEffect] = {OperationType.CAREER_PLAN_GENERATION.value: _store_career_plan}


def _failure_message(exc: BaseException) -> str:
  message = str(exc)
  return message if message else type(exc).__name__


def _duplicate_delivery(operation: AsyncOperationRecord) -> JobResult:
  """Result for a delivery of an operation that is no longer queued."""
  if operation.status == OperationStatus.PROCESSING:
    logger.info("Operation %s is already processing; skipping duplicate delivery", operation.id)
    return JobResult(success=False, error="Operation is already processing", skipped=True, status=OperationStatus.PROCESSING)
  # Redelivered work for a finished operation replays the stored outcome.
  logger.info("Operation %s is already %s; skipping duplicate delivery", operation.id, operation.status.value)
  return JobResult(success=operation.status == OperationStatus.COMPLETED, data=operation.result_data, error=operation.error_message, skipped=True, status=operation.status)


class JobService:
  """Owns every status transition of an async operation.

  ``process_job`` is awaited by synchronous callers and returns a ``JobResult``
  for both outcomes. ``start_job`` runs the same path in the background for
  fire-and-forget callers.
  """

  def __init__(self, registry: JobHandlerRegistry, store_scope: DataStoreScope, *, timeout_seconds: float = 0, clock: Clock = utc_now) -> None:
    self._registry = registry
    self._store_scope = store_scope
    self._timeout_seconds = timeout_seconds
    self._clock = clock
    self._background: set[asyncio.Task[JobResult]] = set()

  @property
  def registry(self) -> JobHandlerRegistry:
    return self._registry

  async def process_job(self, job_type: str, user_id: str, operation_id: str, input_data: dict[str, Any] | None = None) -> JobResult:
    """Run a queued operation to a terminal state."""
    async with self._store_scope() as store:
      operation = await store.operations.get_operation(operation_id, user_id=user_id)
      if operation is None:
        logger.warning("Operation %s not found for user %s; skipping job %s", operation_id, user_id, job_type)
        return JobResult(success=False, error=f"Operation {operation_id} not found", skipped=True)
      if operation.status != OperationStatus.QUEUED:
        return _duplicate_delivery(operation)

      handler = self._registry.get(job_type)
      if handler is None:
        message = str(UnknownJobTypeError(job_type))
        failed = await store.operations.finish_operation(operation_id, status=OperationStatus.FAILED, expected_status=OperationStatus.QUEUED, completed_at=self._clock(), error_message=message)
        if failed is None:
          return await self._reread_duplicate(store, operation_id, user_id)
        logger.error("Failing operation %s: %s", operation_id, message)
        return JobResult(success=False, error=message, status=OperationStatus.FAILED)

      # The claim is the only queued -> processing transition; a concurrent delivery that lost it stops here.
      claimed = await store.operations.claim_operation(operation_id, user_id=user_id, started_at=self._clock())
      if claimed is None:
        return await self._reread_duplicate(store, operation_id, user_id)
      logger.info("Started job %s for operation %s (user %s)", job_type, operation_id, user_id)

      last_progress = 0

      async def update_progress(progress: int, step: str | None = None) -> None:
        nonlocal last_progress
        # Handlers never reach 100; only completion writes it.
        clamped = max(last_progress, min(MAX_HANDLER_PROGRESS, max(0, int(progress))))
        last_progress = clamped
        logger.debug("Operation %s progress=%s step=%s", operation_id, clamped, step)
        await store.operations.update_operation(operation_id, progress=clamped, metadata={"currentStep": step} if step else None)

      context = JobContext(user_id=user_id, operation_id=operation_id, update_progress=update_progress, metadata=dict(claimed.metadata))

      try:
        result = await self._invoke(handler.process(dict(input_data or {}), context))
        if result is None:
          result = {}

        side_effect = _RESULT_SIDE_EFFECTS.get(job_type)
        if side_effect is not None:
          await side_effect(store, user_id, result, self._clock)

      except Exception as exc:
        message = _failure_message(exc)
        logger.error("Job %s failed for operation %s: %s", job_type, operation_id, message, exc_info=True)
        await self._finish(store, operation_id, status=OperationStatus.FAILED, error_message=message)
        return JobResult(success=False, error=message, status=OperationStatus.FAILED)

      await self._finish(store, operation_id, status=OperationStatus.COMPLETED, result_data=result)
      logger.info("Completed job %s for operation %s", job_type, operation_id)
      return JobResult(success=True, data=result, status=OperationStatus.COMPLETED)

  async def _finish(self, store: DataStore, operation_id: str, *, status: OperationStatus, result_data: Any = None, error_message: str | None = None) -> None:
    finished = await store.operations.finish_operation(operation_id, status=status, expected_status=OperationStatus.PROCESSING, completed_at=self._clock(), result_data=result_data, error_message=error_message)
    if finished is None:
      logger.warning("Operation %s left processing before it could be marked %s; keeping the stored outcome", operation_id, status.value)

  async def _reread_duplicate(self, store: DataStore, operation_id: str, user_id: str) -> JobResult:
    operation = await store.operations.get_operation(operation_id, user_id=user_id)
    if operation is None:
      return JobResult(success=False, error=f"Operation {operation_id} not found", skipped=True)
    return _duplicate_delivery(operation)

  async def fail_undispatched(self, operation_id: str, message: str) -> None:
    """Fail a queued operation whose job could not be handed to a processor."""
    async with self._store_scope() as store:
      failed = await store.operations.finish_operation(operation_id, status=OperationStatus.FAILED, expected_status=OperationStatus.QUEUED, completed_at=self._clock(), error_message=message)
    if failed is not None:
      logger.warning("Failed undispatched operation %s: %s", operation_id, message)

  async def _invoke(self, coro: Awaitable[Any]) -> Any:
    if self._timeout_seconds <= 0:
      return await coro
    try:
      return await asyncio.wait_for(coro, timeout=self._timeout_seconds)
    except TimeoutError as exc:
      raise JobTimeoutError(self._timeout_seconds) from exc

  def start_job(self, job_type: str, user_id: str, operation_id: str, input_data: dict[str, Any] | None = None) -> asyncio.Task[JobResult]:
    """Run a job in the background and return without waiting for it."""
    task = asyncio.create_task(self.process_job(job_type, user_id, operation_id, input_data), name=f"job-{job_type}-{operation_id}")
    self._background.add(task)
    task.add_done_callback(self._on_background_done)
    return task

  def _on_background_done(self, task: asyncio.Task[JobResult]) -> None:
    self._background.discard(task)
    if task.cancelled():
      logger.warning("Background job task %s was cancelled", task.get_name())
      return
    exc = task.exception()
    if exc is not None:
      logger.error("Background job task %s crashed", task.get_name(), exc_info=exc)

  async def wait_idle(self) -> None:
    """Wait for all fire-and-forget jobs started by this service."""
    if self._background:
      await asyncio.gather(*list(self._background), return_exceptions=True)
