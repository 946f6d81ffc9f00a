from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any

from reflect.jobs.models import JobRequest, JobResult
from reflect.jobs.service import JobService

logger = logging.getLogger(__name__)


class InMemoryJobProcessor:
  """Processes jobs from an in-process FIFO queue drained by one background loop.

  Nothing here survives a restart: queued jobs are lost and a job interrupted
  mid-flight stays in ``processing``.
  """

  def __init__(self, service: JobService, *, delay_seconds: float = 0.5) -> None:
    self._service = service
    self._delay_seconds = delay_seconds
    self._queue: deque[JobRequest] = deque()
    self._drain_task: asyncio.Task[None] | None = None
    self._current: JobRequest | None = None

  @property
  def processing(self) -> bool:
    return self._drain_task is not None and not self._drain_task.done()

  async def enqueue(self, request: JobRequest) -> None:
    """Append a job and start the drain loop when none is running."""
    logger.info("Enqueueing job %s for operation %s (queue length %d)", request.type, request.operation_id, len(self._queue) + 1)
    self._queue.append(request)
    if not self.processing:
      self._drain_task = asyncio.create_task(self._drain(), name="in-memory-job-drain")

  async def process_immediate(self, request: JobRequest) -> JobResult:
    """Run a job right away, bypassing the queue."""
    logger.info("Processing job %s for operation %s immediately", request.type, request.operation_id)
    return await self._service.process_job(request.type, request.user_id, request.operation_id, request.input_data)

  async def _drain(self) -> None:
    try:
      while self._queue:
        request = self._queue.popleft()
        self._current = request
        logger.info("Processing queued job %s for operation %s", request.type, request.operation_id)
        # Models the latency of a real delivery queue.
        if self._delay_seconds > 0:
          await asyncio.sleep(self._delay_seconds)
        try:
          await self._service.process_job(request.type, request.user_id, request.operation_id, request.input_data)
        except Exception:  # noqa: BLE001
          logger.error("Failed to process queued job %s for operation %s", request.type, request.operation_id, exc_info=True)
        finally:
          self._current = None
    finally:
      self._drain_task = None

  async def wait_idle(self) -> None:
    """Wait until the queue has been fully drained."""
    while self._drain_task is not None:
      await asyncio.shield(self._drain_task)

  def queue_status(self) -> dict[str, Any]:
    """Return a snapshot of the queue for debugging."""
    current = self._current
    return {
      "queueLength": len(self._queue),
      "processing": self.processing,
      "current": {"type": current.type, "userId": current.user_id, "operationId": current.operation_id} if current is not None else None,
      "jobs": [{"type": job.type, "userId": job.user_id, "operationId": job.operation_id} for job in self._queue],
    }
