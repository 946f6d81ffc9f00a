from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from reflect.jobs.models import JobRequest, JobResult, OperationStatus
from reflect.jobs.processors.local import InMemoryJobProcessor
from reflect.jobs.registry import JobHandlerRegistry
from reflect.jobs.service import JobService


class RecordingHandler:
  job_type = "weekly_analysis"
  estimated_duration = 5

  def __init__(self, delay: float = 0.0) -> None:
    self.delay = delay
    self.order: list[str] = []
    self.running = 0
    self.max_running = 0

  async def process(self, input_data, context):
    self.running += 1
    self.max_running = max(self.max_running, self.running)
    try:
      self.order.append(context.operation_id)
      if self.delay:
        await asyncio.sleep(self.delay)
      return {"operationId": context.operation_id}
    finally:
      self.running -= 1


def _request(operation_id: str) -> JobRequest:
  return JobRequest(type="weekly_analysis", user_id="user-1", operation_id=operation_id)


@pytest.fixture
def seeded_operations(make_operation):
  for index in range(1, 4):
    make_operation(f"op-{index}", operation_type="weekly_analysis")


@pytest.mark.anyio
async def test_jobs_run_in_fifo_order_one_at_a_time(store_scope, clock, seeded_operations) -> None:
  handler = RecordingHandler(delay=0.01)
  processor = InMemoryJobProcessor(JobService(JobHandlerRegistry([handler]), store_scope, clock=clock), delay_seconds=0)

  for operation_id in ("op-1", "op-2", "op-3"):
    await processor.enqueue(_request(operation_id))
  await processor.wait_idle()

  assert handler.order == ["op-1", "op-2", "op-3"]
  assert handler.max_running == 1
  assert all(store_scope.operations.records[op].status == OperationStatus.COMPLETED for op in ("op-1", "op-2", "op-3"))


@pytest.mark.anyio
async def test_failing_job_does_not_stop_the_queue() -> None:
  service = AsyncMock()
  service.process_job.side_effect = [RuntimeError("crashed"), JobResult(success=True)]
  processor = InMemoryJobProcessor(service, delay_seconds=0)

  await processor.enqueue(_request("op-1"))
  await processor.enqueue(_request("op-2"))
  await processor.wait_idle()

  called = [call.args[2] for call in service.process_job.await_args_list]
  assert called == ["op-1", "op-2"]
  assert processor.processing is False


@pytest.mark.anyio
async def test_drain_loop_restarts_after_queue_empties(store_scope, clock, seeded_operations) -> None:
  handler = RecordingHandler()
  processor = InMemoryJobProcessor(JobService(JobHandlerRegistry([handler]), store_scope, clock=clock), delay_seconds=0)

  await processor.enqueue(_request("op-1"))
  await processor.wait_idle()
  assert processor.processing is False

  await processor.enqueue(_request("op-2"))
  await processor.wait_idle()

  assert handler.order == ["op-1", "op-2"]


@pytest.mark.anyio
async def test_queue_status_reports_pending_jobs() -> None:
  service = AsyncMock()
  service.process_job.return_value = JobResult(success=True)
  processor = InMemoryJobProcessor(service, delay_seconds=0)

  await processor.enqueue(_request("op-1"))
  await processor.enqueue(_request("op-2"))
  status = processor.queue_status()

  assert status["queueLength"] == 2
  assert status["processing"] is True
  assert [job["operationId"] for job in status["jobs"]] == ["op-1", "op-2"]

  await processor.wait_idle()
  assert processor.queue_status()["queueLength"] == 0
  assert processor.queue_status()["current"] is None


@pytest.mark.anyio
async def test_process_immediate_bypasses_queue() -> None:
  service = AsyncMock()
  service.process_job.return_value = JobResult(success=True, data={"ok": True})
  processor = InMemoryJobProcessor(service, delay_seconds=0)

  result = await processor.process_immediate(JobRequest(type="weekly_analysis", user_id="user-1", operation_id="op-1", input_data={"a": 1}))

  assert result.data == {"ok": True}
  service.process_job.assert_awaited_once_with("weekly_analysis", "user-1", "op-1", {"a": 1})
  assert processor.queue_status()["queueLength"] == 0
