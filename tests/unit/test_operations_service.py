from __future__ import annotations

import datetime
from unittest.mock import AsyncMock

import pytest

from reflect.jobs.errors import DispatchError, OperationNotFoundError
from reflect.jobs.models import OperationStatus
from reflect.jobs.registry import JobHandlerRegistry
from reflect.jobs.service import JobService
from reflect.services.operations import DEFAULT_ESTIMATED_DURATION, create_queued_operation, dispatch_operation, get_owned_operation, operation_status_payload


@pytest.mark.anyio
async def test_create_queued_operation_defaults(store_scope, clock) -> None:
  record = await create_queued_operation(store_scope.operations, user_id="user-1", operation_type="weekly_analysis", input_data=None, now=clock())

  assert record.status == OperationStatus.QUEUED
  assert record.progress == 0
  assert record.input_data == {}
  assert record.metadata == {}
  assert record.estimated_duration == DEFAULT_ESTIMATED_DURATION
  assert store_scope.operations.records[record.id] == record


def test_time_remaining_counts_down_while_processing(make_operation, clock) -> None:
  record = make_operation("op-1", status=OperationStatus.PROCESSING, estimated_duration=30, started_at=clock())

  assert operation_status_payload(record, clock())["timeRemaining"] == 30
  payload = operation_status_payload(record, clock() + datetime.timedelta(seconds=10))
  assert payload["timeRemaining"] == 20
  assert payload["isComplete"] is False
  assert operation_status_payload(record, clock() + datetime.timedelta(seconds=45))["timeRemaining"] == 0


def test_time_remaining_is_absent_outside_processing(make_operation, clock) -> None:
  queued = make_operation("op-1", estimated_duration=30)
  completed = make_operation("op-2", status=OperationStatus.COMPLETED, estimated_duration=30, started_at=clock(), result_data={"ok": True})

  assert operation_status_payload(queued, clock())["timeRemaining"] is None
  payload = operation_status_payload(completed, clock())
  assert payload["timeRemaining"] is None
  assert payload["isComplete"] is True
  assert payload["resultData"] == {"ok": True}
  assert payload["status"] == "completed"


@pytest.mark.anyio
async def test_dispatch_failure_fails_operation_and_propagates(store_scope, clock, make_operation) -> None:
  record = make_operation("op-1", operation_type="weekly_reflection")
  processor = AsyncMock()
  processor.enqueue.side_effect = DispatchError("queue unavailable")
  service = JobService(JobHandlerRegistry(), store_scope, clock=clock)

  with pytest.raises(DispatchError):
    await dispatch_operation(processor, service, record)

  stored = store_scope.operations.records["op-1"]
  assert stored.status == OperationStatus.FAILED
  assert stored.error_message == "Dispatch failed: queue unavailable"


@pytest.mark.anyio
async def test_owned_operation_lookup_hides_other_users(store_scope, make_operation) -> None:
  make_operation("op-1", user_id="user-2")

  with pytest.raises(OperationNotFoundError):
    await get_owned_operation(store_scope.operations, "op-1", "user-1")
  assert (await get_owned_operation(store_scope.operations, "op-1", "user-2")).id == "op-1"
