from dataclasses import replace

import pytest

from reflect.jobs.models import OperationStatus

CAREER_INPUT = {"role": "Software Engineer", "level": "Senior"}


def _callback(operation_id: str = "op-1", input_data: dict | None = None) -> dict:
  return {"operationId": operation_id, "userId": "user-1", "inputData": input_data if input_data is not None else CAREER_INPUT}


@pytest.mark.anyio
async def test_internal_endpoints_require_the_shared_secret(async_client) -> None:
  missing = await async_client.post("/internal/jobs/career-plan", json=_callback())
  wrong = await async_client.post("/internal/jobs/career-plan", json=_callback(), headers={"authorization": "Bearer nope"})

  assert missing.status_code == 403
  assert wrong.status_code == 403
  assert wrong.json()["detail"] == "Invalid internal API key."


@pytest.mark.anyio
async def test_callback_runs_job_and_returns_result(async_client, internal_headers, store_scope, make_operation) -> None:
  make_operation("op-1", operation_type="career_plan_generation", input_data=CAREER_INPUT)

  response = await async_client.post("/internal/jobs/career-plan", json=_callback(), headers=internal_headers)

  assert response.status_code == 200
  body = response.json()
  assert body["status"] == "completed"
  assert set(body["result"]) == {"currentLevelPlan", "nextLevelExpectations", "generatedAt"}
  assert store_scope.operations.records["op-1"].status == OperationStatus.COMPLETED


@pytest.mark.anyio
async def test_redelivered_callback_is_a_no_op(async_client, internal_headers, generator, make_operation) -> None:
  make_operation("op-1", operation_type="career_plan_generation", status=OperationStatus.COMPLETED, result_data={"currentLevelPlan": "x"})

  response = await async_client.post("/internal/jobs/career-plan", json=_callback(), headers=internal_headers)

  assert response.status_code == 200
  assert response.json()["skipped"] is True
  assert response.json()["status"] == "completed"
  assert generator.prompts == []


@pytest.mark.anyio
async def test_callback_for_processing_operation_conflicts(async_client, internal_headers, make_operation) -> None:
  make_operation("op-1", operation_type="weekly_reflection", status=OperationStatus.PROCESSING)

  response = await async_client.post("/internal/jobs/weekly-reflection", json=_callback(input_data={}), headers=internal_headers)

  assert response.status_code == 409
  assert response.json()["detail"] == "Operation is already processing"


@pytest.mark.anyio
async def test_failed_job_returns_error_payload(async_client, internal_headers, generator, store_scope, make_operation) -> None:
  make_operation("op-1", operation_type="career_plan_generation", input_data=CAREER_INPUT)
  generator.error = RuntimeError("LLM unavailable")

  response = await async_client.post("/internal/jobs/career-plan", json=_callback(), headers=internal_headers)

  assert response.status_code == 500
  assert response.json()["detail"] == "LLM unavailable"
  assert response.json()["operationId"] == "op-1"
  assert store_scope.operations.records["op-1"].error_message == "LLM unavailable"


@pytest.mark.anyio
async def test_async_callback_mode_acknowledges_first(async_client, internal_headers, app_runtime, store_scope, make_operation) -> None:
  app_runtime.settings = replace(app_runtime.settings, task_callback_mode="async")
  make_operation("op-1", operation_type="career_plan_generation", input_data=CAREER_INPUT)

  response = await async_client.post("/internal/jobs/career-plan", json=_callback(), headers=internal_headers)

  assert response.status_code == 202
  assert response.json() == {"status": "accepted", "operationId": "op-1"}
  await app_runtime.service.wait_idle()
  assert store_scope.operations.records["op-1"].status == OperationStatus.COMPLETED


@pytest.mark.anyio
async def test_queue_status_for_local_processor(async_client, internal_headers) -> None:
  response = await async_client.get("/internal/jobs/queue", headers=internal_headers)

  assert response.status_code == 200
  assert response.json()["processor"] == "in-memory"
  assert response.json()["queueLength"] == 0


@pytest.mark.anyio
async def test_scheduler_run_enqueues_due_users(async_client, internal_headers, app_runtime, store_scope) -> None:
  # The default user prefers Friday 14:00 New York time, which is the fixed clock.
  response = await async_client.post("/internal/scheduler/reflections/run", headers=internal_headers)

  assert response.status_code == 200
  body = response.json()
  assert body["processed"] == 1
  assert body["skippedOverlap"] is False
  assert len(body["operationIds"]) == 1

  await app_runtime.processor.wait_idle()
  second = await async_client.post("/internal/scheduler/reflections/run", headers=internal_headers)
  assert second.json()["alreadyGenerated"] == 1
  assert len(store_scope.operations.records) == 1


@pytest.mark.anyio
async def test_scheduler_user_trigger(async_client, internal_headers, store_scope) -> None:
  response = await async_client.post("/internal/scheduler/reflections/users/user-1", headers=internal_headers)
  missing = await async_client.post("/internal/scheduler/reflections/users/ghost", headers=internal_headers)

  assert response.status_code == 200
  assert response.json()["outcome"] == "processed"
  assert response.json()["operationId"] in store_scope.operations.records
  assert missing.status_code == 404


@pytest.mark.anyio
async def test_scheduler_status_without_in_process_scheduler(async_client, internal_headers) -> None:
  response = await async_client.get("/internal/scheduler/reflections/status", headers=internal_headers)

  assert response.status_code == 200
  assert response.json()["running"] is False
