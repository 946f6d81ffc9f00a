from __future__ import annotations

import datetime
import json
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core import exceptions as google_exceptions
from google.cloud import tasks_v2

from reflect.jobs.errors import DispatchError, UnknownJobTypeError
from reflect.jobs.models import JobRequest
from reflect.jobs.processors.cloud_tasks import CloudTasksJobProcessor

QUEUE_PATH = "projects/reflect-test/locations/us-central1/queues/job-queue"


@pytest.fixture
def cloud_settings(settings):
  return replace(
    settings,
    job_processor="cloud-tasks",
    gcp_project_id="reflect-test",
    gcp_location="us-central1",
    cloud_tasks_queue="job-queue",
    base_url="https://api.example.com/",
    internal_api_key="task-secret",
    cloud_tasks_default_delay_seconds=5,
    cloud_tasks_service_account=None,
  )


@pytest.fixture
def tasks_client():
  return MagicMock()


@pytest.fixture
def processor(cloud_settings, tasks_client, clock):
  return CloudTasksJobProcessor(cloud_settings, AsyncMock(), client=tasks_client, clock=clock)


def _request(job_type: str = "weekly_reflection", **metadata) -> JobRequest:
  return JobRequest(type=job_type, user_id="user-1", operation_id="op-1", input_data={"weekStart": "2024-03-04T00:00:00-05:00"}, metadata=metadata)


def test_build_task_targets_job_handler_with_bearer_auth(processor, clock) -> None:
  task = processor.build_task(_request())

  http_request = task["http_request"]
  assert http_request["url"] == "https://api.example.com/internal/jobs/weekly-reflection"
  assert http_request["http_method"] == tasks_v2.HttpMethod.POST
  assert http_request["headers"] == {"Content-Type": "application/json", "Authorization": "Bearer task-secret"}
  assert json.loads(http_request["body"]) == {"operationId": "op-1", "userId": "user-1", "inputData": {"weekStart": "2024-03-04T00:00:00-05:00"}}
  assert "oidc_token" not in http_request
  timestamp_ms = int(clock().timestamp() * 1000)
  assert task["name"] == f"{QUEUE_PATH}/tasks/weekly_reflection-op-1-{timestamp_ms}"


def test_default_priority_is_delayed(processor, clock) -> None:
  task = processor.build_task(_request())
  expected = clock() + datetime.timedelta(seconds=5)
  assert task["schedule_time"].seconds == int(expected.timestamp())


def test_high_priority_is_scheduled_immediately(processor, clock) -> None:
  task = processor.build_task(_request(priority="high"))
  assert task["schedule_time"].seconds == int(clock().timestamp())


def test_service_account_adds_oidc_token(cloud_settings, tasks_client, clock) -> None:
  settings = replace(cloud_settings, cloud_tasks_service_account="tasks@reflect-test.iam.gserviceaccount.com")
  processor = CloudTasksJobProcessor(settings, AsyncMock(), client=tasks_client, clock=clock)

  task = processor.build_task(_request("career_plan_generation"))

  assert task["http_request"]["oidc_token"] == {"service_account_email": "tasks@reflect-test.iam.gserviceaccount.com", "audience": "https://api.example.com/internal/jobs/career-plan"}


def test_unknown_job_type_has_no_handler_url(processor) -> None:
  with pytest.raises(UnknownJobTypeError):
    processor.build_task(_request("bulk_export"))


@pytest.mark.anyio
async def test_enqueue_creates_task_in_configured_queue(processor, tasks_client) -> None:
  await processor.enqueue(_request("performance_assessment"))

  tasks_client.create_task.assert_called_once()
  request = tasks_client.create_task.call_args.kwargs["request"]
  assert request["parent"] == QUEUE_PATH
  assert request["task"]["http_request"]["url"] == "https://api.example.com/internal/jobs/performance-assessment"


@pytest.mark.anyio
@pytest.mark.parametrize("error", [google_exceptions.ServiceUnavailable("queue unavailable"), google_exceptions.RetryError("Deadline of 600.0s exceeded", cause=None)])
async def test_enqueue_wraps_queue_errors(processor, tasks_client, error) -> None:
  tasks_client.create_task.side_effect = error

  with pytest.raises(DispatchError, match="op-1"):
    await processor.enqueue(_request())


@pytest.mark.anyio
async def test_enqueue_of_unknown_type_never_reaches_queue(processor, tasks_client) -> None:
  with pytest.raises(UnknownJobTypeError):
    await processor.enqueue(_request("integration_sync"))
  tasks_client.create_task.assert_not_called()


def test_missing_base_url_is_rejected(cloud_settings, tasks_client) -> None:
  with pytest.raises(ValueError, match="REFLECT_BASE_URL"):
    CloudTasksJobProcessor(replace(cloud_settings, base_url=None), AsyncMock(), client=tasks_client)
