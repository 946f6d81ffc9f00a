from __future__ import annotations

import datetime
import json
import logging
from typing import Any

from google.api_core import exceptions as google_exceptions
from google.cloud import tasks_v2
from google.protobuf import timestamp_pb2
from starlette.concurrency import run_in_threadpool

from reflect.config import Settings
from reflect.jobs.errors import DispatchError, UnknownJobTypeError
from reflect.jobs.models import JobRequest, JobResult, OperationType
from reflect.jobs.service import JobService
from reflect.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

JOB_HANDLER_PATHS: dict[str, str] = {
  OperationType.CAREER_PLAN_GENERATION.value: "/internal/jobs/career-plan",
  OperationType.WEEKLY_REFLECTION.value: "/internal/jobs/weekly-reflection",
  OperationType.PERFORMANCE_ASSESSMENT.value: "/internal/jobs/performance-assessment",
}


class CloudTasksJobProcessor:
  """Enqueues jobs to Google Cloud Tasks as authenticated HTTP callbacks."""

  def __init__(self, settings: Settings, service: JobService, *, client: Any | None = None, clock: Clock = utc_now) -> None:
    if not settings.cloud_tasks_queue_path:
      raise ValueError("GCP_PROJECT_ID must be set to dispatch jobs through Cloud Tasks.")
    if not settings.base_url:
      raise ValueError("REFLECT_BASE_URL must be set to dispatch jobs through Cloud Tasks.")
    if not settings.internal_api_key:
      raise ValueError("REFLECT_INTERNAL_API_KEY must be set to dispatch jobs through Cloud Tasks.")
    self.settings = settings
    self._service = service
    self._queue_path: str = settings.cloud_tasks_queue_path
    self._client = client if client is not None else tasks_v2.CloudTasksClient()
    self._clock = clock

  def job_handler_url(self, job_type: str) -> str:
    """Resolve the callback URL for a job type."""
    path = JOB_HANDLER_PATHS.get(job_type)
    if path is None:
      raise UnknownJobTypeError(job_type)
    return f"{(self.settings.base_url or '').rstrip('/')}{path}"

  def schedule_time(self, request: JobRequest) -> datetime.datetime:
    """High-priority jobs run immediately; everything else is briefly deferred."""
    delay = 0 if request.priority == "high" else self.settings.cloud_tasks_default_delay_seconds
    return self._clock() + datetime.timedelta(seconds=delay)

  def task_name(self, request: JobRequest, now: datetime.datetime) -> str:
    timestamp_ms = int(now.timestamp() * 1000)
    return f"{self._queue_path}/tasks/{request.type}-{request.operation_id}-{timestamp_ms}"

  def build_task(self, request: JobRequest) -> dict[str, Any]:
    """Build the Cloud Tasks payload for one job request."""
    url = self.job_handler_url(request.type)
    now = self._clock()
    schedule_time = timestamp_pb2.Timestamp()
    schedule_time.FromDatetime(self.schedule_time(request))

    body = {"operationId": request.operation_id, "userId": request.user_id, "inputData": request.input_data}
    http_request: dict[str, Any] = {
      "http_method": tasks_v2.HttpMethod.POST,
      "url": url,
      "headers": {"Content-Type": "application/json", "Authorization": f"Bearer {self.settings.internal_api_key}"},
      "body": json.dumps(body).encode(),
    }
    # Cloud Run invoker auth only applies when a dedicated identity is configured.
    if self.settings.cloud_tasks_service_account:
      http_request["oidc_token"] = {"service_account_email": self.settings.cloud_tasks_service_account, "audience": url}

    return {"name": self.task_name(request, now), "http_request": http_request, "schedule_time": schedule_time}

  async def enqueue(self, request: JobRequest) -> None:
    """Hand a job to Cloud Tasks; raises DispatchError when the queue rejects it."""
    task = self.build_task(request)
    try:
      # The Cloud Tasks client is synchronous; keep it off the event loop.
      response = await run_in_threadpool(self._client.create_task, request={"parent": self._queue_path, "task": task})
    except google_exceptions.GoogleAPIError as exc:
      logger.error("Failed to enqueue Cloud Task for operation %s: %s", request.operation_id, exc, exc_info=True)
      raise DispatchError(f"Failed to enqueue job {request.type} for operation {request.operation_id}: {exc}") from exc
    logger.info("Enqueued Cloud Task %s for job %s (operation %s)", getattr(response, "name", task["name"]), request.type, request.operation_id)

  async def process_immediate(self, request: JobRequest) -> JobResult:
    """Run a job in-process, skipping Cloud Tasks delivery."""
    logger.info("Processing job %s for operation %s immediately", request.type, request.operation_id)
    return await self._service.process_job(request.type, request.user_id, request.operation_id, request.input_data)
