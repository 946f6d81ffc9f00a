from __future__ import annotations

from reflect.config import JOB_PROCESSOR_CLOUD_TASKS, Settings
from reflect.jobs.processors.cloud_tasks import CloudTasksJobProcessor
from reflect.jobs.processors.interface import JobProcessor
from reflect.jobs.processors.local import InMemoryJobProcessor
from reflect.jobs.service import JobService


def build_job_processor(settings: Settings, service: JobService) -> JobProcessor:
  """Factory to get the configured job processor."""
  if settings.job_processor == JOB_PROCESSOR_CLOUD_TASKS:
    return CloudTasksJobProcessor(settings, service)
  return InMemoryJobProcessor(service, delay_seconds=settings.local_queue_delay_seconds)
