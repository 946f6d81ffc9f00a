"""Process-wide wiring of handlers, job service, processor and scheduler."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from reflect.ai.generation import ContentGenerator, build_content_generator
from reflect.config import Settings
from reflect.jobs.handlers.career_plan import CareerPlanHandler
from reflect.jobs.handlers.performance_assessment import PerformanceAssessmentHandler
from reflect.jobs.handlers.weekly_reflection import WeeklyReflectionHandler
from reflect.jobs.processors.factory import build_job_processor
from reflect.jobs.processors.interface import JobProcessor
from reflect.jobs.processors.local import InMemoryJobProcessor
from reflect.jobs.registry import JobHandlerRegistry
from reflect.jobs.service import JobService
from reflect.scheduling.reflection_checker import HourlyReflectionChecker
from reflect.scheduling.scheduler import ReflectionScheduler
from reflect.storage.factory import DataStoreScope, data_store_scope
from reflect.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass
class JobRuntime:
  """Collaborators shared by routes for the lifetime of the process."""

  settings: Settings
  store_scope: DataStoreScope
  registry: JobHandlerRegistry
  service: JobService
  processor: JobProcessor
  checker: HourlyReflectionChecker
  scheduler: ReflectionScheduler | None = None
  clock: Clock = utc_now

  async def shutdown(self) -> None:
    """Stop the cron trigger and let in-process work finish."""
    if self.scheduler is not None:
      self.scheduler.stop()
    if isinstance(self.processor, InMemoryJobProcessor):
      await self.processor.wait_idle()
    await self.service.wait_idle()


def build_handler_registry(store_scope: DataStoreScope, generator: ContentGenerator, *, clock: Clock = utc_now) -> JobHandlerRegistry:
  return JobHandlerRegistry([CareerPlanHandler(generator, clock=clock), WeeklyReflectionHandler(store_scope, generator, clock=clock), PerformanceAssessmentHandler(store_scope, generator)])


def build_job_runtime(settings: Settings, *, store_scope: DataStoreScope = data_store_scope, generator: ContentGenerator | None = None, clock: Clock = utc_now) -> JobRuntime:
  """Build the job runtime once at process start."""
  if generator is None:
    generator = build_content_generator(settings.gemini_model, settings.gemini_api_key)
  registry = build_handler_registry(store_scope, generator, clock=clock)
  service = JobService(registry, store_scope, timeout_seconds=settings.job_timeout_seconds, clock=clock)
  processor = build_job_processor(settings, service)
  checker = HourlyReflectionChecker(store_scope, processor, service, clock=clock, batch_size=settings.scheduler_batch_size)
  scheduler = ReflectionScheduler(checker, cron=settings.scheduler_cron) if settings.scheduler_enabled else None
  logger.info("Job runtime ready: processor=%s handlers=%s scheduler=%s", settings.job_processor, [handler.job_type for handler in registry.get_all()], "enabled" if scheduler else "disabled")
  return JobRuntime(settings=settings, store_scope=store_scope, registry=registry, service=service, processor=processor, checker=checker, scheduler=scheduler, clock=clock)
