"""In-process cron trigger for the hourly reflection scan."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, JobEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from reflect.scheduling.reflection_checker import HourlyReflectionChecker, ScanSummary, UserCheckResult

logger = logging.getLogger(__name__)

REFLECTION_CHECK_JOB_ID = "reflection-check"


class ReflectionScheduler:
  """Runs the reflection scan on a cron schedule inside this process.

  Meant for development and single-instance deployments; multi-instance
  deployments should call the internal scan endpoint from an external cron.
  """

  def __init__(self, checker: HourlyReflectionChecker, *, cron: str = "0 * * * *", timezone: str = "UTC") -> None:
    self._checker = checker
    self._cron = cron
    self._timezone = timezone
    self._scheduler: AsyncIOScheduler | None = None

  @property
  def running(self) -> bool:
    return self._scheduler is not None and self._scheduler.running

  def start(self) -> None:
    """Start the cron job; must be called from a running event loop."""
    if self.running:
      logger.info("Reflection scheduler already running")
      return
    trigger = CronTrigger.from_crontab(self._cron, timezone=self._timezone)
    scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop(), timezone=self._timezone)
    scheduler.add_job(self._checker.check_and_process_users, trigger=trigger, id=REFLECTION_CHECK_JOB_ID, replace_existing=True, max_instances=1, coalesce=True)
    scheduler.add_listener(self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES)
    scheduler.start()
    self._scheduler = scheduler
    logger.info("Reflection scheduler started with cron '%s' (%s)", self._cron, self._timezone)

  def stop(self) -> None:
    """Stop scheduler."""
    if self._scheduler is None:
      return
    if self._scheduler.running:
      self._scheduler.shutdown(wait=False)
    self._scheduler = None
    logger.info("Reflection scheduler stopped")

  async def trigger_now(self) -> ScanSummary:
    """Run one scan immediately, outside the cron cadence."""
    logger.info("Manual reflection scan triggered")
    return await self._checker.check_and_process_users()

  async def trigger_user(self, user_id: str) -> UserCheckResult:
    return await self._checker.trigger_user(user_id)

  def status(self) -> dict[str, Any]:
    next_run = None
    if self._scheduler is not None:
      job = self._scheduler.get_job(REFLECTION_CHECK_JOB_ID)
      if job is not None and job.next_run_time is not None:
        next_run = job.next_run_time.isoformat()
    last_summary = self._checker.last_summary
    return {
      "running": self.running,
      "cron": self._cron,
      "timezone": self._timezone,
      "nextRunTime": next_run,
      "scanInProgress": self._checker.scanning,
      "lastScan": last_summary.to_dict() if last_summary is not None else None,
    }

  def _on_job_event(self, event: JobEvent) -> None:
    if event.code == EVENT_JOB_MAX_INSTANCES:
      logger.warning("Reflection scan still running; skipped scheduled run")
      return
    exception = getattr(event, "exception", None)
    logger.error("Scheduled reflection scan failed: %s", exception, exc_info=exception)
