from __future__ import annotations

import datetime
import logging

import pytest
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, JobExecutionEvent, JobSubmissionEvent

from reflect.scheduling.reflection_checker import ScanSummary
from reflect.scheduling.scheduler import REFLECTION_CHECK_JOB_ID, ReflectionScheduler


@pytest.fixture
async def scheduler(app_runtime):
  reflection_scheduler = ReflectionScheduler(app_runtime.checker, cron="0 * * * *", timezone="UTC")
  yield reflection_scheduler
  reflection_scheduler.stop()


@pytest.mark.anyio
async def test_start_registers_single_instance_cron_job(scheduler, app_runtime) -> None:
  scheduler.start()

  status = scheduler.status()
  assert status["running"] is True
  assert status["cron"] == "0 * * * *"
  assert status["nextRunTime"] is not None
  next_run = datetime.datetime.fromisoformat(status["nextRunTime"])
  assert next_run.minute == 0 and next_run.second == 0

  job = scheduler._scheduler.get_job(REFLECTION_CHECK_JOB_ID)
  assert job.max_instances == 1
  assert job.coalesce is True
  assert job.func == app_runtime.checker.check_and_process_users


@pytest.mark.anyio
async def test_start_twice_keeps_one_scheduler(scheduler) -> None:
  scheduler.start()
  first = scheduler._scheduler
  scheduler.start()

  assert scheduler._scheduler is first
  assert len(first.get_jobs()) == 1


@pytest.mark.anyio
async def test_stop_leaves_scheduler_idle(scheduler) -> None:
  scheduler.start()
  scheduler.stop()

  status = scheduler.status()
  assert scheduler.running is False
  assert status["running"] is False
  assert status["nextRunTime"] is None


@pytest.mark.anyio
async def test_trigger_now_runs_one_scan(scheduler, app_runtime, store_scope, make_user) -> None:
  # Default preferences are Friday 14:00 New York time, which is the fixed clock.
  make_user("user-1")
  summary = await scheduler.trigger_now()

  assert isinstance(summary, ScanSummary)
  assert summary.processed == 1
  assert app_runtime.checker.last_summary is summary
  assert scheduler.status()["lastScan"]["processed"] == 1
  await app_runtime.processor.wait_idle()
  assert len(store_scope.operations.records) == 1


@pytest.mark.anyio
async def test_trigger_user_delegates_to_checker(scheduler) -> None:
  result = await scheduler.trigger_user("ghost")

  assert result.outcome == "not_found"


@pytest.mark.anyio
async def test_listener_logs_failed_and_skipped_runs(scheduler, caplog) -> None:
  now = datetime.datetime(2024, 3, 8, 19, 0, tzinfo=datetime.UTC)
  failed = JobExecutionEvent(EVENT_JOB_ERROR, REFLECTION_CHECK_JOB_ID, "default", now, exception=RuntimeError("db down"))
  skipped = JobSubmissionEvent(EVENT_JOB_MAX_INSTANCES, REFLECTION_CHECK_JOB_ID, "default", [now])

  with caplog.at_level(logging.WARNING, logger="reflect.scheduling.scheduler"):
    scheduler._on_job_event(failed)
    scheduler._on_job_event(skipped)

  messages = [record.getMessage() for record in caplog.records]
  assert "Scheduled reflection scan failed: db down" in messages
  assert "Reflection scan still running; skipped scheduled run" in messages
