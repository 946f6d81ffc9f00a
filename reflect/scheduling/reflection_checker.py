"""Hourly scan that enqueues weekly reflections for users due this hour."""

from __future__ import annotations

import asyncio
import datetime
import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from reflect.jobs.handlers.weekly_reflection import WeeklyReflectionHandler
from reflect.jobs.models import OperationType
from reflect.jobs.processors.interface import JobProcessor
from reflect.jobs.service import JobService
from reflect.scheduling.preferences import resolve_preferences
from reflect.scheduling.week import current_iso_week, is_preferred_time, week_bounds
from reflect.services.operations import create_queued_operation, dispatch_operation
from reflect.storage.factory import DataStoreScope
from reflect.storage.users_repo import UserProfileRecord
from reflect.utils.casing import to_camel
from reflect.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

OUTCOME_PROCESSED = "processed"
OUTCOME_NOT_DUE = "not_due"
OUTCOME_IN_FLIGHT = "in_flight"
OUTCOME_ALREADY_GENERATED = "already_generated"
OUTCOME_FAILED = "failed"
OUTCOME_NOT_FOUND = "not_found"


@dataclass(frozen=True)
class UserCheckResult:
  user_id: str
  outcome: str
  operation_id: str | None = None
  error: str | None = None


@dataclass
class ScanSummary:
  """Aggregate counts for one scan; dedup skips are kept apart from failures."""

  started_at: datetime.datetime | None = None
  total_users: int = 0
  processed: int = 0
  not_due: int = 0
  in_flight: int = 0
  already_generated: int = 0
  failed: int = 0
  skipped_overlap: bool = False
  operation_ids: list[str] = field(default_factory=list)

  @property
  def skipped(self) -> int:
    return self.not_due + self.in_flight + self.already_generated

  def record(self, result: UserCheckResult) -> None:
    self.total_users += 1
    if result.outcome == OUTCOME_PROCESSED:
      self.processed += 1
      if result.operation_id:
        self.operation_ids.append(result.operation_id)
    elif result.outcome == OUTCOME_NOT_DUE:
      self.not_due += 1
    elif result.outcome == OUTCOME_IN_FLIGHT:
      self.in_flight += 1
    elif result.outcome == OUTCOME_ALREADY_GENERATED:
      self.already_generated += 1
    else:
      self.failed += 1

  def to_dict(self) -> dict[str, Any]:
    payload = {to_camel(key): value for key, value in asdict(self).items()}
    payload["skipped"] = self.skipped
    return payload


class HourlyReflectionChecker:
  """Decides which users get a weekly reflection enqueued right now.

  A user is enqueued when the current instant, converted into their timezone,
  lands on their preferred day and hour, nothing is already queued or running
  for them, and no snippet exists yet for their current ISO week.
  """

  def __init__(self, store_scope: DataStoreScope, processor: JobProcessor, job_service: JobService, *, clock: Clock = utc_now, batch_size: int = 500) -> None:
    self._store_scope = store_scope
    self._processor = processor
    self._job_service = job_service
    self._clock = clock
    self._batch_size = batch_size
    self._scan_lock = asyncio.Lock()
    self.last_summary: ScanSummary | None = None

  @property
  def scanning(self) -> bool:
    return self._scan_lock.locked()

  async def check_and_process_users(self) -> ScanSummary:
    """Scan every auto-generate user once."""
    if self._scan_lock.locked():
      logger.warning("Reflection scan already running; skipping overlapping trigger")
      return ScanSummary(started_at=self._clock(), skipped_overlap=True)

    async with self._scan_lock:
      now = self._clock()
      summary = ScanSummary(started_at=now)
      offset = 0
      while True:
        async with self._store_scope() as store:
          users = await store.users.list_auto_generate_users(limit=self._batch_size, offset=offset)
        for user in users:
          summary.record(await self._check_user(user, now, require_due=True))
        if len(users) < self._batch_size:
          break
        offset += self._batch_size

      logger.info(
        "Reflection scan complete: users=%d processed=%d not_due=%d in_flight=%d already_generated=%d failed=%d",
        summary.total_users,
        summary.processed,
        summary.not_due,
        summary.in_flight,
        summary.already_generated,
        summary.failed,
      )
      self.last_summary = summary
      return summary

  async def trigger_user(self, user_id: str) -> UserCheckResult:
    """Enqueue a reflection for one user now, skipping the due-time check only."""
    async with self._store_scope() as store:
      user = await store.users.get_user(user_id)
    if user is None:
      logger.warning("Manual reflection trigger for unknown user %s", user_id)
      return UserCheckResult(user_id=user_id, outcome=OUTCOME_NOT_FOUND, error="User not found")
    result = await self._check_user(user, self._clock(), require_due=False)
    logger.info("Manual reflection trigger for user %s: %s", user_id, result.outcome)
    return result

  async def _check_user(self, user: UserProfileRecord, now: datetime.datetime, *, require_due: bool) -> UserCheckResult:
    try:
      preferences = resolve_preferences(user.reflection_preferences)
      if require_due and (not preferences.auto_generate or not is_preferred_time(now, preferences)):
        return UserCheckResult(user_id=user.id, outcome=OUTCOME_NOT_DUE)

      async with self._store_scope() as store:
        in_flight = await store.operations.find_in_flight(user.id, OperationType.WEEKLY_REFLECTION.value)
        if in_flight is not None:
          logger.debug("Skipping user %s: reflection %s already %s", user.id, in_flight.id, in_flight.status.value)
          return UserCheckResult(user_id=user.id, outcome=OUTCOME_IN_FLIGHT, operation_id=in_flight.id)

        year, week_number = current_iso_week(now, preferences.zone)
        existing = await store.snippets.get_snippet_for_week(user.id, year=year, week_number=week_number)
        if existing is not None:
          logger.debug("Skipping user %s: reflection exists for %s-W%02d", user.id, year, week_number)
          return UserCheckResult(user_id=user.id, outcome=OUTCOME_ALREADY_GENERATED)

        week_start, week_end = week_bounds(now.astimezone(preferences.zone))
        input_data = {
          "weekStart": week_start.isoformat(),
          "weekEnd": week_end.isoformat(),
          "includeIntegrations": list(preferences.include_integrations),
          "includePreviousContext": True,
          "automated": True,
        }
        metadata: dict[str, Any] = {"triggerType": "scheduled" if require_due else "manual", "timezone": preferences.timezone, "preferredTime": preferences.preferred_time_label}
        if not require_due:
          metadata["priority"] = "high"
        record = await create_queued_operation(
          store.operations,
          user_id=user.id,
          operation_type=OperationType.WEEKLY_REFLECTION.value,
          input_data=input_data,
          now=now,
          estimated_duration=WeeklyReflectionHandler.estimated_duration,
          metadata=metadata,
        )

      await dispatch_operation(self._processor, self._job_service, record)
      logger.info("Enqueued weekly reflection %s for user %s (%s)", record.id, user.id, metadata["triggerType"])
      return UserCheckResult(user_id=user.id, outcome=OUTCOME_PROCESSED, operation_id=record.id)

    except Exception as exc:  # noqa: BLE001
      logger.error("Reflection check failed for user %s: %s", user.id, exc, exc_info=True)
      return UserCheckResult(user_id=user.id, outcome=OUTCOME_FAILED, error=str(exc) or type(exc).__name__)
