"""Weekly reflection drafting from profile, previous-week and integration context."""

from __future__ import annotations

import datetime
import logging
from typing import Any

from reflect.ai.generation import ContentGenerator, strip_markdown_fences
from reflect.ai.prompts import build_reflection_prompt
from reflect.jobs.handlers.base import JobContext
from reflect.jobs.models import OperationType
from reflect.scheduling.week import parse_iso_datetime, week_bounds
from reflect.storage.factory import DataStore, DataStoreScope
from reflect.storage.snippets_repo import SnippetRecord
from reflect.utils.clock import Clock, utc_now
from reflect.utils.ids import generate_snippet_id

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR = "google_calendar"

# Canned calendar activity used when a run is started with testMode.
TEST_MODE_CALENDAR: dict[str, Any] = {
  "totalMeetings": 3,
  "meetingContext": ["Monday: Sprint Planning (6 attendees)", "Wednesday: 1:1 with Manager", "Friday: Code Review Session (4 attendees)"],
  "weeklyContextSummary": "Week focused on sprint planning, manager alignment, and code review activities",
}

_FALLBACK_TEMPLATE = "## Done\n\n{content}\n\n## Next\n\n- Continue with current priorities\n\n## Notes\n\n*Generated reflection - please review and edit as needed*"


def normalize_reflection(text: str) -> str:
  """Strip code fences and guarantee the Done/Next sections exist."""
  content = strip_markdown_fences(text)
  if "## Done" not in content or "## Next" not in content:
    return _FALLBACK_TEMPLATE.format(content=content)
  return content


class WeeklyReflectionHandler:
  job_type = OperationType.WEEKLY_REFLECTION.value
  estimated_duration = 180

  def __init__(self, store_scope: DataStoreScope, generator: ContentGenerator, *, clock: Clock = utc_now) -> None:
    self._store_scope = store_scope
    self._generator = generator
    self._clock = clock

  def _resolve_week(self, input_data: dict[str, Any]) -> tuple[datetime.datetime, datetime.datetime]:
    week_start = parse_iso_datetime(input_data.get("weekStart"))
    week_end = parse_iso_datetime(input_data.get("weekEnd"))
    if week_start is None:
      week_start, default_end = week_bounds(week_end or self._clock())
      week_end = week_end or default_end
    elif week_end is None:
      week_end = week_bounds(week_start)[1]
    if week_end < week_start:
      raise ValueError("weekEnd must not be before weekStart.")
    return week_start, week_end

  async def process(self, input_data: dict[str, Any], context: JobContext) -> dict[str, Any]:
    include_previous_context = bool(input_data.get("includePreviousContext", True))
    test_mode = bool(input_data.get("testMode", False))
    week_start, week_end = self._resolve_week(input_data)
    iso = week_start.date().isocalendar()
    year, week_number = iso.year, iso.week

    async with self._store_scope() as store:
      await context.update_progress(5, "Loading user profile")
      profile = await store.users.get_user(context.user_id)
      if profile is None:
        raise ValueError("User profile not found")

      existing = await store.snippets.get_snippet_for_week(context.user_id, year=year, week_number=week_number)
      if existing is not None:
        logger.info("Reflection already exists for user %s week %s-W%02d; returning it", context.user_id, year, week_number)
        return {"reflectionId": existing.id, "weekNumber": week_number, "year": year, "status": "draft", "content": existing.content}

      await context.update_progress(20, "Using mock integration data for testing" if test_mode else "Fetching integration data")
      integration_data = self._collect_integration_data(input_data.get("includeIntegrations"), test_mode)

      await context.update_progress(40, "Consolidating weekly activities")
      highlights, summary = self._consolidate(integration_data)

      previous_reflection = None
      if include_previous_context:
        await context.update_progress(55, "Retrieving previous insights")
        previous_reflection = await self._previous_reflection(store, context.user_id, week_start)

      await context.update_progress(70, "Generating reflection with AI")
      prompt = build_reflection_prompt(job_title=profile.job_title, seniority_level=profile.seniority_level, highlights=highlights, summary=summary, previous_reflection=previous_reflection, career_plan=profile.career_progression_plan)
      generated = await self._generator.generate(prompt, temperature=0.7, max_tokens=1500)
      content = normalize_reflection(generated.text)

      await context.update_progress(90, "Saving reflection draft")
      suggestions = {"generatedAutomatically": True, "generatedAt": self._clock().isoformat(), "status": "draft", "automated": bool(input_data.get("automated", False))}
      snippet = await store.snippets.create_snippet(
        SnippetRecord(id=generate_snippet_id(), user_id=context.user_id, year=year, week_number=week_number, start_date=week_start.date(), end_date=week_end.date(), content=content, ai_suggestions=suggestions)
      )

    logger.info("Saved reflection draft %s for user %s week %s-W%02d", snippet.id, context.user_id, year, week_number)
    return {"reflectionId": snippet.id, "weekNumber": week_number, "year": year, "status": "draft", "content": content}

  def _collect_integration_data(self, include_integrations: list[str] | None, test_mode: bool) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if include_integrations and GOOGLE_CALENDAR not in include_integrations:
      return data
    if test_mode:
      data[GOOGLE_CALENDAR] = TEST_MODE_CALENDAR
    # TODO: fetch live calendar data once account-linked integrations are stored for users.
    return data

  @staticmethod
  def _consolidate(integration_data: dict[str, Any]) -> tuple[list[str], str | None]:
    calendar = integration_data.get(GOOGLE_CALENDAR)
    if not calendar:
      return [], None
    return list(calendar.get("meetingContext") or []), calendar.get("weeklyContextSummary")

  @staticmethod
  async def _previous_reflection(store: DataStore, user_id: str, week_start: datetime.datetime) -> str | None:
    previous_start = week_start.date() - datetime.timedelta(days=7)
    previous_end = previous_start + datetime.timedelta(days=6)
    snippets = await store.snippets.list_snippets_in_range(user_id, start=previous_start, end=previous_end)
    if not snippets:
      return None
    return snippets[0].content
