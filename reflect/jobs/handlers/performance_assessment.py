"""Performance assessment drafting from a cycle's weekly snippets."""

from __future__ import annotations

import datetime
import logging
from typing import Any

from reflect.ai.generation import ContentGenerator, strip_markdown_fences
from reflect.ai.prompts import build_assessment_prompt
from reflect.jobs.handlers.base import JobContext
from reflect.jobs.models import OperationType
from reflect.storage.factory import DataStoreScope

logger = logging.getLogger(__name__)


def _parse_date(raw: Any, field_name: str) -> datetime.date:
  if isinstance(raw, datetime.date):
    return raw
  if not raw:
    raise ValueError(f"{field_name} is required.")
  try:
    return datetime.date.fromisoformat(str(raw)[:10])
  except ValueError as exc:
    raise ValueError(f"{field_name} must be an ISO date.") from exc


class PerformanceAssessmentHandler:
  job_type = OperationType.PERFORMANCE_ASSESSMENT.value
  estimated_duration = 120

  def __init__(self, store_scope: DataStoreScope, generator: ContentGenerator) -> None:
    self._store_scope = store_scope
    self._generator = generator

  async def process(self, input_data: dict[str, Any], context: JobContext) -> dict[str, Any]:
    cycle_name = str(input_data.get("cycleName") or "").strip()
    if not cycle_name:
      raise ValueError("cycleName is required.")
    start_date = _parse_date(input_data.get("startDate"), "startDate")
    end_date = _parse_date(input_data.get("endDate"), "endDate")
    if end_date < start_date:
      raise ValueError("endDate must not be before startDate.")

    async with self._store_scope() as store:
      await context.update_progress(10, "Loading user profile")
      profile = await store.users.get_user(context.user_id)
      if profile is None:
        raise ValueError("User profile not found")

      await context.update_progress(25, "Collecting weekly snippets")
      snippets = await store.snippets.list_snippets_in_range(context.user_id, start=start_date, end=end_date)
    if not snippets:
      raise ValueError(f"No snippets found between {start_date.isoformat()} and {end_date.isoformat()}.")

    await context.update_progress(50, "Generating assessment draft")
    prompt = build_assessment_prompt(
      cycle_name=cycle_name,
      job_title=profile.job_title,
      seniority_level=profile.seniority_level,
      snippets=[(f"{snippet.year}-W{snippet.week_number:02d}", snippet.content) for snippet in snippets],
      career_plan=profile.career_progression_plan,
      directions=input_data.get("assessmentDirections"),
    )
    generated = await self._generator.generate(prompt, temperature=0.7, max_tokens=3000)

    await context.update_progress(90, "Finalizing assessment draft")
    logger.info("Drafted assessment %r from %d snippets for user %s", cycle_name, len(snippets), context.user_id)
    return {"cycleName": cycle_name, "startDate": start_date.isoformat(), "endDate": end_date.isoformat(), "snippetCount": len(snippets), "draft": strip_markdown_fences(generated.text)}
