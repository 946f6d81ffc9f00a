"""Career plan generation for a role and seniority level."""

from __future__ import annotations

import logging
import re
from typing import Any

from reflect.ai.generation import ContentGenerator
from reflect.ai.prompts import build_career_plan_prompt
from reflect.jobs.handlers.base import JobContext
from reflect.jobs.models import OperationType
from reflect.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

SENIORITY_LADDER: tuple[str, ...] = ("Junior", "Mid-Level", "Senior", "Staff", "Principal", "Distinguished")
_LADDER_ALIASES = {"mid": "Mid-Level", "mid-level": "Mid-Level", "midlevel": "Mid-Level"}


def next_seniority_level(level: str) -> str:
  """Return the next rung on the ladder; unknown and top levels map to themselves."""
  normalized = level.strip()
  lookup = {rung.lower(): rung for rung in SENIORITY_LADDER} | _LADDER_ALIASES
  rung = lookup.get(normalized.lower())
  if rung is not None:
    index = SENIORITY_LADDER.index(rung)
    return SENIORITY_LADDER[min(index + 1, len(SENIORITY_LADDER) - 1)]

  # Titles such as "Senior Software Engineer" advance their ladder prefix.
  for index, rung in enumerate(SENIORITY_LADDER[:-1]):
    pattern = re.compile(rf"\b{re.escape(rung)}\b", re.IGNORECASE)
    if pattern.search(normalized):
      return pattern.sub(SENIORITY_LADDER[index + 1], normalized, count=1)
  return normalized


class CareerPlanHandler:
  job_type = OperationType.CAREER_PLAN_GENERATION.value
  estimated_duration = 30

  def __init__(self, generator: ContentGenerator, *, clock: Clock = utc_now) -> None:
    self._generator = generator
    self._clock = clock

  async def process(self, input_data: dict[str, Any], context: JobContext) -> dict[str, Any]:
    role = str(input_data.get("role") or "").strip()
    level = str(input_data.get("level") or "").strip()
    company_ladder = input_data.get("companyLadder") or None
    if not role or not level:
      raise ValueError("Career plan generation requires both role and level.")

    logger.info("Generating career plan for %s %s (operation %s)", level, role, context.operation_id)
    await context.update_progress(10, "Starting career guidelines generation...")

    await context.update_progress(20, f"Analyzing expectations for {level} {role}...")
    current = await self._generator.generate(build_career_plan_prompt(role=role, level=level, company_ladder=company_ladder), temperature=0.7, max_tokens=1500)
    current_plan = current.text.strip()
    await context.update_progress(50, "Current level analysis complete...")

    next_level = next_seniority_level(level)
    await context.update_progress(60, f"Analyzing next level expectations for {next_level}...")
    following = await self._generator.generate(
      build_career_plan_prompt(role=role, level=next_level, company_ladder=company_ladder, current_level_guidelines=current_plan, current_level=level), temperature=0.7, max_tokens=1500
    )

    await context.update_progress(90, "Finalizing career guidelines...")
    return {"currentLevelPlan": current_plan, "nextLevelExpectations": following.text.strip(), "generatedAt": self._clock().isoformat()}
