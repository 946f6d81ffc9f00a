"""Storage interface for user profiles and reflection preferences."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class UserProfileRecord:
  """Profile fields read by job handlers and the scheduler."""

  id: str
  email: str
  name: str | None = None
  job_title: str | None = None
  seniority_level: str | None = None
  career_progression_plan: str | None = None
  next_level_expectations: str | None = None
  career_plan_generated_at: datetime.datetime | None = None
  reflection_preferences: dict[str, Any] | None = field(default=None, hash=False)


class UsersRepository(Protocol):
  """Repository contract for profile reads and job-driven profile writes."""

  async def get_user(self, user_id: str) -> UserProfileRecord | None:
    """Fetch one user profile."""

  async def get_user_by_firebase_uid(self, firebase_uid: str) -> UserProfileRecord | None:
    """Resolve the profile linked to an authenticated identity."""

  async def list_auto_generate_users(self, *, limit: int, offset: int = 0) -> list[UserProfileRecord]:
    """Return a page of users whose stored preferences do not disable automatic generation."""

  async def get_reflection_preferences(self, user_id: str) -> dict[str, Any] | None:
    """Return the raw stored reflection preferences, if any."""

  async def update_reflection_preferences(self, user_id: str, preferences: dict[str, Any]) -> UserProfileRecord | None:
    """Replace the stored reflection preferences."""

  async def store_career_plan(self, user_id: str, *, current_level_plan: str, next_level_expectations: str, generated_at: datetime.datetime) -> None:
    """Write a generated career plan onto the profile."""
