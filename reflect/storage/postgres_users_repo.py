"""Postgres-backed repository for user profiles."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from reflect.schema.sql import User
from reflect.storage.users_repo import UserProfileRecord, UsersRepository


def _parse_user_id(user_id: str) -> uuid.UUID | None:
  try:
    return uuid.UUID(str(user_id))
  except ValueError:
    return None


class PostgresUsersRepository(UsersRepository):
  """Read and update user profile rows within a caller-owned session."""

  def __init__(self, session: AsyncSession) -> None:
    self._session = session

  async def get_user(self, user_id: str) -> UserProfileRecord | None:
    parsed = _parse_user_id(user_id)
    if parsed is None:
      return None
    row = await self._session.get(User, parsed)
    return self._model_to_record(row) if row is not None else None

  async def get_user_by_firebase_uid(self, firebase_uid: str) -> UserProfileRecord | None:
    stmt = select(User).where(User.firebase_uid == firebase_uid)
    row = (await self._session.execute(stmt)).scalar_one_or_none()
    return self._model_to_record(row) if row is not None else None

  async def list_auto_generate_users(self, *, limit: int, offset: int = 0) -> list[UserProfileRecord]:
    # Missing preferences (or a missing flag) fall back to autoGenerate=true.
    auto_generate = User.reflection_preferences["autoGenerate"]
    stmt = (
      select(User)
      .where(or_(User.reflection_preferences.is_(None), auto_generate.astext.is_(None), auto_generate.astext == "true"))
      .order_by(User.created_at.asc(), User.id.asc())
      .limit(limit)
      .offset(offset)
    )
    rows = (await self._session.execute(stmt)).scalars().all()
    return [self._model_to_record(row) for row in rows]

  async def get_reflection_preferences(self, user_id: str) -> dict[str, Any] | None:
    user = await self.get_user(user_id)
    if user is None:
      return None
    return user.reflection_preferences

  async def update_reflection_preferences(self, user_id: str, preferences: dict[str, Any]) -> UserProfileRecord | None:
    parsed = _parse_user_id(user_id)
    if parsed is None:
      return None
    row = await self._session.get(User, parsed)
    if row is None:
      return None
    row.reflection_preferences = dict(preferences)
    await self._session.commit()
    return self._model_to_record(row)

  async def store_career_plan(self, user_id: str, *, current_level_plan: str, next_level_expectations: str, generated_at: datetime.datetime) -> None:
    parsed = _parse_user_id(user_id)
    row = await self._session.get(User, parsed) if parsed is not None else None
    if row is None:
      raise ValueError(f"User {user_id} not found.")
    row.career_progression_plan = current_level_plan
    row.next_level_expectations = next_level_expectations
    row.career_plan_generated_at = generated_at
    await self._session.commit()

  @staticmethod
  def _model_to_record(row: User) -> UserProfileRecord:
    return UserProfileRecord(
      id=str(row.id),
      email=row.email,
      name=row.name,
      job_title=row.job_title,
      seniority_level=row.seniority_level,
      career_progression_plan=row.career_progression_plan,
      next_level_expectations=row.next_level_expectations,
      career_plan_generated_at=row.career_plan_generated_at,
      reflection_preferences=dict(row.reflection_preferences) if row.reflection_preferences else None,
    )
