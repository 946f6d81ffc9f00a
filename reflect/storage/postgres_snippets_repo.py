"""Postgres-backed repository for weekly snippets."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reflect.schema.sql import WeeklySnippet
from reflect.storage.snippets_repo import SnippetRecord, SnippetsRepository


class PostgresSnippetsRepository(SnippetsRepository):
  """Persist weekly snippets within a caller-owned session."""

  def __init__(self, session: AsyncSession) -> None:
    self._session = session

  async def get_snippet_for_week(self, user_id: str, *, year: int, week_number: int) -> SnippetRecord | None:
    stmt = select(WeeklySnippet).where(WeeklySnippet.user_id == uuid.UUID(user_id), WeeklySnippet.year == year, WeeklySnippet.week_number == week_number)
    row = (await self._session.execute(stmt)).scalar_one_or_none()
    return self._model_to_record(row) if row is not None else None

  async def list_snippets_in_range(self, user_id: str, *, start: datetime.date, end: datetime.date) -> list[SnippetRecord]:
    stmt = (
      select(WeeklySnippet)
      .where(WeeklySnippet.user_id == uuid.UUID(user_id), WeeklySnippet.start_date >= start, WeeklySnippet.start_date <= end)
      .order_by(WeeklySnippet.start_date.asc())
    )
    rows = (await self._session.execute(stmt)).scalars().all()
    return [self._model_to_record(row) for row in rows]

  async def list_recent_snippets(self, user_id: str, *, limit: int = 4) -> list[SnippetRecord]:
    stmt = select(WeeklySnippet).where(WeeklySnippet.user_id == uuid.UUID(user_id)).order_by(WeeklySnippet.year.desc(), WeeklySnippet.week_number.desc()).limit(limit)
    rows = (await self._session.execute(stmt)).scalars().all()
    return [self._model_to_record(row) for row in rows]

  async def create_snippet(self, record: SnippetRecord) -> SnippetRecord:
    row = WeeklySnippet(
      id=record.id,
      user_id=uuid.UUID(record.user_id),
      year=record.year,
      week_number=record.week_number,
      start_date=record.start_date,
      end_date=record.end_date,
      content=record.content,
      ai_suggestions=record.ai_suggestions,
    )
    self._session.add(row)
    try:
      await self._session.commit()
    except IntegrityError as exc:
      # Leave the session usable so the caller can still record the failure.
      await self._session.rollback()
      raise ValueError("Snippet already exists for this week") from exc
    return self._model_to_record(row)

  @staticmethod
  def _model_to_record(row: WeeklySnippet) -> SnippetRecord:
    return SnippetRecord(
      id=row.id,
      user_id=str(row.user_id),
      year=row.year,
      week_number=row.week_number,
      start_date=row.start_date,
      end_date=row.end_date,
      content=row.content,
      ai_suggestions=row.ai_suggestions,
    )
