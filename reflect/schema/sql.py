from __future__ import annotations

import datetime
import uuid

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from reflect.core.database import Base
from reflect.schema.operations import AsyncOperation  # noqa: F401


class User(Base):
  __tablename__ = "users"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  firebase_uid: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
  email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
  name: Mapped[str | None] = mapped_column(String, nullable=True)
  job_title: Mapped[str | None] = mapped_column(String, nullable=True)
  seniority_level: Mapped[str | None] = mapped_column(String, nullable=True)
  career_progression_plan: Mapped[str | None] = mapped_column(Text, nullable=True)
  next_level_expectations: Mapped[str | None] = mapped_column(Text, nullable=True)
  career_plan_generated_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  reflection_preferences: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class WeeklySnippet(Base):
  __tablename__ = "weekly_snippets"
  __table_args__ = (UniqueConstraint("user_id", "year", "week_number", name="ux_weekly_snippets_user_year_week"),)

  id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  year: Mapped[int] = mapped_column(Integer, nullable=False)
  week_number: Mapped[int] = mapped_column(Integer, nullable=False)
  start_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
  end_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  ai_suggestions: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
