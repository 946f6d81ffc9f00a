from __future__ import annotations

import datetime
import uuid

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from reflect.core.database import Base


class AsyncOperation(Base):
  __tablename__ = "async_operations"
  __table_args__ = (Index("ix_async_operations_user_type_status", "user_id", "operation_type", "status"),)

  id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  operation_type: Mapped[str] = mapped_column(String, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False, index=True)
  progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  input_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  result_data: Mapped[dict | list | None] = mapped_column(JSONB, nullable=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  estimated_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
  metadata_json: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, default=dict)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  started_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  completed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
