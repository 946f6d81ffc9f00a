"""Postgres-backed repository for async operations using SQLAlchemy."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import null, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reflect.jobs.models import IN_FLIGHT_STATUSES, AsyncOperationRecord, OperationStatus
from reflect.schema.operations import AsyncOperation
from reflect.storage.operations_repo import OperationsRepository


class PostgresOperationsRepository(OperationsRepository):
  """Persist async operations to Postgres within a caller-owned session."""

  def __init__(self, session: AsyncSession) -> None:
    self._session = session

  async def create_operation(self, record: AsyncOperationRecord) -> AsyncOperationRecord:
    row = AsyncOperation(
      id=record.id,
      user_id=uuid.UUID(record.user_id),
      operation_type=record.operation_type,
      status=record.status.value,
      progress=record.progress,
      input_data=record.input_data,
      result_data=record.result_data,
      error_message=record.error_message,
      estimated_duration=record.estimated_duration,
      metadata_json=dict(record.metadata),
      created_at=record.created_at,
      started_at=record.started_at,
      completed_at=record.completed_at,
    )
    self._session.add(row)
    await self._session.commit()
    return self._model_to_record(row)

  async def get_operation(self, operation_id: str, *, user_id: str | None = None) -> AsyncOperationRecord | None:
    row = await self._session.get(AsyncOperation, operation_id, populate_existing=True)
    if row is None:
      return None
    if user_id is not None and str(row.user_id) != user_id:
      return None
    return self._model_to_record(row)

  async def update_operation(
    self,
    operation_id: str,
    *,
    status: OperationStatus | None = None,
    progress: int | None = None,
    result_data: Any = None,
    error_message: str | None = None,
    started_at: datetime.datetime | None = None,
    completed_at: datetime.datetime | None = None,
    metadata: dict[str, Any] | None = None,
  ) -> AsyncOperationRecord | None:
    row = await self._session.get(AsyncOperation, operation_id, populate_existing=True)
    if row is None:
      return None
    if status is not None:
      row.status = status.value
    if progress is not None:
      row.progress = progress
    if result_data is not None:
      row.result_data = result_data
    if error_message is not None:
      row.error_message = error_message
    if started_at is not None:
      row.started_at = started_at
    if completed_at is not None:
      row.completed_at = completed_at
    if metadata:
      # Reassign so the JSONB column is flagged dirty.
      row.metadata_json = {**(row.metadata_json or {}), **metadata}
    await self._session.commit()
    return self._model_to_record(row)

  async def claim_operation(self, operation_id: str, *, user_id: str, started_at: datetime.datetime) -> AsyncOperationRecord | None:
    # Single conditional UPDATE so concurrent deliveries cannot both claim the row.
    stmt = (
      update(AsyncOperation)
      .where(AsyncOperation.id == operation_id, AsyncOperation.user_id == uuid.UUID(user_id), AsyncOperation.status == OperationStatus.QUEUED.value)
      .values(status=OperationStatus.PROCESSING.value, progress=0, started_at=started_at)
      .returning(AsyncOperation)
      .execution_options(populate_existing=True)
    )
    row = (await self._session.execute(stmt)).scalar_one_or_none()
    await self._session.commit()
    return self._model_to_record(row) if row is not None else None

  async def finish_operation(
    self,
    operation_id: str,
    *,
    status: OperationStatus,
    expected_status: OperationStatus,
    completed_at: datetime.datetime,
    result_data: Any = None,
    error_message: str | None = None,
  ) -> AsyncOperationRecord | None:
    values: dict[str, Any] = {"status": status.value, "completed_at": completed_at}
    if status == OperationStatus.COMPLETED:
      values.update(progress=100, result_data=result_data, error_message=null())
    else:
      values.update(result_data=null(), error_message=error_message)
    stmt = (
      update(AsyncOperation)
      .where(AsyncOperation.id == operation_id, AsyncOperation.status == expected_status.value)
      .values(**values)
      .returning(AsyncOperation)
      .execution_options(populate_existing=True)
    )
    row = (await self._session.execute(stmt)).scalar_one_or_none()
    await self._session.commit()
    return self._model_to_record(row) if row is not None else None

  async def list_operations(self, user_id: str, *, operation_type: str | None = None, status: OperationStatus | None = None, limit: int = 10) -> list[AsyncOperationRecord]:
    stmt = select(AsyncOperation).where(AsyncOperation.user_id == uuid.UUID(user_id))
    if operation_type is not None:
      stmt = stmt.where(AsyncOperation.operation_type == operation_type)
    if status is not None:
      stmt = stmt.where(AsyncOperation.status == status.value)
    stmt = stmt.order_by(AsyncOperation.created_at.desc()).limit(limit)
    rows = (await self._session.execute(stmt)).scalars().all()
    return [self._model_to_record(row) for row in rows]

  async def find_in_flight(self, user_id: str, operation_type: str) -> AsyncOperationRecord | None:
    stmt = (
      select(AsyncOperation)
      .where(AsyncOperation.user_id == uuid.UUID(user_id), AsyncOperation.operation_type == operation_type, AsyncOperation.status.in_([status.value for status in IN_FLIGHT_STATUSES]))
      .order_by(AsyncOperation.created_at.desc())
      .limit(1)
    )
    row = (await self._session.execute(stmt)).scalar_one_or_none()
    if row is None:
      return None
    return self._model_to_record(row)

  @staticmethod
  def _model_to_record(row: AsyncOperation) -> AsyncOperationRecord:
    return AsyncOperationRecord(
      id=row.id,
      user_id=str(row.user_id),
      operation_type=row.operation_type,
      status=OperationStatus(row.status),
      progress=row.progress or 0,
      input_data=row.input_data,
      result_data=row.result_data,
      error_message=row.error_message,
      estimated_duration=row.estimated_duration,
      metadata=dict(row.metadata_json or {}),
      created_at=row.created_at,
      started_at=row.started_at,
      completed_at=row.completed_at,
    )
