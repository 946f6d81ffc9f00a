"""Storage interface for tracked async operations."""

from __future__ import annotations

import datetime
from typing import Any, Protocol

from reflect.jobs.models import AsyncOperationRecord, OperationStatus


class OperationsRepository(Protocol):
  """Repository contract for async operation persistence."""

  async def create_operation(self, record: AsyncOperationRecord) -> AsyncOperationRecord:
    """Persist a new operation record."""

  async def get_operation(self, operation_id: str, *, user_id: str | None = None) -> AsyncOperationRecord | None:
    """Fetch an operation, optionally scoped to its owner."""

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
    """Apply a partial update; metadata keys are merged into the existing metadata."""

  async def claim_operation(self, operation_id: str, *, user_id: str, started_at: datetime.datetime) -> AsyncOperationRecord | None:
    """Move a queued operation to processing; None when it was not queued."""

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
    """Write a terminal state only while the operation is still in `expected_status`."""

  async def list_operations(self, user_id: str, *, operation_type: str | None = None, status: OperationStatus | None = None, limit: int = 10) -> list[AsyncOperationRecord]:
    """Return the newest operations for a user."""

  async def find_in_flight(self, user_id: str, operation_type: str) -> AsyncOperationRecord | None:
    """Return a queued or processing operation of the given type, if one exists."""
