"""Domain models for tracked asynchronous operations and job requests."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OperationType(str, Enum):
  CAREER_PLAN_GENERATION = "career_plan_generation"
  WEEKLY_REFLECTION = "weekly_reflection"
  WEEKLY_ANALYSIS = "weekly_analysis"
  PERFORMANCE_ASSESSMENT = "performance_assessment"
  INTEGRATION_SYNC = "integration_sync"
  BULK_EXPORT = "bulk_export"


class OperationStatus(str, Enum):
  QUEUED = "queued"
  PROCESSING = "processing"
  COMPLETED = "completed"
  FAILED = "failed"


TERMINAL_STATUSES = frozenset({OperationStatus.COMPLETED, OperationStatus.FAILED})
IN_FLIGHT_STATUSES = frozenset({OperationStatus.QUEUED, OperationStatus.PROCESSING})


@dataclass
class AsyncOperationRecord:
  """Persisted lifecycle of one background operation."""

  id: str
  user_id: str
  operation_type: str
  status: OperationStatus
  created_at: datetime.datetime
  progress: int = 0
  input_data: dict[str, Any] | None = None
  result_data: Any = None
  error_message: str | None = None
  estimated_duration: int | None = None
  started_at: datetime.datetime | None = None
  completed_at: datetime.datetime | None = None
  metadata: dict[str, Any] = field(default_factory=dict)

  @property
  def is_complete(self) -> bool:
    return self.status in TERMINAL_STATUSES

  def time_remaining(self, now: datetime.datetime) -> int | None:
    """Return the advisory seconds remaining while processing, floored at zero."""
    if self.status != OperationStatus.PROCESSING or self.started_at is None or self.estimated_duration is None:
      return None
    elapsed = int((now - self.started_at).total_seconds())
    return max(0, self.estimated_duration - elapsed)


@dataclass(frozen=True)
class JobRequest:
  """Unit handed from an enqueue-time caller to a job processor.

  References an operation that already exists in the store; processors never
  create operations, they only trigger their execution.
  """

  type: str
  user_id: str
  operation_id: str
  input_data: dict[str, Any] = field(default_factory=dict)
  metadata: dict[str, Any] = field(default_factory=dict)

  @property
  def priority(self) -> str:
    return str(self.metadata.get("priority") or "medium")


@dataclass(frozen=True)
class JobResult:
  """Outcome of one Job Service invocation."""

  success: bool
  data: Any = None
  error: str | None = None
  skipped: bool = False
  status: OperationStatus | None = None
  metadata: dict[str, Any] = field(default_factory=dict)
