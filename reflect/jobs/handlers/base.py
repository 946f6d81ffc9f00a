"""Handler contract shared by every job type."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

ProgressCallback = Callable[[int, str | None], Awaitable[None]]


@dataclass(frozen=True)
class JobContext:
  """Execution context handed to a handler for one operation.

  Handlers report progress only through ``update_progress``; status transitions
  belong to the job service.
  """

  user_id: str
  operation_id: str
  update_progress: ProgressCallback
  metadata: dict[str, Any] = field(default_factory=dict)


class JobHandler(Protocol):
  """Processor contract for a concrete job type."""

  job_type: str
  estimated_duration: int

  async def process(self, input_data: dict[str, Any], context: JobContext) -> Any:
    """Run the job and return its result payload; raise on failure."""
