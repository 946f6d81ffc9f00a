from __future__ import annotations

from typing import Protocol

from reflect.jobs.models import JobRequest, JobResult


class JobProcessor(Protocol):
  """Interface for turning job requests into job service invocations."""

  async def enqueue(self, request: JobRequest) -> None:
    """Queue a job for eventual processing."""
    ...

  async def process_immediate(self, request: JobRequest) -> JobResult:
    """Run a job in the caller's context and return its result."""
    ...
