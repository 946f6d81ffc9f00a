"""Exceptions raised by the job orchestration layer."""

from __future__ import annotations


class JobError(Exception):
  """Base class for job orchestration errors."""


class UnknownJobTypeError(JobError):
  """Raised when no handler or callback route exists for a job type."""

  def __init__(self, job_type: str) -> None:
    super().__init__(f"No handler registered for job type: {job_type}")
    self.job_type = job_type


class JobTimeoutError(JobError):
  """Raised when a handler runs past the configured timeout."""

  def __init__(self, timeout_seconds: float) -> None:
    super().__init__(f"Job timed out after {timeout_seconds:g} seconds")
    self.timeout_seconds = timeout_seconds


class DispatchError(JobError):
  """Raised when a durable dispatch enqueue fails."""


class OperationNotFoundError(JobError):
  """Raised when an operation id does not resolve for the requesting user."""
