"""Registry mapping job types to handlers."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from reflect.jobs.errors import UnknownJobTypeError
from reflect.jobs.handlers.base import JobHandler

logger = logging.getLogger(__name__)


class JobHandlerRegistry:
  """Identifier-to-handler mapping populated once at process start."""

  def __init__(self, handlers: Iterable[JobHandler] = ()) -> None:
    self._handlers: dict[str, JobHandler] = {}
    for handler in handlers:
      self.register(handler)

  def register(self, handler: JobHandler) -> None:
    """Register a handler; a later registration for the same type replaces the earlier one."""
    if handler.job_type in self._handlers:
      logger.warning("Replacing registered handler for job type %s", handler.job_type)
    self._handlers[handler.job_type] = handler

  def get(self, job_type: str) -> JobHandler | None:
    return self._handlers.get(job_type)

  def resolve(self, job_type: str) -> JobHandler:
    """Resolve the handler for a job type or raise a configuration error."""
    handler = self._handlers.get(job_type)
    if handler is None:
      raise UnknownJobTypeError(job_type)
    return handler

  def get_all(self) -> list[JobHandler]:
    return list(self._handlers.values())

  def __contains__(self, job_type: object) -> bool:
    return job_type in self._handlers
