"""Shared FastAPI dependencies that expose the process-wide job runtime."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from reflect.jobs.runtime import JobRuntime


def get_job_runtime(request: Request) -> JobRuntime:
  """Return the runtime built during application startup."""
  runtime = getattr(request.app.state, "jobs", None)
  if runtime is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Job runtime is not initialized")
  return runtime
