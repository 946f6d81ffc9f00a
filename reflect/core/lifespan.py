import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from reflect.core.database import dispose_engine
from reflect.core.firebase import initialize_firebase
from reflect.core.logging import _initialize_logging
from reflect.jobs.runtime import build_job_runtime


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging, auth and the job runtime; tear them down on exit."""
  from reflect.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("reflect.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except RuntimeError:
    # File logging is optional; stdout logging still works without it.
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  initialize_firebase(settings)
  logger.info("Database DSN: %s", _redact_dsn(settings.pg_dsn))

  # Tests may pre-populate the runtime with in-memory collaborators.
  runtime = getattr(app.state, "jobs", None)
  if runtime is None:
    runtime = build_job_runtime(settings)
    app.state.jobs = runtime

  if runtime.scheduler is not None:
    runtime.scheduler.start()

  try:
    yield
  finally:
    await runtime.shutdown()
    await dispose_engine()
    logger.info("Shutdown complete.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
