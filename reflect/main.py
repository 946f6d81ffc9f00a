from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from reflect.api.routes import operations, preferences, reflections, scheduler, tasks
from reflect.config import get_settings
from reflect.core.exceptions import dispatch_exception_handler, global_exception_handler, http_exception_handler, operation_not_found_exception_handler, request_validation_exception_handler
from reflect.core.lifespan import lifespan
from reflect.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from reflect.jobs.errors import DispatchError, OperationNotFoundError

settings = get_settings()

app = FastAPI(title="reflect", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "PUT", "OPTIONS"], allow_headers=["content-type", "authorization", "x-wait-for-completion"], expose_headers=["content-length", "x-request-id"])


# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(DispatchError, dispatch_exception_handler)
app.add_exception_handler(OperationNotFoundError, operation_not_found_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok"}


app.include_router(operations.router, prefix="/api/async-operations", tags=["operations"])
app.include_router(reflections.router, prefix="/api/jobs", tags=["reflections"])
app.include_router(preferences.router, prefix="/api/user", tags=["preferences"])
app.include_router(tasks.router, prefix="/internal")
app.include_router(scheduler.router, prefix="/internal")
