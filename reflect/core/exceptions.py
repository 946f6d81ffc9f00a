import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from reflect.jobs.errors import DispatchError, OperationNotFoundError

logger = logging.getLogger("reflect.core.exceptions")


def _json_safe(value: Any) -> Any:
  """Reduce arbitrary error detail to JSON primitives."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    return f"{type(value).__name__}: {value}" if str(value) else type(value).__name__
  return str(value)


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None)


def _error_response(request: Request, status_code: int, detail: Any, *, headers: dict[str, str] | None = None) -> JSONResponse:
  """Every error body carries `detail` plus the request id when one was assigned."""
  content: dict[str, Any] = {"detail": detail}
  request_id = _request_id(request)
  if request_id:
    content["requestId"] = request_id
  return JSONResponse(status_code=status_code, content=content, headers=headers)


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Drop raw inputs, including those nested in `ctx`, from validation errors."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key not in ("input", "url")}
    ctx = scrubbed.get("ctx")
    if isinstance(ctx, dict):
      scrubbed["ctx"] = {key: value for key, value in ctx.items() if key != "input"}
    sanitized.append(_json_safe(scrubbed))
  return sanitized


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Catch-all for unhandled errors; internals never reach the client."""
  logger.error("Unhandled %s request_id=%s path=%s", type(exc).__name__, _request_id(request), request.url.path, exc_info=exc)
  return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  errors = _sanitize_validation_errors(exc.errors())
  logger.warning("Request validation failed request_id=%s %s %s errors=%s", _request_id(request), request.method, request.url.path, errors)
  return _error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, errors)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Keep 4xx details for the client; replace 5xx details with a generic message."""
  from reflect.config import get_settings

  if exc.status_code >= 500:
    logger.error("HTTP %s request_id=%s path=%s detail=%s", exc.status_code, _request_id(request), request.url.path, exc.detail)
    return _error_response(request, exc.status_code, "Internal Server Error")

  if get_settings().log_http_4xx:
    logger.warning("HTTP %s request_id=%s path=%s detail=%s", exc.status_code, _request_id(request), request.url.path, _json_safe(exc.detail))
  return _error_response(request, exc.status_code, exc.detail, headers=exc.headers)


async def dispatch_exception_handler(request: Request, exc: DispatchError) -> JSONResponse:
  """A failed durable enqueue is retryable by the caller."""
  logger.error("Job dispatch failed request_id=%s path=%s error=%s", _request_id(request), request.url.path, exc)
  return _error_response(request, status.HTTP_503_SERVICE_UNAVAILABLE, "Job dispatch is temporarily unavailable")


async def operation_not_found_exception_handler(request: Request, exc: OperationNotFoundError) -> JSONResponse:
  return _error_response(request, status.HTTP_404_NOT_FOUND, str(exc))
