import logging
import re
import time
import uuid
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("reflect.core.middleware")

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{8,64}$")

# Delivery headers set by Cloud Tasks on internal callbacks.
_TASK_NAME_HEADER = "x-cloudtasks-taskname"
_TASK_RETRY_HEADER = "x-cloudtasks-taskretrycount"


def _resolve_request_id(headers: Headers) -> str:
  """Reuse a well-formed inbound request id, else mint one."""
  inbound = headers.get("x-request-id")
  if inbound and _REQUEST_ID_PATTERN.match(inbound):
    return inbound
  return str(uuid.uuid4())


class RequestLoggingMiddleware:
  """Assign a request id and log method, path, status and latency."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    headers = Headers(scope=scope)
    request_id = _resolve_request_id(headers)
    scope.setdefault("state", {})["request_id"] = request_id
    method = scope.get("method", "UNKNOWN")
    path = scope.get("path", "")

    task_name = headers.get(_TASK_NAME_HEADER)
    if task_name:
      logger.info("Task delivery request_id=%s %s %s task=%s retry=%s", request_id, method, path, task_name, headers.get(_TASK_RETRY_HEADER, "0"))
    else:
      logger.info("Incoming request request_id=%s %s %s", request_id, method, path)

    started = time.perf_counter()
    status_code = 0

    async def send_with_request_id(message: Message) -> None:
      nonlocal status_code
      if message["type"] == "http.response.start":
        status_code = message.get("status", 0)
        MutableHeaders(scope=message).setdefault("x-request-id", request_id)
      await send(message)

    try:
      await self.app(scope, receive, send_with_request_id)
    finally:
      elapsed_ms = (time.perf_counter() - started) * 1000
      log_level = logging.WARNING if status_code >= 500 or status_code == 0 else logging.INFO
      logger.log(log_level, "Response request_id=%s status=%s took=%.1fms", request_id, status_code, elapsed_ms)


class SecurityHeadersMiddleware:
  """Add hardening headers and keep API responses out of shared caches."""

  _STRIPPED = ("x-powered-by", "server")
  _DEFAULTS: dict[str, str] = {"x-content-type-options": "nosniff", "x-frame-options": "DENY", "referrer-policy": "no-referrer"}

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    no_store = scope.get("path", "").startswith(("/api/", "/internal/"))

    async def send_hardened(message: dict[str, Any]) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for name in self._STRIPPED:
          if name in headers:
            del headers[name]
        for name, value in self._DEFAULTS.items():
          headers.setdefault(name, value)
        if no_store:
          # Operation status changes between polls.
          headers["cache-control"] = "no-store"
      await send(message)

    await self.app(scope, receive, send_hardened)
