import logging
import logging.handlers
import sys
import traceback
from pathlib import Path
from types import TracebackType

from reflect.config import Settings

LOG_LINE_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
LOG_FILE_NAME = "reflect.log"

# Third-party loggers routed through our handlers, with their level floor.
_ROUTED_LOGGERS: dict[str, int | None] = {"uvicorn": None, "uvicorn.error": None, "uvicorn.access": logging.WARNING, "fastapi": None, "apscheduler": logging.WARNING, "google": logging.WARNING}

_log_file_path: Path | None = None


class TruncatedFormatter(logging.Formatter):
  """Keep the exception header and the innermost frames only."""

  max_frames = 5

  # ruff: noqa: N802
  def formatException(self, ei: tuple[type[BaseException] | None, BaseException | None, TracebackType | None]) -> str:
    lines = traceback.format_exception(*ei)
    if len(lines) <= self.max_frames + 1:
      return "".join(lines)
    return "".join([lines[0], "    ...\n", *lines[-self.max_frames :]])


def _file_handler(settings: Settings) -> tuple[logging.Handler, Path]:
  log_dir = Path(settings.log_dir).expanduser().resolve()
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Cannot create log directory {log_dir}: {exc}") from exc

  log_path = log_dir / LOG_FILE_NAME
  handler = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count, delay=False)
  handler.setFormatter(logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  return handler, log_path


def setup_logging(settings: Settings) -> Path:
  """Send application and server logs to stdout and a rotating file."""
  stream_handler = logging.StreamHandler(sys.stdout)
  stream_handler.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  file_handler, log_path = _file_handler(settings)
  handlers: list[logging.Handler] = [stream_handler, file_handler]

  level = logging.DEBUG if settings.debug else logging.INFO
  logging.basicConfig(level=level, handlers=handlers, force=True)

  for name, floor in _ROUTED_LOGGERS.items():
    routed = logging.getLogger(name)
    routed.handlers = list(handlers)
    routed.propagate = False
    if floor is not None:
      routed.setLevel(max(floor, level))
  return log_path


def _initialize_logging(settings: Settings) -> None:
  """Configure logging on first call; later calls are no-ops."""
  global _log_file_path
  if _log_file_path is not None:
    return
  _log_file_path = setup_logging(settings)
  logging.getLogger("reflect.core.logging").info("Logging initialized (level=%s, file=%s)", "DEBUG" if settings.debug else "INFO", _log_file_path)
