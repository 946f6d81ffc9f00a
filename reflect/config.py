"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from reflect.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

JOB_PROCESSOR_IN_MEMORY = "in-memory"
JOB_PROCESSOR_CLOUD_TASKS = "cloud-tasks"
_JOB_PROCESSORS = {JOB_PROCESSOR_IN_MEMORY, JOB_PROCESSOR_CLOUD_TASKS}
_TASK_CALLBACK_MODES = {"sync", "async"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the reflection service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  job_processor: str
  local_queue_delay_seconds: float
  job_timeout_seconds: int
  base_url: str | None
  internal_api_key: str | None
  gcp_project_id: str | None
  gcp_location: str
  cloud_tasks_queue: str
  cloud_tasks_default_delay_seconds: int
  cloud_tasks_service_account: str | None
  task_callback_mode: str
  scheduler_enabled: bool
  scheduler_cron: str
  scheduler_batch_size: int
  gemini_api_key: str | None
  gemini_model: str
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None

  @property
  def cloud_tasks_queue_path(self) -> str | None:
    """Return the fully qualified Cloud Tasks queue path when a project is configured."""
    if not self.gcp_project_id:
      return None
    return f"projects/{self.gcp_project_id}/locations/{self.gcp_location}/queues/{self.cloud_tasks_queue}"


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ("http://localhost:3000",)

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("REFLECT_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("REFLECT_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _non_negative_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value < 0:
    raise ValueError(f"{name} must be zero or a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("REFLECT_ENV", "development").strip().lower()
  debug = _parse_bool(os.getenv("REFLECT_DEBUG"))

  log_max_bytes = _positive_int("REFLECT_LOG_MAX_BYTES", "5242880")
  log_backup_count = _non_negative_int("REFLECT_LOG_BACKUP_COUNT", "10")

  job_processor = (os.getenv("REFLECT_JOB_PROCESSOR") or JOB_PROCESSOR_IN_MEMORY).strip().lower()
  if job_processor not in _JOB_PROCESSORS:
    raise ValueError(f"REFLECT_JOB_PROCESSOR must be one of {sorted(_JOB_PROCESSORS)}.")

  local_queue_delay_seconds = float(os.getenv("REFLECT_LOCAL_QUEUE_DELAY_SECONDS", "0.5"))
  if local_queue_delay_seconds < 0:
    raise ValueError("REFLECT_LOCAL_QUEUE_DELAY_SECONDS must not be negative.")

  # Zero disables the per-job timeout entirely.
  job_timeout_seconds = _non_negative_int("REFLECT_JOB_TIMEOUT_SECONDS", "600")

  task_callback_mode = (os.getenv("REFLECT_TASK_CALLBACK_MODE") or "sync").strip().lower()
  if task_callback_mode not in _TASK_CALLBACK_MODES:
    raise ValueError(f"REFLECT_TASK_CALLBACK_MODE must be one of {sorted(_TASK_CALLBACK_MODES)}.")

  base_url = _optional_str(os.getenv("REFLECT_BASE_URL"))
  internal_api_key = _optional_str(os.getenv("REFLECT_INTERNAL_API_KEY"))
  gcp_project_id = _optional_str(os.getenv("GCP_PROJECT_ID"))

  # Durable dispatch cannot build callback tasks without these values.
  if job_processor == JOB_PROCESSOR_CLOUD_TASKS:
    if not gcp_project_id:
      raise ValueError("GCP_PROJECT_ID must be set when REFLECT_JOB_PROCESSOR=cloud-tasks.")

    if not base_url:
      raise ValueError("REFLECT_BASE_URL must be set when REFLECT_JOB_PROCESSOR=cloud-tasks.")

    if not internal_api_key:
      raise ValueError("REFLECT_INTERNAL_API_KEY must be set when REFLECT_JOB_PROCESSOR=cloud-tasks.")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("REFLECT_ALLOWED_ORIGINS")),
    log_dir=(os.getenv("REFLECT_LOG_DIR") or "./logs").strip(),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("REFLECT_LOG_HTTP_4XX")),
    pg_dsn=os.getenv("REFLECT_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_positive_int("REFLECT_PG_CONNECT_TIMEOUT", "5"),
    job_processor=job_processor,
    local_queue_delay_seconds=local_queue_delay_seconds,
    job_timeout_seconds=job_timeout_seconds,
    base_url=base_url,
    internal_api_key=internal_api_key,
    gcp_project_id=gcp_project_id,
    gcp_location=(os.getenv("GCP_LOCATION") or "us-central1").strip(),
    cloud_tasks_queue=(os.getenv("REFLECT_CLOUD_TASKS_QUEUE") or "job-queue").strip(),
    cloud_tasks_default_delay_seconds=_non_negative_int("REFLECT_CLOUD_TASKS_DEFAULT_DELAY_SECONDS", "5"),
    cloud_tasks_service_account=_optional_str(os.getenv("REFLECT_CLOUD_TASKS_SERVICE_ACCOUNT")),
    task_callback_mode=task_callback_mode,
    scheduler_enabled=_parse_bool(os.getenv("REFLECT_SCHEDULER_ENABLED")),
    scheduler_cron=(os.getenv("REFLECT_SCHEDULER_CRON") or "0 * * * *").strip(),
    scheduler_batch_size=_positive_int("REFLECT_SCHEDULER_BATCH_SIZE", "500"),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    gemini_model=(os.getenv("REFLECT_GEMINI_MODEL") or "gemini-2.0-flash").strip(),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration."""
  # Keep database configuration isolated so migrations don't require unrelated env vars.
  pg_connect_timeout = int(os.getenv("REFLECT_PG_CONNECT_TIMEOUT", "5"))
  if pg_connect_timeout <= 0:
    raise ValueError("REFLECT_PG_CONNECT_TIMEOUT must be a positive integer.")

  pg_dsn = os.getenv("REFLECT_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=_parse_bool(os.getenv("REFLECT_DEBUG")), pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)
