import asyncio
import logging
import sys
from logging.config import fileConfig
from pathlib import Path
from time import perf_counter

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

config = context.config
if config.config_file_name is not None:
  fileConfig(config.config_file_name)

# Importing the table module registers users, weekly_snippets and async_operations on Base.metadata.
import reflect.schema.sql  # noqa: E402, F401
from reflect.core.database import DATABASE_URL, Base  # noqa: E402

target_metadata = Base.metadata
logger = logging.getLogger("reflect.migrations")


class _RevisionTimer:
  """Logs how long each applied revision took."""

  def __init__(self) -> None:
    self.started = perf_counter()

  def __call__(self, *, ctx: object, step: object, heads: set[str], run_args: dict[str, object]) -> None:
    revision = getattr(step, "up_revision_id", None) or "unknown"
    logger.info("Applied %s in %.3fs", revision, perf_counter() - self.started)
    self.started = perf_counter()


def _database_url() -> str:
  if not DATABASE_URL:
    raise RuntimeError("Set REFLECT_PG_DSN or DATABASE_URL before running migrations.")
  return DATABASE_URL


def _configure(**kwargs: object) -> None:
  context.configure(target_metadata=target_metadata, compare_type=True, on_version_apply=_RevisionTimer(), **kwargs)


def run_migrations_offline() -> None:
  _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
  with context.begin_transaction():
    context.run_migrations()


def _run_on_connection(connection: Connection) -> None:
  _configure(connection=connection)
  migration_context = context.get_context()
  logger.info("Migrating from %s", migration_context.get_current_revision() or "base")
  with context.begin_transaction():
    context.run_migrations()
  logger.info("Database now at %s", ", ".join(migration_context.get_current_heads()) or "base")


async def run_migrations_online() -> None:
  section = config.get_section(config.config_ini_section) or {}
  section["sqlalchemy.url"] = _database_url()
  engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
  try:
    async with engine.connect() as connection:
      await connection.run_sync(_run_on_connection)
  finally:
    await engine.dispose()


if context.is_offline_mode():
  run_migrations_offline()
else:
  asyncio.run(run_migrations_online())
