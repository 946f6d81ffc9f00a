from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from reflect.config import get_database_settings

_ASYNC_SCHEMES = (("postgresql://", "postgresql+asyncpg://"), ("postgres://", "postgresql+asyncpg://"))


class Base(DeclarativeBase):
  pass


engine: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None


def to_async_url(dsn: str | None) -> str | None:
  """Point a plain Postgres DSN at the asyncpg driver."""
  if not dsn:
    return None
  for prefix, replacement in _ASYNC_SCHEMES:
    if dsn.startswith(prefix):
      return replacement + dsn[len(prefix) :]
  return dsn


DATABASE_URL = to_async_url(get_database_settings().pg_dsn)


def get_db_engine() -> AsyncEngine | None:
  """Create the shared engine on first use; None when no DSN is configured."""
  global engine
  if engine is not None:
    return engine
  settings = get_database_settings()
  url = to_async_url(settings.pg_dsn)
  if url:
    engine = create_async_engine(url, echo=settings.debug, pool_pre_ping=True, connect_args={"timeout": settings.pg_connect_timeout})
  return engine


def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
  global SessionLocal
  if SessionLocal is None and (db_engine := get_db_engine()) is not None:
    SessionLocal = async_sessionmaker(bind=db_engine, expire_on_commit=False, class_=AsyncSession)
  return SessionLocal


async def dispose_engine() -> None:
  """Close pooled connections on shutdown."""
  global engine, SessionLocal
  if engine is not None:
    await engine.dispose()
  engine = None
  SessionLocal = None
