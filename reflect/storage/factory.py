"""Factory helpers for the scoped data store used by jobs and routes."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass

from reflect.core.database import get_session_factory
from reflect.storage.operations_repo import OperationsRepository
from reflect.storage.postgres_operations_repo import PostgresOperationsRepository
from reflect.storage.postgres_snippets_repo import PostgresSnippetsRepository
from reflect.storage.postgres_users_repo import PostgresUsersRepository
from reflect.storage.snippets_repo import SnippetsRepository
from reflect.storage.users_repo import UsersRepository


@dataclass(frozen=True)
class DataStore:
  """Repositories bound to one acquired connection."""

  operations: OperationsRepository
  users: UsersRepository
  snippets: SnippetsRepository


DataStoreScope = Callable[[], AbstractAsyncContextManager[DataStore]]


@asynccontextmanager
async def data_store_scope() -> AsyncIterator[DataStore]:
  """Acquire a session-bound data store and release it on every exit path."""
  session_factory = get_session_factory()
  if session_factory is None:
    raise ValueError("REFLECT_PG_DSN must be set to enable Postgres persistence.")

  async with session_factory() as session:
    try:
      yield DataStore(operations=PostgresOperationsRepository(session), users=PostgresUsersRepository(session), snippets=PostgresSnippetsRepository(session))
    except BaseException:
      await session.rollback()
      raise
