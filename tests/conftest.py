"""Shared fixtures: in-memory data store, scripted generator and a fixed clock."""

from __future__ import annotations

import datetime
import os
import sys
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

os.environ.setdefault("REFLECT_JOB_PROCESSOR", "in-memory")
os.environ.setdefault("REFLECT_LOCAL_QUEUE_DELAY_SECONDS", "0")
os.environ.setdefault("REFLECT_INTERNAL_API_KEY", "test-internal-key")
os.environ.setdefault("REFLECT_JOB_TIMEOUT_SECONDS", "0")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from reflect.ai.generation import GeneratedContent  # noqa: E402
from reflect.config import Settings, get_settings  # noqa: E402
from reflect.jobs.models import IN_FLIGHT_STATUSES, AsyncOperationRecord, OperationStatus  # noqa: E402
from reflect.storage.factory import DataStore  # noqa: E402
from reflect.storage.snippets_repo import SnippetRecord  # noqa: E402
from reflect.storage.users_repo import UserProfileRecord  # noqa: E402

DEFAULT_REFLECTION = "## Done\n- Shipped the billing migration\n\n## Next\n- Roll out to EU customers\n\n## Notes\n- Pairing helped"


class InMemoryOperationsRepo:
  def __init__(self) -> None:
    self.records: dict[str, AsyncOperationRecord] = {}
    self.updates: list[tuple[str, dict[str, Any]]] = []

  async def create_operation(self, record: AsyncOperationRecord) -> AsyncOperationRecord:
    stored = replace(record, metadata=dict(record.metadata))
    self.records[record.id] = stored
    return stored

  async def get_operation(self, operation_id: str, *, user_id: str | None = None) -> AsyncOperationRecord | None:
    record = self.records.get(operation_id)
    if record is None or (user_id is not None and record.user_id != user_id):
      return None
    return record

  async def update_operation(self, operation_id: str, *, status=None, progress=None, result_data=None, error_message=None, started_at=None, completed_at=None, metadata=None) -> AsyncOperationRecord | None:
    record = self.records.get(operation_id)
    if record is None:
      return None
    fields = {"status": status, "progress": progress, "result_data": result_data, "error_message": error_message, "started_at": started_at, "completed_at": completed_at}
    changes = {key: value for key, value in fields.items() if value is not None}
    if metadata:
      changes["metadata"] = {**record.metadata, **metadata}
    self.records[operation_id] = replace(record, **changes)
    self.updates.append((operation_id, changes))
    return self.records[operation_id]

  def _apply(self, operation_id: str, changes: dict[str, Any]) -> AsyncOperationRecord:
    self.records[operation_id] = replace(self.records[operation_id], **changes)
    self.updates.append((operation_id, changes))
    return self.records[operation_id]

  async def claim_operation(self, operation_id: str, *, user_id: str, started_at: datetime.datetime) -> AsyncOperationRecord | None:
    record = self.records.get(operation_id)
    if record is None or record.user_id != user_id or record.status != OperationStatus.QUEUED:
      return None
    return self._apply(operation_id, {"status": OperationStatus.PROCESSING, "progress": 0, "started_at": started_at})

  async def finish_operation(self, operation_id: str, *, status: OperationStatus, expected_status: OperationStatus, completed_at: datetime.datetime, result_data=None, error_message: str | None = None) -> AsyncOperationRecord | None:
    record = self.records.get(operation_id)
    if record is None or record.status != expected_status:
      return None
    if status == OperationStatus.COMPLETED:
      return self._apply(operation_id, {"status": status, "progress": 100, "result_data": result_data, "error_message": None, "completed_at": completed_at})
    return self._apply(operation_id, {"status": status, "result_data": None, "error_message": error_message, "completed_at": completed_at})

  async def list_operations(self, user_id: str, *, operation_type: str | None = None, status: OperationStatus | None = None, limit: int = 10) -> list[AsyncOperationRecord]:
    matches = [
      record
      for record in self.records.values()
      if record.user_id == user_id and (operation_type is None or record.operation_type == operation_type) and (status is None or record.status == status)
    ]
    matches.sort(key=lambda record: record.created_at, reverse=True)
    return matches[:limit]

  async def find_in_flight(self, user_id: str, operation_type: str) -> AsyncOperationRecord | None:
    for record in self.records.values():
      if record.user_id == user_id and record.operation_type == operation_type and record.status in IN_FLIGHT_STATUSES:
        return record
    return None

  def progress_history(self, operation_id: str) -> list[int]:
    return [changes["progress"] for op_id, changes in self.updates if op_id == operation_id and "progress" in changes]


class InMemoryUsersRepo:
  def __init__(self) -> None:
    self.users: dict[str, UserProfileRecord] = {}
    self.firebase_uids: dict[str, str] = {}

  def add(self, user: UserProfileRecord, *, firebase_uid: str | None = None) -> UserProfileRecord:
    self.users[user.id] = user
    if firebase_uid:
      self.firebase_uids[firebase_uid] = user.id
    return user

  async def get_user(self, user_id: str) -> UserProfileRecord | None:
    return self.users.get(user_id)

  async def get_user_by_firebase_uid(self, firebase_uid: str) -> UserProfileRecord | None:
    user_id = self.firebase_uids.get(firebase_uid)
    return self.users.get(user_id) if user_id else None

  async def list_auto_generate_users(self, *, limit: int, offset: int = 0) -> list[UserProfileRecord]:
    eligible = [user for user in self.users.values() if (user.reflection_preferences or {}).get("autoGenerate") is not False]
    return eligible[offset : offset + limit]

  async def get_reflection_preferences(self, user_id: str) -> dict[str, Any] | None:
    user = self.users.get(user_id)
    return user.reflection_preferences if user else None

  async def update_reflection_preferences(self, user_id: str, preferences: dict[str, Any]) -> UserProfileRecord | None:
    user = self.users.get(user_id)
    if user is None:
      return None
    self.users[user_id] = replace(user, reflection_preferences=dict(preferences))
    return self.users[user_id]

  async def store_career_plan(self, user_id: str, *, current_level_plan: str, next_level_expectations: str, generated_at: datetime.datetime) -> None:
    user = self.users.get(user_id)
    if user is None:
      raise ValueError(f"User {user_id} not found")
    self.users[user_id] = replace(user, career_progression_plan=current_level_plan, next_level_expectations=next_level_expectations, career_plan_generated_at=generated_at)


class InMemorySnippetsRepo:
  def __init__(self) -> None:
    self.snippets: list[SnippetRecord] = []

  async def get_snippet_for_week(self, user_id: str, *, year: int, week_number: int) -> SnippetRecord | None:
    for snippet in self.snippets:
      if snippet.user_id == user_id and snippet.year == year and snippet.week_number == week_number:
        return snippet
    return None

  async def list_snippets_in_range(self, user_id: str, *, start: datetime.date, end: datetime.date) -> list[SnippetRecord]:
    matches = [snippet for snippet in self.snippets if snippet.user_id == user_id and start <= snippet.start_date <= end]
    return sorted(matches, key=lambda snippet: snippet.start_date)

  async def list_recent_snippets(self, user_id: str, *, limit: int = 4) -> list[SnippetRecord]:
    matches = [snippet for snippet in self.snippets if snippet.user_id == user_id]
    return sorted(matches, key=lambda snippet: snippet.start_date, reverse=True)[:limit]

  async def create_snippet(self, record: SnippetRecord) -> SnippetRecord:
    if await self.get_snippet_for_week(record.user_id, year=record.year, week_number=record.week_number) is not None:
      raise ValueError("Snippet already exists for this week")
    self.snippets.append(record)
    return record


class InMemoryStoreScope:
  """Scope factory handing out one shared in-memory store and counting acquisitions."""

  def __init__(self) -> None:
    self.operations = InMemoryOperationsRepo()
    self.users = InMemoryUsersRepo()
    self.snippets = InMemorySnippetsRepo()
    self.store = DataStore(operations=self.operations, users=self.users, snippets=self.snippets)
    self.acquired = 0
    self.released = 0

  @property
  def active(self) -> int:
    return self.acquired - self.released

  @asynccontextmanager
  async def __call__(self) -> AsyncIterator[DataStore]:
    self.acquired += 1
    try:
      yield self.store
    finally:
      self.released += 1


class ScriptedContentGenerator:
  """Returns queued responses in order, then a default reflection."""

  def __init__(self, responses: list[str] | None = None, *, error: Exception | None = None) -> None:
    self.responses = list(responses or [])
    self.error = error
    self.prompts: list[str] = []

  async def generate(self, prompt: str, *, temperature: float = 0.7, max_tokens: int = 2000) -> GeneratedContent:
    self.prompts.append(prompt)
    if self.error is not None:
      raise self.error
    text = self.responses.pop(0) if self.responses else DEFAULT_REFLECTION
    return GeneratedContent(text=text, usage={"total_tokens": 42})


class FixedClock:
  def __init__(self, now: datetime.datetime) -> None:
    self.now = now

  def __call__(self) -> datetime.datetime:
    return self.now

  def advance(self, **kwargs: float) -> None:
    self.now = self.now + datetime.timedelta(**kwargs)


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def store_scope() -> InMemoryStoreScope:
  return InMemoryStoreScope()


@pytest.fixture
def generator() -> ScriptedContentGenerator:
  return ScriptedContentGenerator()


@pytest.fixture
def clock() -> FixedClock:
  # Friday 2024-03-08 19:00 UTC is 14:00 in New York (EST).
  return FixedClock(datetime.datetime(2024, 3, 8, 19, 0, tzinfo=datetime.UTC))


@pytest.fixture
def make_user(store_scope: InMemoryStoreScope) -> Callable[..., UserProfileRecord]:
  def _make_user(user_id: str = "user-1", *, firebase_uid: str | None = None, preferences: dict[str, Any] | None = None, **fields: Any) -> UserProfileRecord:
    fields.setdefault("email", f"{user_id}@example.com")
    fields.setdefault("job_title", "Software Engineer")
    fields.setdefault("seniority_level", "Senior")
    return store_scope.users.add(UserProfileRecord(id=user_id, reflection_preferences=preferences, **fields), firebase_uid=firebase_uid)

  return _make_user


@pytest.fixture
def make_operation(store_scope: InMemoryStoreScope, clock: FixedClock) -> Callable[..., AsyncOperationRecord]:
  def _make_operation(operation_id: str = "op-1", *, user_id: str = "user-1", operation_type: str = "career_plan_generation", status: OperationStatus = OperationStatus.QUEUED, **fields: Any) -> AsyncOperationRecord:
    record = AsyncOperationRecord(id=operation_id, user_id=user_id, operation_type=operation_type, status=status, created_at=clock(), **fields)
    store_scope.operations.records[operation_id] = record
    return record

  return _make_operation


@pytest.fixture
def settings() -> Settings:
  get_settings.cache_clear()
  loaded = get_settings()
  get_settings.cache_clear()
  return replace(loaded, local_queue_delay_seconds=0, job_timeout_seconds=0, scheduler_enabled=False, internal_api_key="test-internal-key")


@pytest.fixture
async def app_runtime(anyio_backend, settings, store_scope, generator, clock):
  from reflect.jobs.runtime import build_job_runtime

  runtime = build_job_runtime(settings, store_scope=store_scope, generator=generator, clock=clock)
  yield runtime
  await runtime.shutdown()


@pytest.fixture
async def async_client(app_runtime, settings, make_user):
  from reflect.core.security import get_current_user
  from reflect.main import app

  current_user = make_user("user-1", firebase_uid="firebase-user-1")
  app.state.jobs = app_runtime
  app.dependency_overrides[get_settings] = lambda: settings
  app.dependency_overrides[get_current_user] = lambda: current_user
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
  del app.state.jobs


@pytest.fixture
def internal_headers() -> dict[str, str]:
  return {"authorization": "Bearer test-internal-key"}
