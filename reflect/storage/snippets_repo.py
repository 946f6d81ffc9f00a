"""Storage interface for weekly snippets (reflections)."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class SnippetRecord:
  """A weekly snippet keyed by (user, ISO year, ISO week)."""

  id: str
  user_id: str
  year: int
  week_number: int
  start_date: datetime.date
  end_date: datetime.date
  content: str
  ai_suggestions: dict[str, Any] | None = field(default=None, hash=False)


class SnippetsRepository(Protocol):
  """Repository contract for weekly snippet persistence."""

  async def get_snippet_for_week(self, user_id: str, *, year: int, week_number: int) -> SnippetRecord | None:
    """Return the snippet for an ISO week, if present."""

  async def list_snippets_in_range(self, user_id: str, *, start: datetime.date, end: datetime.date) -> list[SnippetRecord]:
    """Return snippets whose start date falls within [start, end], oldest first."""

  async def list_recent_snippets(self, user_id: str, *, limit: int = 4) -> list[SnippetRecord]:
    """Return the newest snippets for a user."""

  async def create_snippet(self, record: SnippetRecord) -> SnippetRecord:
    """Persist a new snippet."""
