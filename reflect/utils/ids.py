"""Identifier utilities."""

from __future__ import annotations

import uuid


def generate_operation_id() -> str:
  """Return a new async operation identifier."""
  return str(uuid.uuid4())


def generate_snippet_id() -> str:
  """Return a new weekly snippet identifier."""
  return str(uuid.uuid4())
