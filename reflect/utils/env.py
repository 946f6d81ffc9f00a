"""Minimal `.env` support for local runs; real deployments set the environment directly."""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from pathlib import Path

_QUOTES = ("'", '"')


def default_env_path() -> Path:
  return Path(__file__).resolve().parents[2] / ".env"


def parse_env_lines(lines: Iterable[str]) -> Iterator[tuple[str, str]]:
  """Yield KEY=value pairs, skipping comments, blanks and malformed lines."""
  for raw in lines:
    line = raw.strip()
    if not line or line.startswith("#"):
      continue
    line = line.removeprefix("export ").lstrip()
    key, sep, value = line.partition("=")
    key, value = key.strip(), value.strip()
    if not sep or not key:
      continue
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
      value = value[1:-1]
    yield key, value


def load_env_file(path: Path, *, override: bool = False) -> int:
  """Copy values from `path` into os.environ; returns how many were applied."""
  if not path.is_file():
    return 0

  applied = 0
  for key, value in parse_env_lines(path.read_text(encoding="utf-8").splitlines()):
    if override or key not in os.environ:
      os.environ[key] = value
      applied += 1
  return applied
