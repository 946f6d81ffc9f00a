"""Content generation collaborator used by job handlers."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

from google import genai
from google.genai import types

from reflect.ai.backoff import retry_with_backoff

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*\n(?P<body>.*?)\n?\s*```\s*$", re.DOTALL)


@dataclass(frozen=True)
class GeneratedContent:
  text: str
  usage: dict[str, Any] | None = None


class ContentGenerator(Protocol):
  """Opaque text generator; may be slow and may fail transiently."""

  async def generate(self, prompt: str, *, temperature: float = 0.7, max_tokens: int = 2000) -> GeneratedContent:
    """Generate text for a prompt."""


def strip_markdown_fences(text: str) -> str:
  """Remove a single surrounding ```markdown fence if the model added one."""
  match = _FENCE_RE.match(text)
  if match is None:
    return text.strip()
  return match.group("body").strip()


class GeminiContentGenerator:
  """Gemini-backed generator using the async google-genai client."""

  def __init__(self, model: str, api_key: str | None) -> None:
    if not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")
    self.model = model
    self._client = genai.Client(api_key=api_key)

  async def generate(self, prompt: str, *, temperature: float = 0.7, max_tokens: int = 2000) -> GeneratedContent:
    config = types.GenerateContentConfig(temperature=temperature, max_output_tokens=max_tokens)
    # Use the async client to avoid blocking the asyncio event loop.
    response = await retry_with_backoff(self._client.aio.models.generate_content, model=self.model, contents=prompt, config=config)
    text = response.text or ""
    if not text.strip():
      raise RuntimeError("Gemini returned an empty response")

    usage = None
    if response.usage_metadata:
      usage = {"prompt_tokens": response.usage_metadata.prompt_token_count, "completion_tokens": response.usage_metadata.candidates_token_count, "total_tokens": response.usage_metadata.total_token_count}
    logger.debug("Gemini response model=%s chars=%d usage=%s", self.model, len(text), usage)
    return GeneratedContent(text=text, usage=usage)


class UnconfiguredContentGenerator:
  """Placeholder used when no provider key is configured; every call fails."""

  async def generate(self, prompt: str, *, temperature: float = 0.7, max_tokens: int = 2000) -> GeneratedContent:
    raise RuntimeError("Content generation is not configured (GEMINI_API_KEY is missing).")


def build_content_generator(model: str, api_key: str | None) -> ContentGenerator:
  """Return the Gemini generator, or a failing placeholder when no key is configured."""
  if not api_key:
    logger.warning("GEMINI_API_KEY not set; content generation jobs will fail.")
    return UnconfiguredContentGenerator()
  return GeminiContentGenerator(model, api_key)
