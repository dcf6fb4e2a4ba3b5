"""GeminiProvider — LLM-backed text understanding via langchain-google-genai.

The LLM only extracts structure; it never judges clarity.  Its JSON output
is validated against the ParsedRequest contract at the boundary, so a
malformed answer is a ValueError and never a half-built parse.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable

from pydantic import ValidationError

from clarity_loop.config import settings
from clarity_loop.domain.request import ParsedRequest
from clarity_loop.providers.base import TextUnderstandingProvider

logger = logging.getLogger(__name__)

LLMFactory = Callable[[], Any]  # Returns a langchain BaseChatModel

_PARSE_PROMPT = """You extract structure from a software request. Do not judge it.

Request:
\"\"\"{text}\"\"\"

Respond with ONLY a JSON object with these keys:
- "tokens": list of {{"text": str, "category": "term"|"constraint"|"goal"|"modifier", "position": int}}
   "goal" = an objective (e.g. engagement, quality); "modifier" = an unquantified
   qualifier (e.g. fair, good); "constraint" = a clause stating a limit or target
   (latency, scale, scope, accuracy); "term" = a technical noun.
- "entities": list of {{"name": str, "category": "technical_term"|"domain_concept"|"metric",
   "definition": str or null}} — set "definition" ONLY when the user defined the word inline.
- "intent": one short sentence restating what the user wants built.

RESPOND WITH ONLY THE JSON OBJECT. No markdown, no explanation."""


def default_llm_factory():
    """Create a Gemini chat model from environment config."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    api_key = os.environ.get("GOOGLE_API_KEY") or os.environ.get("CLARITY_GEMINI_API_KEY")
    if not api_key:
        raise RuntimeError(
            "Gemini API key not found. Set GOOGLE_API_KEY or CLARITY_GEMINI_API_KEY "
            "in your environment variables."
        )

    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=api_key,
        temperature=settings.gemini_temperature,
        max_output_tokens=settings.gemini_max_output_tokens,
    )


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
        text = "\n".join(lines).strip()
    return text


class GeminiProvider(TextUnderstandingProvider):
    """Parses requests with a chat model returning the ParsedRequest JSON shape."""

    def __init__(self, llm_factory: LLMFactory | None = None) -> None:
        self._llm_factory = llm_factory or default_llm_factory

    @property
    def name(self) -> str:
        return "gemini"

    def parse(self, raw_text: str) -> ParsedRequest:
        llm = self._llm_factory()
        response = llm.invoke(_PARSE_PROMPT.format(text=raw_text))
        content = response.content if hasattr(response, "content") else str(response)
        logger.debug("Gemini parse response length: %d chars", len(content))

        try:
            raw = json.loads(_strip_fences(content))
            if not isinstance(raw, dict):
                raise ValueError("expected a JSON object")
            raw["raw_text"] = raw_text
            raw["entities"] = [
                {**e, "name": str(e.get("name", "")).lower()} for e in raw.get("entities", [])
            ]
            return ParsedRequest.model_validate(raw)
        except (json.JSONDecodeError, ValidationError, TypeError, AttributeError) as exc:
            raise ValueError(f"unusable parse response: {exc}") from exc
