"""Request and ParsedRequest — the inbound text and its external parse.

A Request is what the user typed, frozen at submission.  A ParsedRequest
is what the text-understanding provider made of it.  The core never
re-derives a parse; it only reads one.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from clarity_loop.domain.enums import EntityCategory, TokenCategory
from clarity_loop.foundation.clock import utc_now
from clarity_loop.foundation.identifiers import new_id


class Request(BaseModel):
    """One user submission.  Immutable after creation."""

    id: str = Field(default_factory=new_id)
    raw_text: str = Field(..., min_length=1)
    submitted_at: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}


# ── Parse contract ───────────────────────────────────────────────────────────

class Token(BaseModel):
    text: str = Field(..., min_length=1, max_length=256)
    category: TokenCategory
    position: int = Field(..., ge=0)

    model_config = {"frozen": True}


class Entity(BaseModel):
    """A named thing the request talks about, with an optional inline definition."""

    name: str = Field(..., min_length=1, max_length=128)
    category: EntityCategory
    definition: Optional[str] = Field(default=None, max_length=512)

    model_config = {"frozen": True}

    @field_validator("name")
    @classmethod
    def name_is_lowercase(cls, v: str) -> str:
        return v.strip().lower()


class ParsedRequest(BaseModel):
    """Output of a text-understanding provider.

    ``degraded`` marks a parse that carries no usable signal; the analyzer
    then falls back to heuristics over ``raw_text``.
    """

    tokens: list[Token] = Field(default_factory=list)
    entities: list[Entity] = Field(default_factory=list)
    intent: str = ""
    raw_text: str = ""
    degraded: bool = False

    model_config = {"frozen": True}

    @field_validator("entities")
    @classmethod
    def entities_unique_by_name(cls, v: list[Entity]) -> list[Entity]:
        seen: dict[str, Entity] = {}
        for entity in v:
            # An inline definition wins over a bare mention
            if entity.name not in seen or (entity.definition and not seen[entity.name].definition):
                seen[entity.name] = entity
        return list(seen.values())

    @classmethod
    def degraded_from(cls, raw_text: str) -> "ParsedRequest":
        return cls(raw_text=raw_text, degraded=True)

    @property
    def is_empty(self) -> bool:
        return not self.tokens and not self.entities

    @property
    def low_confidence(self) -> bool:
        return self.degraded or self.is_empty

    def tokens_of(self, category: TokenCategory) -> list[Token]:
        return [t for t in self.tokens if t.category == category]

    def goal_names(self) -> list[str]:
        """Goal token texts in order of appearance, de-duplicated."""
        names: list[str] = []
        for tok in sorted(self.tokens_of(TokenCategory.GOAL), key=lambda t: t.position):
            name = tok.text.lower()
            if name not in names:
                names.append(name)
        return names

    def entity(self, name: str) -> Optional[Entity]:
        name = name.lower()
        return next((e for e in self.entities if e.name == name), None)


def merge_parses(parses: list[ParsedRequest]) -> ParsedRequest:
    """Fold several parses into one cumulative view of the conversation.

    Token positions are offset per parse so ordering is preserved.  The
    intent of the first non-empty parse is kept.
    """
    tokens: list[Token] = []
    entities: list[Entity] = []
    offset = 0
    intent = ""
    texts: list[str] = []
    for parsed in parses:
        for tok in parsed.tokens:
            tokens.append(tok.model_copy(update={"position": tok.position + offset}))
        offset += max((t.position for t in parsed.tokens), default=-1) + 1
        entities.extend(parsed.entities)
        intent = intent or parsed.intent
        if parsed.raw_text:
            texts.append(parsed.raw_text)
    return ParsedRequest(
        tokens=tokens,
        entities=entities,
        intent=intent,
        raw_text="\n".join(texts),
        degraded=bool(parses) and all(p.low_confidence for p in parses),
    )
