"""KeywordProvider — deterministic, table-driven text understanding.

Recognises the vocabulary in the knowledge tables: goal words, vague
qualifiers, technical and metric terms, clauses that address constraint
categories, and inline definitions ("fair means equal exposure").  It has
no notion of grammar; anything outside the tables is ignored.
"""

from __future__ import annotations

import re

from clarity_loop.domain.enums import EntityCategory, TokenCategory
from clarity_loop.domain.request import Entity, ParsedRequest, Token
from clarity_loop.knowledge.matching import find_keywords, split_clauses
from clarity_loop.knowledge.tables import KnowledgeTables, default_tables
from clarity_loop.providers.base import TextUnderstandingProvider

_WORD = re.compile(r"[a-z0-9%][a-z0-9%'-]*")
_INLINE_DEFINITIONS = (
    re.compile(r"\b([a-z][a-z-]*)\s+(?:means|meaning|is defined as|refers to)\s+([^.;\n]+)"),
    re.compile(r"\bby\s+([a-z][a-z-]*)\s+i\s+mean\s+([^.;\n]+)"),
)


class KeywordProvider(TextUnderstandingProvider):
    """Maps raw text to a ParsedRequest using the knowledge tables."""

    def __init__(self, tables: KnowledgeTables | None = None) -> None:
        self._tables = tables or default_tables()

    @property
    def name(self) -> str:
        return "keyword"

    def parse(self, raw_text: str) -> ParsedRequest:
        text = raw_text.strip()
        if not text:
            raise ValueError("cannot parse empty text")
        lowered = text.lower()
        t = self._tables

        tokens: list[Token] = []
        entities: list[Entity] = []
        definitions = self._inline_definitions(lowered)

        # ── Word-level tokens ────────────────────────────────────────────
        for position, match in enumerate(_WORD.finditer(lowered)):
            word = match.group(0).strip("'-")
            if word in t.goal_terms:
                tokens.append(Token(text=word, category=TokenCategory.GOAL, position=position))
                entities.append(Entity(name=word, category=EntityCategory.DOMAIN_CONCEPT,
                                       definition=definitions.get(word)))
            elif word in t.vague_terms:
                tokens.append(Token(text=word, category=TokenCategory.MODIFIER, position=position))
                entities.append(Entity(name=word, category=EntityCategory.DOMAIN_CONCEPT,
                                       definition=definitions.get(word)))
            elif word in t.technical_terms:
                tokens.append(Token(text=word, category=TokenCategory.TERM, position=position))
                entities.append(Entity(name=word, category=EntityCategory.TECHNICAL_TERM,
                                       definition=definitions.get(word)))
            elif word in t.metric_terms:
                tokens.append(Token(text=word, category=TokenCategory.TERM, position=position))
                entities.append(Entity(name=word, category=EntityCategory.METRIC,
                                       definition=definitions.get(word)))

        # ── Clause-level constraint tokens ───────────────────────────────
        offset = max((tok.position for tok in tokens), default=-1) + 1
        for i, clause in enumerate(split_clauses(lowered)):
            if self._addresses_constraint(clause):
                tokens.append(Token(text=clause, category=TokenCategory.CONSTRAINT,
                                    position=offset + i))

        # ── Defined terms the vocabulary did not already cover ───────────
        known = {e.name for e in entities}
        for term, definition in definitions.items():
            if term not in known:
                entities.append(Entity(name=term, category=EntityCategory.DOMAIN_CONCEPT,
                                       definition=definition))

        clauses = split_clauses(text)
        return ParsedRequest(
            tokens=tokens,
            entities=entities,
            intent=clauses[0] if clauses else text,
            raw_text=text,
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    def _addresses_constraint(self, clause: str) -> bool:
        t = self._tables
        return any(
            find_keywords(clause, t.constraint_keywords.get(cat, []))
            or find_keywords(clause, t.vague_constraint_keywords.get(cat, []))
            or find_keywords(clause, t.counted_constraint_keywords.get(cat, []))
            for cat in t.required_categories
        )

    @staticmethod
    def _inline_definitions(lowered: str) -> dict[str, str]:
        found: dict[str, str] = {}
        for pattern in _INLINE_DEFINITIONS:
            for m in pattern.finditer(lowered):
                found.setdefault(m.group(1), m.group(2).strip())
        return found
