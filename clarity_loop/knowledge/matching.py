"""Keyword matching shared by the analyzer and the response resolver.

Both sides MUST agree on what "covers" a constraint category, so the
coverage rules live here and nowhere else.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable

from clarity_loop.domain.enums import TokenCategory
from clarity_loop.domain.request import ParsedRequest
from clarity_loop.knowledge.tables import KnowledgeTables

_CLAUSE_SPLIT = re.compile(r"[.,](?=\s|$)|[;\n!?]+|\bbut\b")
_DIGIT = re.compile(r"\d")


@lru_cache(maxsize=1024)
def _pattern(keyword: str) -> re.Pattern:
    # Letters may not touch the keyword; digits may ("200ms")
    return re.compile(r"(?<![a-z])" + re.escape(keyword.lower()) + r"(?![a-z])")


def mentions(text: str, keyword: str) -> bool:
    return _pattern(keyword).search(text.lower()) is not None


def find_keywords(text: str, keywords: Iterable[str]) -> list[str]:
    """Keywords from *keywords* that occur in *text*, in keyword order."""
    return [kw for kw in keywords if mentions(text, kw)]


def first_position(text: str, keyword: str) -> int:
    m = _pattern(keyword).search(text.lower())
    return m.start() if m else -1


def split_clauses(text: str) -> list[str]:
    return [c.strip() for c in _CLAUSE_SPLIT.split(text) if c and c.strip()]


def has_number(text: str) -> bool:
    return _DIGIT.search(text) is not None


@dataclass
class CategoryCoverage:
    """Clauses that address one constraint category."""

    specific: list[str] = field(default_factory=list)
    vague: list[str] = field(default_factory=list)

    @property
    def covered(self) -> bool:
        return bool(self.specific)

    @property
    def value(self) -> str | None:
        return "; ".join(self.specific) if self.specific else None


def category_coverage(texts: Iterable[str], tables: KnowledgeTables) -> dict[str, CategoryCoverage]:
    """Classify each text against every constraint category.

    A text covers a category specifically when it names a category keyword,
    or a vague or counted keyword ("fast", "users") alongside a number.  A
    vague keyword alone only marks the category as vaguely addressed; a
    counted keyword alone addresses nothing.
    """
    coverage = {cat: CategoryCoverage() for cat in tables.required_categories}
    for text in texts:
        for cat in tables.required_categories:
            specific = find_keywords(text, tables.constraint_keywords.get(cat, []))
            vague = find_keywords(text, tables.vague_constraint_keywords.get(cat, []))
            counted = find_keywords(text, tables.counted_constraint_keywords.get(cat, []))
            if specific or ((vague or counted) and has_number(text)):
                coverage[cat].specific.append(text)
            elif vague:
                coverage[cat].vague.append(text)
    return coverage


def is_exclusion(text: str, tables: KnowledgeTables) -> bool:
    return bool(find_keywords(text, tables.exclusion_markers))


def is_affirmation(text: str, tables: KnowledgeTables) -> bool:
    return bool(find_keywords(text, tables.affirmation_markers))


def mentions_category(text: str, category: str, tables: KnowledgeTables) -> bool:
    """True if *text* names the category itself or any of its keywords."""
    keywords = (
        [category]
        + tables.constraint_keywords.get(category, [])
        + tables.vague_constraint_keywords.get(category, [])
        + tables.counted_constraint_keywords.get(category, [])
    )
    return bool(find_keywords(text, keywords))


def constraint_texts(parsed: ParsedRequest) -> list[str]:
    """Texts that may address constraints: constraint tokens, or raw clauses
    when the parse carries no usable signal."""
    if parsed.low_confidence:
        return split_clauses(parsed.raw_text)
    return [t.text for t in parsed.tokens_of(TokenCategory.CONSTRAINT)]


def numbers_in(text: str) -> set[str]:
    return set(re.findall(r"\d+(?:[.,]\d+)?", text))
