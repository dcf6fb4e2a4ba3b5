"""Identifier generation for domain objects.

Conversation and request ids are random.  Issue and question ids are
deterministic keys so the same underlying issue is recognised across turns.
"""

from __future__ import annotations

import re
from typing import Iterable
from uuid import uuid4

_NON_WORD = re.compile(r"[^a-z0-9]+")


def new_id() -> str:
    """Generate a new random UUID v4 string for domain objects."""
    return str(uuid4())


def normalize_name(name: str) -> str:
    """Lower-case *name* and collapse anything non-alphanumeric to '_'."""
    return _NON_WORD.sub("_", name.lower()).strip("_")


def issue_key(kind: str, affected: Iterable[str]) -> str:
    """Stable issue id: kind plus the sorted, normalised affected names."""
    names = sorted({normalize_name(a) for a in affected if a})
    return f"{kind}:{'+'.join(names)}"


def question_key(issue_id: str, category: str, round_: int = 1) -> str:
    """Question id derived from its issue and category.

    Follow-up rounds (round_ > 1) get a '#n' suffix so an id is never reused.
    """
    base = f"q:{issue_id}:{category}"
    return base if round_ <= 1 else f"{base}#{round_}"
