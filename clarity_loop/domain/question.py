"""Questions and interpretations offered back to the user."""

from __future__ import annotations

from pydantic import BaseModel, Field

from clarity_loop.domain.enums import QuestionCategory
from clarity_loop.foundation.identifiers import new_id


class Question(BaseModel):
    """A clarifying question.  Maps to exactly one open issue."""

    id: str
    text: str = Field(..., min_length=5)
    category: QuestionCategory
    priority: float
    issue_id: str

    model_config = {"frozen": True}


class Interpretation(BaseModel):
    """One candidate reading of an ambiguous request.

    ``focus`` names what this interpretation commits to: the winning option
    of a contradiction, or the full definition of an ambiguous term.
    Selecting it resolves the source issue.
    """

    id: str = Field(default_factory=new_id)
    title: str
    key_assumptions: frozenset[str] = Field(default_factory=frozenset)
    implications: frozenset[str] = Field(default_factory=frozenset)
    differentiators: frozenset[str] = Field(default_factory=frozenset)
    source_issue_id: str = ""
    focus: str | None = None

    model_config = {"frozen": True}
