"""StructuredIntent — the final specification emitted once a request is clear.

A StructuredIntent is a one-way projection of the conversation's resolved
issues.  It never feeds back into analysis.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from clarity_loop.domain.enums import GoalPriority


class Tradeoff(BaseModel):
    """An explicit user decision between conflicting options."""

    options: list[str] = Field(..., min_length=2)
    chosen_option: str = Field(..., min_length=1)
    rationale: str = Field(..., min_length=1)

    model_config = {"frozen": True}


class Goal(BaseModel):
    description: str
    measurable_outcome: Optional[str] = None
    priority: GoalPriority = GoalPriority.PRIMARY
    flagged: bool = Field(
        default=False,
        description="True when no measurable outcome was ever elicited",
    )

    model_config = {"frozen": True}


class Constraint(BaseModel):
    category: str
    description: str
    value: Optional[str] = None

    model_config = {"frozen": True}


class Scope(BaseModel):
    in_scope: list[str] = Field(default_factory=list)
    out_of_scope: list[str] = Field(default_factory=list)
    boundaries: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class StructuredIntent(BaseModel):
    title: str
    goals: list[Goal] = Field(default_factory=list)
    constraints: list[Constraint] = Field(default_factory=list)
    assumptions: list[str] = Field(default_factory=list)
    resolved_tradeoffs: list[Tradeoff] = Field(default_factory=list)
    scope: Scope = Field(default_factory=Scope)

    model_config = {"frozen": True}


class PartialIntentWarning(BaseModel):
    """Names an issue whose resolution left a gap in the synthesized intent."""

    issue_id: str
    message: str

    model_config = {"frozen": True}


class SynthesisResult(BaseModel):
    """Either a complete intent or a partial one carrying warnings."""

    intent: StructuredIntent
    warnings: list[PartialIntentWarning] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def is_partial(self) -> bool:
        return bool(self.warnings)
