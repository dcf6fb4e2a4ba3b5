"""Controlled enumerations for the clarity-loop domain.

Every categorical field in the domain MUST reference an enum defined here.
Free-form strings are not acceptable for classification fields.
"""

from __future__ import annotations

from enum import Enum


class TokenCategory(str, Enum):
    TERM = "term"
    CONSTRAINT = "constraint"
    GOAL = "goal"
    MODIFIER = "modifier"


class EntityCategory(str, Enum):
    TECHNICAL_TERM = "technical_term"
    DOMAIN_CONCEPT = "domain_concept"
    METRIC = "metric"


class IssueKind(str, Enum):
    """What kind of gap an issue describes."""

    UNDEFINED_TERM = "undefined_term"
    MULTIPLE_INTERPRETATION = "multiple_interpretation"
    VAGUE_CONSTRAINT = "vague_constraint"
    MISSING_CONSTRAINT = "missing_constraint"
    CONTRADICTION = "contradiction"
    ASSUMPTION = "assumption"


class Severity(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    MINOR = "minor"


class ConstraintCategory(str, Enum):
    """Constraint categories every complete specification must cover."""

    PERFORMANCE = "performance"
    SCALE = "scale"
    BOUNDARY = "boundary"
    QUALITY = "quality"


class QuestionCategory(str, Enum):
    DEFINITION = "definition"
    CONSTRAINT = "constraint"
    TRADEOFF = "tradeoff"
    ASSUMPTION = "assumption"


class Mode(str, Enum):
    """Challenge mode refuses until clear; build mode lowers the bar."""

    CHALLENGE = "challenge"
    BUILD = "build"


class Speaker(str, Enum):
    USER = "user"
    SYSTEM = "system"


class TurnKind(str, Enum):
    REQUEST = "request"
    REFUSAL = "refusal"
    QUESTION = "question"
    RESPONSE = "response"
    INTERPRETATION = "interpretation"
    INTENT = "intent"


class GoalPriority(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class ConversationState(str, Enum):
    """States of the per-conversation turn machine."""

    START = "start"
    ANALYZING = "analyzing"
    REFUSING = "refusing"
    QUESTIONING = "questioning"
    INTERPRETATION_OFFERED = "interpretation_offered"
    SUFFICIENT = "sufficient"
    INTENT_EMITTED = "intent_emitted"
    CAPPED = "capped"
    RESTARTED = "restarted"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = {
    ConversationState.INTENT_EMITTED,
    ConversationState.CAPPED,
    ConversationState.RESTARTED,
}
