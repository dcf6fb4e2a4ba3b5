"""ClarityReport and the mode thresholds that shape it."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field

from clarity_loop.domain.enums import IssueKind, Mode, Severity
from clarity_loop.domain.issue import LOW_CONFIDENCE_ISSUE_ID, Issue


@dataclass(frozen=True)
class SeverityWeights:
    """Score deduction per unresolved issue of each severity."""

    critical: float = 20.0
    important: float = 10.0
    minor: float = 4.0

    def of(self, severity: Severity) -> float:
        return {
            Severity.CRITICAL: self.critical,
            Severity.IMPORTANT: self.important,
            Severity.MINOR: self.minor,
        }[severity]


@dataclass(frozen=True)
class ModeThresholds:
    """Per-mode overrides.  Build mode is a threshold change, not a bypass."""

    mode: Mode = Mode.CHALLENGE
    sufficiency_floor: float = 70.0
    count_minor: bool = True

    @classmethod
    def challenge(cls, floor: float = 70.0) -> "ModeThresholds":
        return cls(mode=Mode.CHALLENGE, sufficiency_floor=floor, count_minor=True)

    @classmethod
    def build(cls, floor: float = 50.0) -> "ModeThresholds":
        return cls(mode=Mode.BUILD, sufficiency_floor=floor, count_minor=False)


class ClarityReport(BaseModel):
    """Immutable result of one analysis pass.  Replaced, never mutated."""

    score: float = Field(..., ge=0.0, le=100.0)
    issues: list[Issue] = Field(default_factory=list)
    sufficient: bool

    model_config = {"frozen": True}

    @property
    def unresolved(self) -> list[Issue]:
        return [i for i in self.issues if not i.resolved]

    def unresolved_of(self, kind: IssueKind) -> list[Issue]:
        return [i for i in self.unresolved if i.kind == kind]

    @property
    def blocking(self) -> list[Issue]:
        """Unresolved issues that alone prevent sufficiency."""
        return [
            i for i in self.unresolved
            if i.severity == Severity.CRITICAL or i.kind == IssueKind.CONTRADICTION
        ]

    @property
    def low_confidence(self) -> bool:
        return any(i.id == LOW_CONFIDENCE_ISSUE_ID for i in self.unresolved)

    def get(self, issue_id: str) -> Issue | None:
        return next((i for i in self.issues if i.id == issue_id), None)
