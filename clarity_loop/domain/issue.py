"""Issue — the unit of unclarity tracked across a conversation.

Issues are a tagged union on ``kind``.  Each variant carries only the
fields it needs; all share an id that is a deterministic key (kind plus
normalised affected names), so an issue re-detected on a later turn is
the *same* issue, not a new one.

Issues are never deleted.  Resolution produces a new frozen copy with
``resolved=True`` and the resolution payload filled in.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from clarity_loop.domain.enums import IssueKind, Severity
from clarity_loop.domain.intent import Tradeoff

# Issue id reserved for the low-confidence parse issue.
LOW_CONFIDENCE_ISSUE_ID = "multiple_interpretation:request"


class _IssueBase(BaseModel):
    id: str
    severity: Severity
    description: str
    affected: frozenset[str] = Field(default_factory=frozenset)
    resolved: bool = False
    first_seen: int = Field(
        default=0, ge=0,
        description="Iteration at which the issue was first detected",
    )

    model_config = {"frozen": True}


class UndefinedTermIssue(_IssueBase):
    kind: Literal["undefined_term"] = "undefined_term"
    term: str
    definition: Optional[str] = None
    alternatives: tuple[str, ...] = ()
    conflicting_value: Optional[str] = None


class MultipleInterpretationIssue(_IssueBase):
    kind: Literal["multiple_interpretation"] = "multiple_interpretation"
    reason: str = ""


class VagueConstraintIssue(_IssueBase):
    kind: Literal["vague_constraint"] = "vague_constraint"
    category: str
    vague_value: str = ""
    value: Optional[str] = None
    excluded: bool = False
    conflicting_value: Optional[str] = None


class MissingConstraintIssue(_IssueBase):
    kind: Literal["missing_constraint"] = "missing_constraint"
    category: str
    value: Optional[str] = None
    excluded: bool = False
    conflicting_value: Optional[str] = None


class ContradictionIssue(_IssueBase):
    kind: Literal["contradiction"] = "contradiction"
    options: tuple[str, ...]
    tradeoff_required: Literal[True] = True
    tradeoff: Optional[Tradeoff] = None
    revision_of: Optional[str] = Field(
        default=None,
        description="Id of the resolved issue whose value the user contradicted",
    )


class AssumptionIssue(_IssueBase):
    kind: Literal["assumption"] = "assumption"
    slot: str
    default_value: str
    value: Optional[str] = None
    needs_validation: bool = True
    validated: bool = False


Issue = Annotated[
    Union[
        UndefinedTermIssue,
        MultipleInterpretationIssue,
        VagueConstraintIssue,
        MissingConstraintIssue,
        ContradictionIssue,
        AssumptionIssue,
    ],
    Field(discriminator="kind"),
]

ConstraintIssue = Union[MissingConstraintIssue, VagueConstraintIssue]


def is_constraint_issue(issue: Issue) -> bool:
    return issue.kind in (IssueKind.MISSING_CONSTRAINT, IssueKind.VAGUE_CONSTRAINT)


def current_value(issue: Issue) -> Optional[str]:
    """The value a resolved issue settled on, if its variant carries one."""
    if isinstance(issue, UndefinedTermIssue):
        return issue.definition
    if isinstance(issue, (MissingConstraintIssue, VagueConstraintIssue, AssumptionIssue)):
        return issue.value
    return None
