"""Plain-text rendering of system turns.

Rules:
    - NEVER mutates the context or the report
    - Output is deterministic: same input → same text
    - The refusal names every open issue, not only the asked ones,
      and marks the ones that alone block sufficiency with "!"
"""

from __future__ import annotations

from clarity_loop.domain.intent import StructuredIntent, SynthesisResult
from clarity_loop.domain.issue import (
    AssumptionIssue,
    ContradictionIssue,
    Issue,
    MissingConstraintIssue,
    UndefinedTermIssue,
    VagueConstraintIssue,
)
from clarity_loop.domain.question import Interpretation, Question
from clarity_loop.domain.report import ClarityReport


def describe_issue(issue: Issue) -> str:
    """One-line, user-facing description of an open issue."""
    if isinstance(issue, UndefinedTermIssue):
        return f"'{issue.term}' is not defined"
    if isinstance(issue, MissingConstraintIssue):
        return f"no {issue.category} constraint was given"
    if isinstance(issue, VagueConstraintIssue):
        return f"the {issue.category} constraint '{issue.vague_value}' is not measurable"
    if isinstance(issue, ContradictionIssue):
        return f"{' and '.join(issue.options)} pull in different directions"
    if isinstance(issue, AssumptionIssue):
        return f"{issue.slot} is assumed to be '{issue.default_value}'"
    return issue.description


def render_refusal(report: ClarityReport) -> str:
    blocking = {i.id for i in report.blocking}
    lines = [
        f"I can't write a specification for this yet (clarity {report.score:.0f}/100).",
        f"Open issues ({len(blocking)} blocking):",
    ]
    for issue in report.unresolved:
        marker = "!" if issue.id in blocking else "-"
        lines.append(f"  {marker} [{issue.severity.value}] {describe_issue(issue)}")
    return "\n".join(lines)


def render_question(question: Question) -> str:
    return question.text


def render_interpretation(interp: Interpretation) -> str:
    lines = [f"Possible reading: {interp.title}"]
    for assumption in sorted(interp.key_assumptions):
        lines.append(f"  assumes: {assumption}")
    for implication in sorted(interp.implications):
        lines.append(f"  implies: {implication}")
    return "\n".join(lines)


def render_intent(intent: StructuredIntent) -> str:
    lines = [f"Specification: {intent.title}"]
    if intent.goals:
        lines.append("Goals:")
        for goal in intent.goals:
            outcome = goal.measurable_outcome or "no measurable outcome agreed"
            flag = " (needs an outcome)" if goal.flagged else ""
            lines.append(f"  - [{goal.priority.value}] {goal.description}: {outcome}{flag}")
    if intent.constraints:
        lines.append("Constraints:")
        for c in intent.constraints:
            lines.append(f"  - {c.category}: {c.value or c.description}")
    if intent.resolved_tradeoffs:
        lines.append("Tradeoffs:")
        for t in intent.resolved_tradeoffs:
            lines.append(f"  - {t.chosen_option} over {', '.join(o for o in t.options if o != t.chosen_option)}")
    if intent.assumptions:
        lines.append("Assumptions:")
        lines.extend(f"  - {a}" for a in intent.assumptions)
    if intent.scope.out_of_scope:
        lines.append("Out of scope: " + ", ".join(intent.scope.out_of_scope))
    return "\n".join(lines)


def render_synthesis(result: SynthesisResult) -> str:
    text = render_intent(result.intent)
    if result.is_partial:
        gaps = "\n".join(f"  - {w.message}" for w in result.warnings)
        text = f"{text}\nIncomplete:\n{gaps}"
    return text


def render_capped(report: ClarityReport) -> str:
    open_count = len(report.unresolved)
    return (
        f"We've reached the limit of clarification rounds with {open_count} "
        f"issue(s) still open (clarity {report.score:.0f}/100). "
        "You can review the partial specification or start a new conversation."
    )
