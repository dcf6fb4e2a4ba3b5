"""IntentSynthesizer — projects a clear conversation into a StructuredIntent.

Synthesis is a read-only walk over ``ctx.issues`` and the cumulative parse.
It never raises for a gap: every missing linkage becomes a
PartialIntentWarning on the result and the intent is still returned.

Rules:
    resolved constraint issue    → one Constraint (excluded ones also go
                                   to scope.out_of_scope)
    resolved contradiction       → one Tradeoff, or a warning if none
    open contradiction           → warning
    open critical issue          → warning
    assumption issue             → copied into assumptions, validated or not
    defined term                 → recorded as an assumption
    goal without an outcome      → secondary and flagged
"""

from __future__ import annotations

import logging

from clarity_loop.domain.conversation import ConversationContext
from clarity_loop.domain.enums import GoalPriority, Severity
from clarity_loop.domain.intent import (
    Constraint,
    Goal,
    PartialIntentWarning,
    Scope,
    StructuredIntent,
    SynthesisResult,
    Tradeoff,
)
from clarity_loop.domain.issue import (
    AssumptionIssue,
    ConstraintIssue,
    ContradictionIssue,
    Issue,
    UndefinedTermIssue,
    is_constraint_issue,
)
from clarity_loop.knowledge.matching import find_keywords, mentions
from clarity_loop.knowledge.tables import KnowledgeTables, default_tables

logger = logging.getLogger(__name__)


class IntentSynthesizer:
    def __init__(self, tables: KnowledgeTables | None = None) -> None:
        self._tables = tables or default_tables()

    def synthesize(self, ctx: ConversationContext) -> SynthesisResult:
        parsed = ctx.cumulative_parse()
        issues = sorted(ctx.issues.values(), key=lambda i: i.id)

        constraints: list[Constraint] = []
        out_of_scope: list[str] = []
        tradeoffs: list[Tradeoff] = []
        assumptions: list[str] = []
        warnings: list[PartialIntentWarning] = []

        for issue in issues:
            if is_constraint_issue(issue):
                if issue.resolved:
                    constraints.append(self._constraint(issue))
                    if issue.excluded:
                        out_of_scope.append(f"{issue.category} requirements")
                elif issue.severity == Severity.CRITICAL:
                    warnings.append(_warn(issue, f"No {issue.category} constraint was agreed"))

            elif isinstance(issue, ContradictionIssue):
                if not issue.resolved:
                    warnings.append(_warn(issue, f"Conflict between {_options(issue)} is still open"))
                elif issue.tradeoff is None:
                    warnings.append(_warn(
                        issue, f"Conflict between {_options(issue)} was closed without a tradeoff",
                    ))
                else:
                    tradeoffs.append(issue.tradeoff)

            elif isinstance(issue, AssumptionIssue):
                assumptions.append(self._assumption(issue))

            elif isinstance(issue, UndefinedTermIssue):
                if issue.resolved and issue.definition:
                    assumptions.append(f"'{issue.term}' means: {issue.definition}")
                elif issue.severity == Severity.CRITICAL:
                    warnings.append(_warn(issue, f"'{issue.term}' was never defined"))

            elif not issue.resolved and issue.severity == Severity.CRITICAL:
                warnings.append(_warn(issue, issue.description))

        boundaries = [
            c.value for c in constraints
            if c.category == "boundary" and c.value is not None
        ]
        intent = StructuredIntent(
            title=parsed.intent or _first_text(ctx),
            goals=self._goals(parsed.goal_names(), parsed.intent, constraints, tradeoffs),
            constraints=constraints,
            assumptions=assumptions,
            resolved_tradeoffs=tradeoffs,
            scope=Scope(
                in_scope=find_keywords(parsed.raw_text, self._tables.technical_terms),
                out_of_scope=out_of_scope,
                boundaries=boundaries,
            ),
        )

        if warnings:
            logger.warning(
                "Context %s: partial intent, %d gap(s): %s",
                ctx.id, len(warnings), ", ".join(w.issue_id for w in warnings),
            )
        else:
            logger.info("Context %s: intent synthesized (%d constraints, %d tradeoffs)",
                        ctx.id, len(constraints), len(tradeoffs))
        return SynthesisResult(intent=intent, warnings=warnings)

    # ── Projections ──────────────────────────────────────────────────────

    @staticmethod
    def _constraint(issue: ConstraintIssue) -> Constraint:
        if issue.excluded:
            return Constraint(
                category=issue.category,
                description=f"No {issue.category} constraint: explicitly out of scope",
            )
        return Constraint(
            category=issue.category,
            description=f"{issue.category.capitalize()} requirement",
            value=issue.value,
        )

    @staticmethod
    def _assumption(issue: AssumptionIssue) -> str:
        if not issue.resolved:
            return f"{issue.slot}: {issue.default_value} (default, not validated)"
        status = "validated" if issue.validated else "not validated"
        return f"{issue.slot}: {issue.value or issue.default_value} ({status})"

    @staticmethod
    def _goals(
        names: list[str],
        intent: str,
        constraints: list[Constraint],
        tradeoffs: list[Tradeoff],
    ) -> list[Goal]:
        for t in tradeoffs:
            if t.chosen_option.lower() not in names:
                names.append(t.chosen_option.lower())
        if not names:
            names = [intent] if intent else []

        goals = []
        for name in names:
            outcome = _outcome_for(name, constraints, tradeoffs)
            lost = any(
                name in (o.lower() for o in t.options) and t.chosen_option.lower() != name
                for t in tradeoffs
            )
            goals.append(Goal(
                description=name,
                measurable_outcome=outcome,
                priority=GoalPriority.SECONDARY if lost or outcome is None else GoalPriority.PRIMARY,
                flagged=outcome is None,
            ))
        return goals


def _outcome_for(name: str, constraints: list[Constraint], tradeoffs: list[Tradeoff]) -> str | None:
    for c in constraints:
        if c.value and (c.category == name or mentions(c.value, name)):
            return c.value
    for t in tradeoffs:
        if t.chosen_option.lower() == name:
            others = ", ".join(o for o in t.options if o.lower() != name)
            return f"Preferred over {others}: {t.rationale}"
    return None


def _warn(issue: Issue, message: str) -> PartialIntentWarning:
    return PartialIntentWarning(issue_id=issue.id, message=message)


def _options(issue: ContradictionIssue) -> str:
    return " and ".join(issue.options)


def _first_text(ctx: ConversationContext) -> str:
    requests = ctx.requests
    return requests[0].raw_text if requests else "Untitled request"
