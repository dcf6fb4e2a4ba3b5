"""ClarityAnalyzer — deterministic issue detection and clarity scoring.

Design principles:
    1. Pure: accepts a ParsedRequest and a ConversationContext, returns a
       ClarityReport.  Never mutates the context.
    2. Deterministic: the same inputs always yield the same report, issue
       ids included.
    3. Issue ids are keys (kind + normalised names).  Re-detecting an issue
       picks up its known state from the context instead of duplicating it.

Detection passes, in order:
    - undefined terms:     entities with no inline or table definition
    - missing constraints: required categories nothing addresses
                           (vaguely addressed → vague_constraint; stated
                           up front → recorded already resolved)
    - contradictions:      goal pairs in the conflict table, and resolved
                           values the user later contradicted
    - assumptions:         unqualified audience / platform / data slots
    - low confidence:      the cumulative parse carries no signal

Scoring:
    score = max(0, 100 - Σ weight(severity) for each unresolved issue)
    sufficient = no unresolved critical issue
                 AND no unresolved contradiction
                 AND score >= mode floor
"""

from __future__ import annotations

import logging
from itertools import combinations

from clarity_loop.domain.conversation import ConversationContext
from clarity_loop.domain.enums import EntityCategory, IssueKind, Mode, Severity
from clarity_loop.domain.issue import (
    LOW_CONFIDENCE_ISSUE_ID,
    AssumptionIssue,
    ContradictionIssue,
    Issue,
    MissingConstraintIssue,
    MultipleInterpretationIssue,
    UndefinedTermIssue,
    VagueConstraintIssue,
    current_value,
)
from clarity_loop.domain.report import ClarityReport, ModeThresholds, SeverityWeights
from clarity_loop.domain.request import Entity, ParsedRequest, merge_parses
from clarity_loop.foundation.identifiers import issue_key
from clarity_loop.knowledge.matching import (
    category_coverage,
    constraint_texts,
    find_keywords,
)
from clarity_loop.knowledge.tables import KnowledgeTables, default_tables

logger = logging.getLogger(__name__)

_SEVERITY_RANK = {Severity.CRITICAL: 0, Severity.IMPORTANT: 1, Severity.MINOR: 2}
_SOFTER = {
    Severity.CRITICAL: Severity.IMPORTANT,
    Severity.IMPORTANT: Severity.MINOR,
    Severity.MINOR: Severity.MINOR,
}


class ClarityAnalyzer:
    """Stateless clarity analysis over a conversation."""

    def __init__(
        self,
        tables: KnowledgeTables | None = None,
        weights: SeverityWeights | None = None,
        thresholds: dict[Mode, ModeThresholds] | None = None,
    ) -> None:
        self._tables = tables or default_tables()
        self._weights = weights or SeverityWeights()
        self._thresholds = thresholds or {
            Mode.CHALLENGE: ModeThresholds.challenge(),
            Mode.BUILD: ModeThresholds.build(),
        }

    # ── Public API ───────────────────────────────────────────────────────

    def analyze(self, parsed: ParsedRequest, ctx: ConversationContext) -> ClarityReport:
        """Produce a clarity report for the conversation including *parsed*."""
        parses = ctx.parses
        if not parses or parses[-1] != parsed:
            parses.append(parsed)
        cumulative = merge_parses(parses)

        detected: list[Issue] = []
        detected += self._undefined_terms(cumulative)
        detected += self._missing_constraints(cumulative, ctx)
        detected += self._contradictions(cumulative, ctx)
        detected += self._assumptions(cumulative)
        if cumulative.low_confidence:
            detected.append(MultipleInterpretationIssue(
                id=LOW_CONFIDENCE_ISSUE_ID,
                severity=Severity.CRITICAL,
                description="The request could not be understood with confidence",
                affected=frozenset({"request"}),
                reason="degraded parse" if cumulative.degraded else "no recognisable terms",
            ))

        issues = self._reconcile(detected, ctx)
        thresholds = self._thresholds[ctx.mode]
        score = self._score(issues, thresholds)
        sufficient = self._is_sufficient(issues, score, thresholds)

        logger.debug(
            "Analyzed context %s: score=%.1f sufficient=%s issues=%d unresolved=%d",
            ctx.id, score, sufficient, len(issues),
            sum(1 for i in issues if not i.resolved),
        )
        return ClarityReport(score=score, issues=issues, sufficient=sufficient)

    # ── 1. Undefined terms ───────────────────────────────────────────────

    def _undefined_terms(self, parsed: ParsedRequest) -> list[Issue]:
        t = self._tables
        entities = list(parsed.entities)
        if parsed.low_confidence:
            # Heuristic fallback: vague qualifiers straight from the raw text
            entities = [
                Entity(name=word, category=EntityCategory.DOMAIN_CONCEPT)
                for word in find_keywords(parsed.raw_text, t.vague_terms)
            ]

        issues: list[Issue] = []
        for entity in entities:
            if entity.definition or t.is_known(entity.name):
                continue
            critical = t.is_goal_qualifying(entity.name)
            issues.append(UndefinedTermIssue(
                id=issue_key(IssueKind.UNDEFINED_TERM.value, [entity.name]),
                severity=Severity.CRITICAL if critical else Severity.IMPORTANT,
                description=f"'{entity.name}' is not defined",
                affected=frozenset({entity.name}),
                term=entity.name,
                alternatives=tuple(t.alternatives(entity.name)),
            ))
        return issues

    # ── 2. Missing / vague constraints ───────────────────────────────────

    def _missing_constraints(self, parsed: ParsedRequest, ctx: ConversationContext) -> list[Issue]:
        t = self._tables
        coverage = category_coverage(constraint_texts(parsed), t)
        known = ctx.issues

        issues: list[Issue] = []
        for category in t.required_categories:
            missing_id = issue_key(IssueKind.MISSING_CONSTRAINT.value, [category])
            vague_id = issue_key(IssueKind.VAGUE_CONSTRAINT.value, [category])
            prior = known.get(missing_id) or known.get(vague_id)
            if prior is not None and prior.resolved:
                continue  # covered by an earlier resolution
            cov = coverage[category]
            severity = t.criticality(category)
            if cov.covered and prior is None:
                # Stated in the request itself: settled from the start
                issues.append(MissingConstraintIssue(
                    id=missing_id,
                    severity=severity,
                    description=f"{category.capitalize()} constraint stated in the request",
                    affected=frozenset({category}),
                    category=category,
                    resolved=True,
                    value=cov.value,
                ))
                continue

            if cov.vague and not cov.covered and (prior is None or prior.id == vague_id):
                issues.append(VagueConstraintIssue(
                    id=vague_id,
                    severity=_SOFTER[severity],
                    description=f"The {category} constraint is vague: '{cov.vague[0]}'",
                    affected=frozenset({category}),
                    category=category,
                    vague_value=cov.vague[0],
                ))
            elif prior is not None and prior.id == vague_id:
                issues.append(prior)
            else:
                issues.append(MissingConstraintIssue(
                    id=missing_id,
                    severity=severity,
                    description=f"No {category} constraint specified",
                    affected=frozenset({category}),
                    category=category,
                ))
        return issues

    # ── 3. Contradictions ────────────────────────────────────────────────

    def _contradictions(self, parsed: ParsedRequest, ctx: ConversationContext) -> list[Issue]:
        issues: list[Issue] = []
        goals = parsed.goal_names()
        for a, b in combinations(goals, 2):
            if self._tables.conflicts(a, b):
                issues.append(ContradictionIssue(
                    id=issue_key(IssueKind.CONTRADICTION.value, [a, b]),
                    severity=Severity.CRITICAL,
                    description=f"Goals '{a}' and '{b}' conflict",
                    affected=frozenset({a, b}),
                    options=(a, b),
                ))

        # A resolved value the latest responses disagree with
        for prior in sorted(ctx.issues.values(), key=lambda i: i.id):
            conflicting = getattr(prior, "conflicting_value", None)
            if not prior.resolved or conflicting is None:
                continue
            old = current_value(prior) or ""
            target = prior.term if isinstance(prior, UndefinedTermIssue) else prior.category
            issues.append(ContradictionIssue(
                id=revision_issue_id(prior.id),
                severity=Severity.CRITICAL,
                description=f"Two incompatible values given for {target}",
                affected=frozenset({target}),
                options=(old, conflicting),
                revision_of=prior.id,
            ))
        return issues

    # ── 4. Assumptions ───────────────────────────────────────────────────

    def _assumptions(self, parsed: ParsedRequest) -> list[Issue]:
        subject = next(
            (e.name for e in parsed.entities if e.category == EntityCategory.TECHNICAL_TERM),
            "request",
        )
        issues: list[Issue] = []
        for slot, slot_def in sorted(self._tables.assumption_slots.items()):
            if find_keywords(parsed.raw_text, slot_def.qualifiers):
                continue
            issues.append(AssumptionIssue(
                id=issue_key(IssueKind.ASSUMPTION.value, [slot]),
                severity=Severity.MINOR,
                description=f"No {slot} specified; assuming: {slot_def.default_value}",
                affected=frozenset({subject}),
                slot=slot,
                default_value=slot_def.default_value,
            ))
        return issues

    # ── Reconciliation & scoring ─────────────────────────────────────────

    @staticmethod
    def _reconcile(detected: list[Issue], ctx: ConversationContext) -> list[Issue]:
        """Overlay known issue state; carry issues not re-detected this pass."""
        known = ctx.issues
        merged: dict[str, Issue] = {}
        for issue in detected:
            prior = known.get(issue.id)
            if prior is None:
                merged[issue.id] = issue.model_copy(update={"first_seen": ctx.iteration_count})
            elif prior.resolved:
                merged[issue.id] = prior
            else:
                merged[issue.id] = issue.model_copy(update={"first_seen": prior.first_seen})
        for issue_id, prior in known.items():
            merged.setdefault(issue_id, prior)
        return sorted(merged.values(), key=lambda i: (_SEVERITY_RANK[Severity(i.severity)], i.id))

    def _score(self, issues: list[Issue], thresholds: ModeThresholds) -> float:
        penalty = 0.0
        for issue in issues:
            if issue.resolved:
                continue
            if issue.severity == Severity.MINOR and not thresholds.count_minor:
                continue
            penalty += self._weights.of(issue.severity)
        return max(0.0, 100.0 - penalty)

    @staticmethod
    def _is_sufficient(issues: list[Issue], score: float, thresholds: ModeThresholds) -> bool:
        for issue in issues:
            if issue.resolved:
                continue
            if issue.severity == Severity.CRITICAL or issue.kind == IssueKind.CONTRADICTION:
                return False
        return score >= thresholds.sufficiency_floor


def revision_issue_id(issue_id: str) -> str:
    """Id of the contradiction raised when a resolved issue gets a second value."""
    return issue_key(IssueKind.CONTRADICTION.value, [f"revision {issue_id}"])
