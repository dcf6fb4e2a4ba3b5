"""ResponseResolver — the explicit resolution step for user responses.

Nothing is ever marked resolved by analysis alone.  The one exception is
a constraint the opening request already states, which the analyzer
records as settled.  Every other resolution is made here, from something
the user actually said, and is logged on the context as a ResolutionEvent.

Rules (free text):
    - contradiction:     resolved when one option is named as preferred
                         ("prioritize X", "X over Y"), or when it was just
                         asked and exactly one option is mentioned
    - constraint:        resolved when the response covers the category
                         (value = covering clauses), or by exclusion when a
                         clause naming the category says "not needed"
    - undefined term:    resolved by an inline definition; a goal-qualifying
                         term that was just asked is defined by the goals
                         the response names, or by a named alternative
    - assumption:        replaced by a covering qualifier, or validated by
                         an affirmation when it was just asked
    - low confidence:    resolved by any response that parses cleanly

Targeted answers (question id → text) resolve exactly that question's issue.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from clarity_loop.core.analyzer import revision_issue_id
from clarity_loop.domain.conversation import ConversationContext
from clarity_loop.domain.intent import Tradeoff
from clarity_loop.domain.issue import (
    LOW_CONFIDENCE_ISSUE_ID,
    AssumptionIssue,
    ConstraintIssue,
    ContradictionIssue,
    Issue,
    MissingConstraintIssue,
    UndefinedTermIssue,
    VagueConstraintIssue,
    current_value,
)
from clarity_loop.domain.question import Interpretation
from clarity_loop.domain.request import ParsedRequest
from clarity_loop.knowledge.matching import (
    category_coverage,
    constraint_texts,
    find_keywords,
    first_position,
    is_affirmation,
    is_exclusion,
    mentions,
    mentions_category,
    numbers_in,
    split_clauses,
)
from clarity_loop.knowledge.tables import KnowledgeTables, default_tables

logger = logging.getLogger(__name__)

_OVER = re.compile(r"\b([a-z][a-z-]*)\s+over\s+([a-z][a-z-]*)\b")
_KEEP_FIRST = ("keep", "original", "first", "previous", "earlier")
_TAKE_SECOND = ("new", "second", "latest", "update", "change", "instead")


class ResponseResolver:
    """Applies a user response to the open issues of a conversation."""

    def __init__(self, tables: KnowledgeTables | None = None) -> None:
        self._tables = tables or default_tables()

    # ── Public API ───────────────────────────────────────────────────────

    def apply(
        self,
        parsed: ParsedRequest,
        ctx: ConversationContext,
        answers: dict[str, str] | None = None,
    ) -> list[str]:
        """Resolve whatever *parsed* settles.  Returns the resolved issue ids."""
        resolved: list[str] = []
        settled_before = {i.id for i in ctx.issues.values() if i.resolved}
        pending = {q.issue_id for q in ctx.pending_questions.values()}

        for question_id, text in sorted((answers or {}).items()):
            question = ctx.pending_questions.get(question_id)
            issue = ctx.issue(question.issue_id) if question else None
            if issue is None or issue.resolved or not text.strip():
                logger.debug("Ignoring answer to unknown or settled question %s", question_id)
                continue
            if self._resolve_targeted(issue, text.strip(), ctx):
                resolved.append(issue.id)

        text = parsed.raw_text
        for issue_id in sorted(ctx.issues):
            issue = ctx.issue(issue_id)
            if issue is None or issue.resolved:
                continue
            if self._resolve_free_text(issue, parsed, text, issue.id in pending, ctx):
                resolved.append(issue.id)

        self._record_revisions(parsed, ctx, settled_before)

        if resolved:
            logger.info("Context %s: resolved %s", ctx.id, ", ".join(resolved))
        return resolved

    def resolve_by_selection(self, interpretation: Interpretation, ctx: ConversationContext) -> bool:
        """Settle the issue an interpretation commits to, if any."""
        issue = ctx.issue(interpretation.source_issue_id)
        if isinstance(issue, UndefinedTermIssue) and not issue.resolved and interpretation.focus:
            ctx.update_issue(
                issue.model_copy(update={"resolved": True, "definition": interpretation.focus}),
                "selected", interpretation.focus,
            )
            return True
        if not isinstance(issue, ContradictionIssue) or issue.resolved:
            return False
        if interpretation.focus is None or interpretation.focus not in issue.options:
            return False
        self._settle_contradiction(
            issue, interpretation.focus,
            f"Selected interpretation '{interpretation.title}'", ctx,
        )
        return True

    # ── Dispatch ─────────────────────────────────────────────────────────

    def _resolve_targeted(self, issue: Issue, text: str, ctx: ConversationContext) -> bool:
        if issue.id == LOW_CONFIDENCE_ISSUE_ID:
            ctx.update_issue(issue.model_copy(update={"resolved": True}), "answered", text)
            return True
        if isinstance(issue, ContradictionIssue):
            chosen = self._preferred_option(text, issue, asked=True)
            if chosen is None:
                return False
            self._settle_contradiction(issue, chosen, text, ctx)
            return True
        if isinstance(issue, (MissingConstraintIssue, VagueConstraintIssue)):
            excluded = is_exclusion(text, self._tables)
            self._settle_constraint(issue, None if excluded else text, excluded, ctx)
            return True
        if isinstance(issue, UndefinedTermIssue):
            ctx.update_issue(
                issue.model_copy(update={"resolved": True, "definition": text}), "defined", text,
            )
            return True
        if isinstance(issue, AssumptionIssue):
            value = issue.default_value if is_affirmation(text, self._tables) else text
            ctx.update_issue(
                issue.model_copy(update={"resolved": True, "value": value, "validated": True}),
                "validated", value,
            )
            return True
        return False

    def _resolve_free_text(
        self,
        issue: Issue,
        parsed: ParsedRequest,
        text: str,
        asked: bool,
        ctx: ConversationContext,
    ) -> bool:
        t = self._tables
        if issue.id == LOW_CONFIDENCE_ISSUE_ID:
            if parsed.low_confidence:
                return False
            ctx.update_issue(issue.model_copy(update={"resolved": True}), "restated")
            return True

        if isinstance(issue, ContradictionIssue):
            chosen = self._preferred_option(text, issue, asked)
            if chosen is None:
                return False
            self._settle_contradiction(issue, chosen, text.strip(), ctx)
            return True

        if isinstance(issue, (MissingConstraintIssue, VagueConstraintIssue)):
            coverage = category_coverage(constraint_texts(parsed), t)[issue.category]
            if coverage.covered:
                self._settle_constraint(issue, coverage.value, False, ctx)
                return True
            for clause in split_clauses(text):
                if mentions_category(clause, issue.category, t) and is_exclusion(clause, t):
                    self._settle_constraint(issue, None, True, ctx)
                    return True
            return False

        if isinstance(issue, UndefinedTermIssue):
            definition = self._definition_from(issue, parsed, text, asked)
            if definition is None:
                return False
            ctx.update_issue(
                issue.model_copy(update={"resolved": True, "definition": definition}),
                "defined", definition,
            )
            return True

        if isinstance(issue, AssumptionIssue):
            slot = t.assumption_slots.get(issue.slot)
            qualifier_clause = next(
                (c for c in split_clauses(text) if slot and find_keywords(c, slot.qualifiers)),
                None,
            )
            if qualifier_clause is not None:
                value = qualifier_clause
            elif asked and is_affirmation(text, t):
                value = issue.default_value
            else:
                return False
            ctx.update_issue(
                issue.model_copy(update={"resolved": True, "value": value, "validated": True}),
                "validated", value,
            )
            return True

        return False

    # ── Settlement helpers ───────────────────────────────────────────────

    def _settle_contradiction(
        self, issue: ContradictionIssue, chosen: str, rationale: str, ctx: ConversationContext,
    ) -> None:
        tradeoff = Tradeoff(options=list(issue.options), chosen_option=chosen, rationale=rationale)
        ctx.update_issue(
            issue.model_copy(update={"resolved": True, "tradeoff": tradeoff}), "tradeoff", chosen,
        )
        if issue.revision_of:
            target = ctx.issue(issue.revision_of)
            if target is not None:
                field = "definition" if isinstance(target, UndefinedTermIssue) else "value"
                ctx.update_issue(
                    target.model_copy(update={field: chosen, "conflicting_value": None}),
                    "revised", chosen,
                )

    @staticmethod
    def _settle_constraint(
        issue: ConstraintIssue, value: Optional[str], excluded: bool, ctx: ConversationContext,
    ) -> None:
        ctx.update_issue(
            issue.model_copy(update={"resolved": True, "value": value, "excluded": excluded}),
            "excluded" if excluded else "specified", value,
        )

    def _record_revisions(
        self, parsed: ParsedRequest, ctx: ConversationContext, settled_before: set[str],
    ) -> None:
        """Flag resolved values that this response contradicts."""
        t = self._tables
        coverage = category_coverage(constraint_texts(parsed), t)
        for issue_id in sorted(settled_before):
            issue = ctx.issue(issue_id)
            new_value: Optional[str] = None
            if isinstance(issue, (MissingConstraintIssue, VagueConstraintIssue)) and not issue.excluded:
                candidate = coverage[issue.category].value
                old = issue.value or ""
                if candidate and numbers_in(candidate) and not (numbers_in(candidate) & numbers_in(old)):
                    new_value = candidate
            elif isinstance(issue, UndefinedTermIssue):
                entity = parsed.entity(issue.term)
                if entity and entity.definition and entity.definition != issue.definition:
                    new_value = entity.definition
            if new_value is None or new_value == current_value(issue):
                continue

            ctx.update_issue(issue.model_copy(update={"conflicting_value": new_value}), "contradicted", new_value)
            revision = ctx.issue(revision_issue_id(issue.id))
            if revision is not None and revision.resolved:
                ctx.update_issue(revision.model_copy(update={"resolved": False}), "reopened")
            logger.info("Context %s: %s contradicted by new value '%s'", ctx.id, issue.id, new_value)

    # ── Extraction helpers ───────────────────────────────────────────────

    def _preferred_option(self, text: str, issue: ContradictionIssue, asked: bool) -> Optional[str]:
        lowered = text.lower()
        options = list(issue.options)

        if issue.revision_of:
            for option in options:
                if option and option.lower() in lowered:
                    return option
            if find_keywords(lowered, _KEEP_FIRST):
                return options[0]
            if find_keywords(lowered, _TAKE_SECOND):
                return options[1]
            return None

        for clause in split_clauses(lowered):
            if find_keywords(clause, self._tables.preference_markers):
                named = [o for o in options if mentions(clause, o)]
                if named:
                    return min(named, key=lambda o: first_position(clause, o))
        for m in _OVER.finditer(lowered):
            if m.group(1) in options and m.group(2) in options:
                return m.group(1)
        if asked:
            named = [o for o in options if mentions(lowered, o)]
            if len(named) == 1:
                return named[0]
        return None

    def _definition_from(
        self, issue: UndefinedTermIssue, parsed: ParsedRequest, text: str, asked: bool,
    ) -> Optional[str]:
        entity = parsed.entity(issue.term)
        if entity is not None and entity.definition:
            return entity.definition
        if not asked:
            return None
        for alternative in issue.alternatives:
            label = alternative.split(":", 1)[0]
            if mentions(text, label):
                return alternative
        goals = parsed.goal_names()
        if goals and self._tables.is_goal_qualifying(issue.term):
            return " and ".join(goals)
        return None
