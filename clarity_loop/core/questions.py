"""QuestionGenerator — prioritised, never-repeating clarifying questions.

Priority:
    priority = severity weight (critical=3, important=2, minor=1)
             - age_penalty * min(turns the issue has stayed open, age_cap)

The age term is capped, so an issue that has been open for a long time
is not pushed down any further.  Ties break on issue id, ascending.

Question ids are derived from (issue id, category[, round]).  Issues that
were never asked come first; only when every open issue has been asked
does the generator emit follow-up rounds, each under a fresh id.
"""

from __future__ import annotations

import logging

from clarity_loop.domain.conversation import ConversationContext
from clarity_loop.domain.enums import IssueKind, Mode, QuestionCategory, Severity
from clarity_loop.domain.issue import (
    LOW_CONFIDENCE_ISSUE_ID,
    AssumptionIssue,
    ContradictionIssue,
    Issue,
    MissingConstraintIssue,
    UndefinedTermIssue,
    VagueConstraintIssue,
)
from clarity_loop.domain.question import Question
from clarity_loop.domain.report import ClarityReport, ModeThresholds
from clarity_loop.foundation.identifiers import question_key
from clarity_loop.knowledge.tables import KnowledgeTables, default_tables

logger = logging.getLogger(__name__)

FALLBACK_QUESTIONS = (
    "What problem are you trying to solve?",
    "Who will use this?",
    "What constraints matter most?",
)

_FALLBACK_CATEGORIES = (
    QuestionCategory.DEFINITION,
    QuestionCategory.ASSUMPTION,
    QuestionCategory.CONSTRAINT,
)

_PRIORITY = {Severity.CRITICAL: 3.0, Severity.IMPORTANT: 2.0, Severity.MINOR: 1.0}

_CATEGORY = {
    IssueKind.UNDEFINED_TERM: QuestionCategory.DEFINITION,
    IssueKind.MULTIPLE_INTERPRETATION: QuestionCategory.DEFINITION,
    IssueKind.VAGUE_CONSTRAINT: QuestionCategory.CONSTRAINT,
    IssueKind.MISSING_CONSTRAINT: QuestionCategory.CONSTRAINT,
    IssueKind.CONTRADICTION: QuestionCategory.TRADEOFF,
    IssueKind.ASSUMPTION: QuestionCategory.ASSUMPTION,
}

_CONSTRAINT_PROMPTS = {
    "performance": "What response time or throughput must this meet?",
    "scale": "How many users, requests or records must this handle?",
    "boundary": "What is in scope, and what is explicitly excluded?",
    "quality": "How will result quality be measured (accuracy, precision, error rate)?",
}


class QuestionGenerator:
    """Turns open issues into at most ``max_questions`` questions."""

    def __init__(
        self,
        tables: KnowledgeTables | None = None,
        max_questions: int = 5,
        age_penalty: float = 0.1,
        age_penalty_cap: int = 3,
        thresholds: dict[Mode, ModeThresholds] | None = None,
    ) -> None:
        self._tables = tables or default_tables()
        self._max = max_questions
        self._age_penalty = age_penalty
        self._age_cap = age_penalty_cap
        self._thresholds = thresholds or {
            Mode.CHALLENGE: ModeThresholds.challenge(),
            Mode.BUILD: ModeThresholds.build(),
        }

    # ── Public API ───────────────────────────────────────────────────────

    def generate(self, report: ClarityReport, ctx: ConversationContext) -> list[Question]:
        if report.sufficient:
            return []
        if report.low_confidence:
            return self._fallback(ctx)

        open_issues = self._askable(report, ctx)
        if not open_issues:
            logger.warning(
                "Context %s: insufficient report with no askable issue, using fallback questions",
                ctx.id,
            )
            return self._fallback(ctx)

        fresh = [
            i for i in open_issues
            if question_key(i.id, _CATEGORY[IssueKind(i.kind)].value) not in ctx.asked_question_ids
        ]
        candidates = fresh or open_issues
        ranked = sorted(candidates, key=lambda i: (-self._priority(i, ctx), i.id))[: self._max]

        questions = [self._question_for(issue, ctx, follow_up=not fresh) for issue in ranked]
        logger.debug("Context %s: generated %d question(s)", ctx.id, len(questions))
        return questions

    # ── Selection ────────────────────────────────────────────────────────

    def _askable(self, report: ClarityReport, ctx: ConversationContext) -> list[Issue]:
        thresholds = self._thresholds[ctx.mode]
        selected = ctx.selected
        # Only a reading of a goal conflict narrows which conflicts are asked
        if selected is not None and not isinstance(ctx.issue(selected.source_issue_id), ContradictionIssue):
            selected = None
        issues = []
        for issue in report.unresolved:
            if issue.severity == Severity.MINOR and not thresholds.count_minor:
                continue
            if (
                selected is not None
                and isinstance(issue, ContradictionIssue)
                and not issue.revision_of
                and not any(
                    name in d.lower() for name in issue.affected for d in selected.differentiators
                )
            ):
                continue
            issues.append(issue)
        return issues

    def _priority(self, issue: Issue, ctx: ConversationContext) -> float:
        age = max(0, ctx.iteration_count - issue.first_seen)
        return round(_PRIORITY[issue.severity] - self._age_penalty * min(age, self._age_cap), 4)

    # ── Construction ─────────────────────────────────────────────────────

    def _question_for(self, issue: Issue, ctx: ConversationContext, follow_up: bool) -> Question:
        category = _CATEGORY[IssueKind(issue.kind)]
        round_ = 1
        qid = question_key(issue.id, category.value)
        while qid in ctx.asked_question_ids:
            round_ += 1
            qid = question_key(issue.id, category.value, round_)
        text = self._text_for(issue)
        if follow_up:
            text = f"Still open: {text}"
        return Question(
            id=qid,
            text=text,
            category=category,
            priority=self._priority(issue, ctx),
            issue_id=issue.id,
        )

    def _text_for(self, issue: Issue) -> str:
        if isinstance(issue, UndefinedTermIssue):
            text = f"What do you mean by '{issue.term}'?"
            if issue.alternatives:
                labels = [alt.split(":", 1)[0] for alt in issue.alternatives]
                text += " For example: " + "; ".join(labels) + "."
            return text
        if isinstance(issue, VagueConstraintIssue):
            return (
                f"You said '{issue.vague_value}'. What concrete {issue.category} "
                f"target do you need? {_CONSTRAINT_PROMPTS.get(issue.category, '')}"
            ).strip()
        if isinstance(issue, MissingConstraintIssue):
            return _CONSTRAINT_PROMPTS.get(
                issue.category, f"What {issue.category} constraint applies?",
            )
        if isinstance(issue, ContradictionIssue):
            first, second = issue.options[0], issue.options[1]
            if issue.revision_of:
                target = next(iter(sorted(issue.affected)), "this")
                return f"You gave two values for {target}: '{first}' and '{second}'. Which one should stand?"
            return (
                f"'{first}' and '{second}' pull in opposite directions. "
                "Which should take priority, and why?"
            )
        if isinstance(issue, AssumptionIssue):
            slot = self._tables.assumption_slots.get(issue.slot)
            prompt = slot.question if slot else f"What {issue.slot} should be assumed?"
            return f"{prompt} (Assuming: {issue.default_value})"
        return FALLBACK_QUESTIONS[0]

    def _fallback(self, ctx: ConversationContext) -> list[Question]:
        """The fixed generic triple, under ids not yet used in this session."""
        round_ = 1
        while any(
            question_key(LOW_CONFIDENCE_ISSUE_ID, f"fallback_{n}", round_) in ctx.asked_question_ids
            for n in range(len(FALLBACK_QUESTIONS))
        ):
            round_ += 1
        return [
            Question(
                id=question_key(LOW_CONFIDENCE_ISSUE_ID, f"fallback_{n}", round_),
                text=text,
                category=_FALLBACK_CATEGORIES[n],
                priority=_PRIORITY[Severity.CRITICAL],
                issue_id=LOW_CONFIDENCE_ISSUE_ID,
            )
            for n, text in enumerate(FALLBACK_QUESTIONS)
        ]
