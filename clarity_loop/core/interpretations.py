"""InterpretationGenerator — distinct candidate readings of an ambiguous request.

Triggered by an open goal contradiction (one reading per side, plus a
blended one) or by an undefined term with several known definitions (one
reading per definition).  Within a batch no two interpretations share a
key assumption; a reading left with none is dropped, and a batch of fewer
than two is not offered at all.
"""

from __future__ import annotations

import logging

from clarity_loop.domain.enums import IssueKind
from clarity_loop.domain.issue import ContradictionIssue, UndefinedTermIssue
from clarity_loop.domain.question import Interpretation
from clarity_loop.domain.report import ClarityReport
from clarity_loop.domain.request import ParsedRequest
from clarity_loop.foundation.identifiers import normalize_name
from clarity_loop.knowledge.tables import KnowledgeTables, default_tables

logger = logging.getLogger(__name__)

MIN_INTERPRETATIONS = 2
MAX_INTERPRETATIONS = 4


class InterpretationGenerator:
    def __init__(self, tables: KnowledgeTables | None = None) -> None:
        self._tables = tables or default_tables()

    def generate(self, parsed: ParsedRequest, report: ClarityReport) -> list[Interpretation]:
        """Return 0 or 2–4 interpretations with pairwise-disjoint key assumptions."""
        subject = parsed.intent or "the request"

        contradictions = sorted(
            (i for i in report.unresolved_of(IssueKind.CONTRADICTION)
             if isinstance(i, ContradictionIssue) and not i.revision_of),
            key=lambda i: i.id,
        )
        if contradictions:
            return self._distinct(self._from_contradiction(contradictions[0], subject))

        ambiguous = sorted(
            (i for i in report.unresolved_of(IssueKind.UNDEFINED_TERM)
             if isinstance(i, UndefinedTermIssue)
             and len(self._tables.alternatives(i.term)) >= MIN_INTERPRETATIONS),
            key=lambda i: i.id,
        )
        if ambiguous:
            return self._distinct(self._from_term(ambiguous[0]))
        return []

    # ── Builders ─────────────────────────────────────────────────────────

    @staticmethod
    def _from_contradiction(issue: ContradictionIssue, subject: str) -> list[Interpretation]:
        a, b = issue.options[0], issue.options[1]
        return [
            Interpretation(
                id=f"interp:{issue.id}:{normalize_name(a)}",
                title=f"{a.capitalize()}-focused",
                key_assumptions=frozenset({
                    f"{a} is the primary objective",
                    f"{b} is a guardrail, not a target",
                }),
                implications=frozenset({
                    f"{subject} is tuned and evaluated on {a} first",
                    f"{b} may degrade within agreed limits",
                }),
                differentiators=frozenset({f"prioritizes {a}", f"deprioritizes {b}"}),
                source_issue_id=issue.id,
                focus=a,
            ),
            Interpretation(
                id=f"interp:{issue.id}:{normalize_name(b)}",
                title=f"{b.capitalize()}-focused",
                key_assumptions=frozenset({
                    f"{b} is the primary objective",
                    f"{a} is a guardrail, not a target",
                }),
                implications=frozenset({
                    f"{subject} is tuned and evaluated on {b} first",
                    f"{a} may degrade within agreed limits",
                }),
                differentiators=frozenset({f"prioritizes {b}", f"deprioritizes {a}"}),
                source_issue_id=issue.id,
                focus=b,
            ),
            Interpretation(
                id=f"interp:{issue.id}:balanced",
                title=f"Balanced {a} and {b}",
                key_assumptions=frozenset({f"{a} and {b} are blended into one weighted score"}),
                implications=frozenset({
                    "The blend weights must be agreed explicitly",
                    f"Neither {a} nor {b} is maximised",
                }),
                differentiators=frozenset({f"weights {a} against {b}"}),
                source_issue_id=issue.id,
            ),
        ]

    def _from_term(self, issue: UndefinedTermIssue) -> list[Interpretation]:
        interpretations = []
        for alternative in self._tables.alternatives(issue.term)[:MAX_INTERPRETATIONS]:
            label, _, detail = alternative.partition(":")
            interpretations.append(Interpretation(
                id=f"interp:{issue.id}:{normalize_name(label)}",
                title=f"'{issue.term}' as {label.strip().lower()}",
                key_assumptions=frozenset({f"'{issue.term}' means {label.strip().lower()}"}),
                implications=frozenset({(detail or label).strip()}),
                differentiators=frozenset({label.strip().lower()}),
                source_issue_id=issue.id,
                focus=alternative,
            ))
        return interpretations

    @staticmethod
    def _distinct(candidates: list[Interpretation]) -> list[Interpretation]:
        used: set[str] = set()
        kept: list[Interpretation] = []
        for interp in candidates:
            own = interp.key_assumptions - used
            if not own:
                logger.debug("Dropped interpretation '%s': no distinct assumption", interp.title)
                continue
            used |= own
            kept.append(interp.model_copy(update={"key_assumptions": own}))
            if len(kept) == MAX_INTERPRETATIONS:
                break
        return kept if len(kept) >= MIN_INTERPRETATIONS else []
