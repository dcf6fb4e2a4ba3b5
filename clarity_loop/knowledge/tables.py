"""Knowledge tables — static, read-only vocabulary shared by every session.

Loaded once at start-up, either from the built-in defaults below or from a
JSON document with the same field names.  Nothing mutates a table after
loading, so sessions share one instance without locking.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from clarity_loop.domain.enums import ConstraintCategory, Severity

logger = logging.getLogger(__name__)


class AssumptionSlot(BaseModel):
    """An unstated qualifier the analyzer fills with a default value."""

    qualifiers: list[str]
    default_value: str
    question: str

    model_config = {"frozen": True}


class KnowledgeTables(BaseModel):
    term_definitions: dict[str, str] = Field(default_factory=dict)
    alternative_definitions: dict[str, list[str]] = Field(default_factory=dict)
    goal_qualifying_terms: list[str] = Field(default_factory=list)
    vague_terms: list[str] = Field(default_factory=list)
    goal_terms: list[str] = Field(default_factory=list)
    technical_terms: list[str] = Field(default_factory=list)
    metric_terms: list[str] = Field(default_factory=list)
    constraint_keywords: dict[str, list[str]] = Field(default_factory=dict)
    vague_constraint_keywords: dict[str, list[str]] = Field(default_factory=dict)
    counted_constraint_keywords: dict[str, list[str]] = Field(default_factory=dict)
    constraint_criticality: dict[str, Severity] = Field(default_factory=dict)
    conflict_pairs: list[tuple[str, str]] = Field(default_factory=list)
    assumption_slots: dict[str, AssumptionSlot] = Field(default_factory=dict)
    exclusion_markers: list[str] = Field(default_factory=list)
    affirmation_markers: list[str] = Field(default_factory=list)
    preference_markers: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    # ── Lookups ──────────────────────────────────────────────────────────

    def is_known(self, term: str) -> bool:
        return term.lower() in self.term_definitions

    def alternatives(self, term: str) -> list[str]:
        return list(self.alternative_definitions.get(term.lower(), []))

    def is_goal_qualifying(self, term: str) -> bool:
        return term.lower() in self.goal_qualifying_terms

    def criticality(self, category: str) -> Severity:
        return self.constraint_criticality.get(category, Severity.IMPORTANT)

    def conflicts(self, a: str, b: str) -> bool:
        pair = {a.lower(), b.lower()}
        return any(pair == {x, y} for x, y in self.conflict_pairs)

    @property
    def required_categories(self) -> list[str]:
        return [c.value for c in ConstraintCategory]


# ── Built-in defaults ───────────────────────────────────────────────────────

_DEFAULTS: dict = {
    "term_definitions": {
        "ranking": "An ordering of items by a scoring function",
        "recommendation": "A suggestion of items predicted to interest a user",
        "search": "Retrieval of items matching a query",
        "feed": "A chronologically or algorithmically ordered stream of items",
        "api": "A programmatic interface exposed to other services",
        "dashboard": "A visual summary of metrics for operators",
        "cache": "A fast store of previously computed results",
        "pipeline": "A sequence of processing stages over data",
        "engagement": "How much users interact with surfaced items (clicks, time spent, return visits)",
        "quality": "How well surfaced items meet an agreed standard of usefulness or correctness",
        "privacy": "Limits on collecting and exposing personal data",
        "personalization": "Tailoring results to an individual user's history",
        "retention": "The share of users who keep returning over time",
        "revenue": "Income attributable to the system",
        "growth": "Increase in active users or usage over time",
        "safety": "Absence of harmful or abusive content and outcomes",
        "diversity": "Variety among surfaced items or creators",
        "transparency": "Users can see why results are ordered as they are",
        "simplicity": "Few moving parts and a small surface to learn",
        "flexibility": "Ability to adapt behaviour without rebuilding",
        "fairness": "Absence of systematic advantage for any user group",
        "ctr": "Click-through rate: clicks divided by impressions",
        "dau": "Daily active users",
        "mau": "Monthly active users",
        "nps": "Net promoter score",
        "conversion": "Share of sessions that complete a target action",
    },
    "alternative_definitions": {
        "fair": [
            "Demographic parity: each user group receives exposure proportional to its size",
            "Equal opportunity: equally qualified users rank equally regardless of group",
            "Merit-based: rank strictly by measured contribution",
            "Equal exposure over time: every user is surfaced periodically",
        ],
        "relevant": [
            "Topical relevance: results match the query's subject",
            "Personal relevance: results match the user's history",
        ],
        "good": [
            "Popular: results most users interact with",
            "High quality: results meeting an editorial standard",
        ],
    },
    "goal_qualifying_terms": [
        "fair", "good", "better", "best", "relevant", "useful", "effective",
        "successful", "smart", "engaging",
    ],
    "vague_terms": [
        "fair", "good", "better", "best", "relevant", "useful", "effective",
        "successful", "smart", "engaging", "intuitive", "robust", "seamless",
        "simple", "modern", "optimal",
    ],
    "goal_terms": [
        "engagement", "quality", "privacy", "personalization", "retention",
        "revenue", "growth", "safety", "diversity", "transparency",
        "simplicity", "flexibility", "fairness",
    ],
    "technical_terms": [
        "ranking", "recommendation", "search", "feed", "api", "dashboard",
        "cache", "pipeline", "leaderboard", "classifier",
    ],
    "metric_terms": ["ctr", "dau", "mau", "nps", "conversion"],
    "constraint_keywords": {
        "performance": [
            "latency", "ms", "millisecond", "milliseconds", "seconds",
            "response time", "throughput", "p95", "p99", "qps", "per second",
        ],
        "scale": [
            "million", "millions", "thousand", "thousands", "billion",
            "billions", "hundreds",
        ],
        "boundary": [
            "only", "exclude", "excluding", "excludes", "region", "regions",
            "limited to", "restricted to", "must not", "scope", "country",
            "countries",
        ],
        "quality": [
            "accuracy", "accurate", "precision", "recall", "error rate",
            "correctness", "f1", "false positive", "false positives",
        ],
    },
    "counted_constraint_keywords": {
        "scale": [
            "users", "requests", "records", "items", "concurrent", "daily",
            "per day", "sessions",
        ],
    },
    "vague_constraint_keywords": {
        "performance": ["fast", "quick", "snappy", "responsive", "realtime", "real-time", "instant"],
        "scale": ["large", "big", "massive", "huge", "many", "lots", "scalable"],
        "boundary": ["somewhere", "anywhere"],
        "quality": ["high-quality", "reliable", "trustworthy"],
    },
    "constraint_criticality": {
        "performance": "important",
        "scale": "important",
        "boundary": "critical",
        "quality": "critical",
    },
    "conflict_pairs": [
        ["engagement", "quality"],
        ["engagement", "privacy"],
        ["personalization", "privacy"],
        ["growth", "safety"],
        ["revenue", "fairness"],
        ["simplicity", "flexibility"],
        ["diversity", "personalization"],
    ],
    "assumption_slots": {
        "audience": {
            "qualifiers": [
                "internal", "external", "public", "customer", "customers",
                "employees", "admins", "administrators", "partners",
                "students", "consumers", "everyone", "team",
            ],
            "default_value": "General end users of the product",
            "question": "Who is the audience: internal staff, customers, or the general public?",
        },
        "platform": {
            "qualifiers": [
                "web", "mobile", "ios", "android", "backend", "desktop",
                "service", "microservice", "app",
            ],
            "default_value": "A web-based backend service",
            "question": "Where will this run: web, mobile, or as a backend service?",
        },
        "data": {
            "qualifiers": [
                "data", "dataset", "database", "logs", "history", "events",
                "signals", "records",
            ],
            "default_value": "Existing user interaction data is available",
            "question": "What data will this draw on, and does it already exist?",
        },
    },
    "exclusion_markers": [
        "not needed", "not required", "no need", "n/a", "doesn't matter",
        "does not matter", "don't care", "out of scope", "not a concern",
        "irrelevant",
    ],
    "affirmation_markers": [
        "yes", "yep", "correct", "confirmed", "agree", "agreed",
        "sounds good", "that's right", "ok", "okay", "fine",
    ],
    "preference_markers": [
        "prioritize", "prioritise", "prefer", "favor", "favour", "choose",
        "pick", "focus on", "go with", "more important",
    ],
}


def load_tables(path: Optional[str] = None) -> KnowledgeTables:
    """Load knowledge tables from *path* (JSON) or the built-in defaults."""
    if path is None:
        return KnowledgeTables.model_validate(_DEFAULTS)
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    tables = KnowledgeTables.model_validate(raw)
    logger.info(
        "Loaded knowledge tables from %s (%d terms, %d conflict pairs)",
        path, len(tables.term_definitions), len(tables.conflict_pairs),
    )
    return tables


@lru_cache(maxsize=1)
def default_tables() -> KnowledgeTables:
    """Process-wide built-in tables.  Cached; treat as read-only."""
    return load_tables()
