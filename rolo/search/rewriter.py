"""Canonical rephrasing of free-text contact questions.

Rules are tried in order and the first pattern that matches wins; the order
of ``DEFAULT_RULES`` is the priority order.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import NamedTuple

type RewriteFn = Callable[[re.Match[str], str], str]

UNKNOWN_INTENT = "unknown"

_APOSTROPHE = "['’]"


@dataclass(frozen=True)
class RewriteRule:
    pattern: re.Pattern[str]
    intent: str
    rewrite: RewriteFn
    confidence: float

    def match(self, text: str) -> re.Match[str] | None:
        return self.pattern.search(text)


class RewriteResult(NamedTuple):
    rewritten: str
    intent: str
    confidence: float
    was_rewritten: bool


def _rule(pattern: str, intent: str, rewrite: RewriteFn, confidence: float) -> RewriteRule:
    return RewriteRule(re.compile(pattern, re.IGNORECASE), intent, rewrite, confidence)


def _works_at(m: re.Match[str], _: str) -> str:
    return f"Who works at {m.group(1).strip()}?"


def _about(m: re.Match[str], _: str) -> str:
    return f"Tell me about {m.group(1).strip()}"


def _where_works(m: re.Match[str], _: str) -> str:
    return f"Where does {m.group(1).strip()} work?"


def _all_titles(m: re.Match[str], _: str) -> str:
    return f"Show me all {m.group(1).strip()}s"


def _handle(m: re.Match[str], _: str) -> str:
    return f"What is {m.group(1).strip()}'s {m.group(2)}?"


def _unchanged(_: re.Match[str], original: str) -> str:
    return original


DEFAULT_RULES: tuple[RewriteRule, ...] = (
    # organization membership
    _rule(r"who\s+(?:do\s+I\s+)?know\s+(?:at|in|from)\s+([^?.,]+)", "who_works_at", _works_at, 0.95),
    _rule(r"show\s+me\s+(?:people|connections?)\s+(?:at|from|in)\s+([^?.,]+)", "who_works_at", _works_at, 0.85),
    _rule(r"find\s+me\s+(?:connections?|people)\s+(?:at|from|in)\s+([^?.,]+)", "who_works_at", _works_at, 0.85),
    _rule(r"who\s+works?\s+at\s+([^?.,]+)", "who_works_at", _works_at, 0.95),
    _rule(r"people\s+(?:I\s+know|in\s+my\s+network)\s+(?:at|from|in)\s+([^?.,]+)", "who_works_at", _works_at, 0.80),
    _rule(
        r"who\s+(?:in\s+my\s+network|in\s+my\s+connections?)\s+works?\s+(?:at|for)\s+([^?.,]+)",
        "who_works_at",
        _works_at,
        0.90,
    ),
    # person info
    _rule(r"tell\s+me\s+about\s+([^?.,]+)", "person_info", _about, 0.90),
    _rule(r"who\s+is\s+([^?.,]+)", "person_info", _about, 0.85),
    _rule(r"(?:information|details?)\s+about\s+([^?.,]+)", "person_info", _about, 0.80),
    # where someone works
    _rule(r"where\s+(?:can\s+I\s+find|is)\s+([^?.,]+?)\s+(?:working|at)", "where_works", _where_works, 0.85),
    _rule(
        r"what\s+(?:company|organization)\s+does\s+([^?.,]+?)\s+(?:work|employed)",
        "where_works",
        _where_works,
        0.90,
    ),
    _rule(r"who\s+does\s+([^?.,]+?)\s+work\s+(?:for|at)", "where_works", _where_works, 0.95),
    # titles
    _rule(r"show\s+me\s+(?:all\s+)?(ceo|cto|chief\s+\w+)", "by_title", _all_titles, 0.85),
    _rule(r"find\s+(?:all\s+)?(ceo|cto|chief\s+\w+)", "by_title", _all_titles, 0.80),
    # social handles
    _rule(
        rf"what{_APOSTROPHE}?s\s+([^'’?]+?){_APOSTROPHE}?s\s+(twitter|linkedin|social\s+media)",
        "social_media",
        _handle,
        0.90,
    ),
    _rule(
        rf"what\s+is\s+([^'’?]+?){_APOSTROPHE}?s\s+(twitter|linkedin|social\s+media)",
        "social_media",
        _handle,
        0.95,
    ),
    # compound questions pass through untouched
    _rule(r"(.+?)\s+and\s+(.+)", "compound", _unchanged, 0.80),
    _rule(r"(.+?)\s*\?\s*(.+?)\s*\?", "compound", _unchanged, 0.85),
)


class QueryRewriter:
    def __init__(self, rules: tuple[RewriteRule, ...] = DEFAULT_RULES):
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[RewriteRule, ...]:
        return self._rules

    def with_rule(self, rule: RewriteRule) -> "QueryRewriter":
        return QueryRewriter(self._rules + (rule,))

    def rewrite(self, text: str) -> RewriteResult:
        for rule in self._rules:
            match = rule.match(text)
            if match:
                return RewriteResult(
                    rewritten=rule.rewrite(match, text),
                    intent=rule.intent,
                    confidence=rule.confidence,
                    was_rewritten=True,
                )
        return RewriteResult(rewritten=text, intent=UNKNOWN_INTENT, confidence=0.0, was_rewritten=False)

    def explain(self, text: str) -> list[tuple[RewriteRule, bool]]:
        return [(rule, rule.match(text) is not None) for rule in self._rules]
