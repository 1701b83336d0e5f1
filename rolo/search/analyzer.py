import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict

from rolo.constants import COMPOUND_DEFAULT_CONFIDENCE, HYBRID_CONFIDENCE, SEMANTIC_FALLBACK_CONFIDENCE
from rolo.search.rewriter import QueryRewriter, RewriteResult
from rolo.search.types import Intent, QueryType, Strategy

COMPOUND_INTENT = "compound"
PRONOUNS = frozenset({"his", "her", "he", "she", "they", "their"})

_CONJUNCTION = re.compile(r"\s+and\s+", re.IGNORECASE)

# Lazy captures stop at the next clause boundary; \b keeps "Anderson" from ending a name at "And".
_STOP = r"(?:\s+and\b|\s+or\b|\?|$)"
_PERSON_STOP = r"(?:\s+work(?:s|ing|ed)?\b|\s+think(?:s|ing)?\b|\s+and\b|\s+or\b|\?|$)"
_NAME = r"([A-Za-z\s]+?)"
_APOSTROPHE_S = r"['’]s"
_PLATFORMS = r"twitter|linkedin|facebook|instagram|github|social\s+media"


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


PERSON_PATTERNS = _compile(
    rf"\b(his|her)\s+(?:thoughts|opinions?|views?|ideas|work|company|role|title|{_PLATFORMS})\b",
    rf"where\s+does\s+{_NAME}\s+work",
    rf"what\s+(?:are|is)\s+{_NAME}{_APOSTROPHE_S}\s+(?:thoughts|opinions?|views?)",
    rf"what\s+is\s+{_NAME}{_APOSTROPHE_S}\s+(?:{_PLATFORMS})",
    rf"(?:about|who\s+is)\s+{_NAME}{_PERSON_STOP}",
    rf"{_NAME}{_APOSTROPHE_S}\s+(?:thoughts|opinions?|work|company)",
    rf"(?:find|search\s+for)\s+{_NAME}{_STOP}",
)

ORGANIZATION_PATTERNS = _compile(
    rf"\b(?:at|for)\s+([^?.,]+?){_STOP}",
    rf"\b(?:company|organization)\s+([^?.,]+?){_STOP}",
)

TITLE_PATTERNS = _compile(
    r"\b(ceo|cto|cfo|coo|chief\s+\w+\s+officer|chief\s+\w+|vp|vice\s+president|"
    r"director|manager|engineer|developer|founder|designer)s?\b",
    rf"\b(?:title|role)\s+(?:of\s+)?(?!(?:at|for|in|on|with|as)\b)([^?.,]+?){_STOP}",
)

PLATFORM_PATTERNS = _compile(
    rf"\b({_PLATFORMS})\b",
    rf"\b(?:platform|handle)\s+(?:on\s+)?([^?.,]+?){_STOP}",
)


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class ExtractedEntities(_FrozenModel):
    people: tuple[str, ...] = ()
    organizations: tuple[str, ...] = ()
    titles: tuple[str, ...] = ()
    platforms: tuple[str, ...] = ()

    def has_any(self) -> bool:
        return bool(self.people or self.organizations or self.titles or self.platforms)

    def first(self, category: str) -> str | None:
        values = getattr(self, category)
        return values[0] if values else None

    def as_dict(self) -> dict[str, list[str]]:
        return {name: list(values) for name, values in self if values}


class QueryAnalysis(_FrozenModel):
    query_type: QueryType
    intent: Intent
    strategy: Strategy
    confidence: float
    entities: ExtractedEntities = ExtractedEntities()
    patterns: tuple[str, ...] = ()
    original_query: str
    rewritten_query: str
    rewrite_confidence: float = 0.0
    was_rewritten: bool = False


@dataclass
class DiscourseContext:
    """Last-mentioned entity per category, carried from one conjunct to the next.

    Only earlier conjuncts can be referenced: a pronoun seen before any person
    has been mentioned resolves to nothing.
    """

    last_mentioned: dict[str, str] = field(default_factory=dict)

    def mention(self, category: str, value: str) -> None:
        self.last_mentioned[category] = value

    def resolve(self, category: str, token: str) -> str | None:
        if token.lower() not in PRONOUNS:
            return token
        return self.last_mentioned.get(category)


def _first_match(patterns: tuple[re.Pattern[str], ...], text: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1) and match.group(1).strip():
            return match.group(1).strip()
    return None


def _append_unique(values: list[str], value: str | None) -> None:
    if value and value not in values:
        values.append(value)


def split_conjuncts(text: str) -> list[str]:
    return [part.strip() for part in _CONJUNCTION.split(text) if part.strip()]


def extract_entities(conjuncts: list[str], context: DiscourseContext | None = None) -> ExtractedEntities:
    """Extract people, organizations, titles and platforms conjunct by conjunct."""
    context = context or DiscourseContext()
    people: list[str] = []
    organizations: list[str] = []
    titles: list[str] = []
    platforms: list[str] = []

    for conjunct in conjuncts:
        person = _first_match(PERSON_PATTERNS, conjunct)
        if person is not None:
            resolved = context.resolve("people", person)
            _append_unique(people, resolved)
        # Mentions are recorded after the conjunct so a pronoun never refers inside its own clause
        if person is not None and person.lower() not in PRONOUNS:
            context.mention("people", person)

        _append_unique(organizations, _first_match(ORGANIZATION_PATTERNS, conjunct))
        _append_unique(titles, _first_match(TITLE_PATTERNS, conjunct))

        platform = _first_match(PLATFORM_PATTERNS, conjunct)
        _append_unique(platforms, platform.lower() if platform else None)

    return ExtractedEntities(
        people=tuple(people),
        organizations=tuple(organizations),
        titles=tuple(titles),
        platforms=tuple(platforms),
    )


# --- Classification cascade ---


class Signals(NamedTuple):
    text: str  # lowercased rewritten query
    rewrite_intent: str
    rewrite_confidence: float
    has_entities: bool


@dataclass(frozen=True)
class Classification:
    query_type: QueryType
    intent: Intent
    strategy: Strategy
    confidence: float
    patterns: tuple[str, ...] = ()


type Matcher = Callable[[Signals], Classification | None]


def _has(text: str, *needles: str) -> bool:
    return any(n in text for n in needles)


def is_who_works_at(text: str) -> bool:
    return "who" in text and "work" in text and "does" not in text and _has(text, "at", "for")


def is_person_info(text: str) -> bool:
    return _has(text, "tell me about", "who is", "information about") and "work" not in text


def is_where_works(text: str) -> bool:
    return (
        ("where" in text and "work" in text and "does" in text)
        or ("what" in text and "company" in text and "work" in text and "does" in text)
        or ("who" in text and "work" in text and "does" in text)
    )


def is_by_title(text: str) -> bool:
    return _has(text, "ceo", "cto", "chief") and _has(text, "show me", "find", "all")


def is_social_media(text: str) -> bool:
    return _has(text, "twitter", "linkedin", "social media") and "what" in text


def has_compound_structure(text: str) -> bool:
    return (
        _has(text, " and ", " or ")
        or text.count("?") > 1
        or ("where" in text and "what" in text)
        or ("who" in text and "what" in text)
        or ("how" in text and "why" in text)
    )


STRUCTURED_KEYWORDS = ("work", "company", "organization", "title", "role")
SEMANTIC_KEYWORDS = ("thoughts", "opinion", "think", "believe", "about", "ideas", "view", "perspective")
ACTION_WORDS = ("find", "search", "look for")


def is_hybrid(text: str, has_entities: bool) -> bool:
    if not has_entities:
        return False
    mixed = _has(text, *STRUCTURED_KEYWORDS) and _has(text, *SEMANTIC_KEYWORDS)
    return has_compound_structure(text) or mixed or _has(text, *ACTION_WORDS)


def compound_matcher(signals: Signals) -> Classification | None:
    if signals.rewrite_intent != COMPOUND_INTENT:
        return None
    return Classification(
        QueryType.HYBRID,
        Intent.COMPOUND,
        Strategy.HYBRID,
        signals.rewrite_confidence or COMPOUND_DEFAULT_CONFIDENCE,
        ("compound",),
    )


def structured_matcher(
    name: str, predicate: Callable[[str], bool], intent: Intent, default_confidence: float
) -> Matcher:
    def matcher(signals: Signals) -> Classification | None:
        if not predicate(signals.text):
            return None
        return Classification(
            QueryType.STRUCTURED,
            intent,
            Strategy.BASIC_ONLY,
            signals.rewrite_confidence or default_confidence,
            (name,),
        )

    matcher.__name__ = name
    return matcher


def hybrid_matcher(signals: Signals) -> Classification | None:
    if not is_hybrid(signals.text, signals.has_entities):
        return None
    return Classification(QueryType.HYBRID, Intent.GENERAL, Strategy.HYBRID, HYBRID_CONFIDENCE, ("hybrid",))


def semantic_fallback(_: Signals) -> Classification:
    return Classification(QueryType.SEMANTIC, Intent.GENERAL, Strategy.SEMANTIC_ONLY, SEMANTIC_FALLBACK_CONFIDENCE)


CASCADE: tuple[Matcher, ...] = (
    compound_matcher,
    structured_matcher("who_works_at", is_who_works_at, Intent.ORGANIZATION, 0.9),
    structured_matcher("person_info", is_person_info, Intent.PERSON_INFO, 0.9),
    structured_matcher("where_works", is_where_works, Intent.LOCATION, 0.9),
    structured_matcher("by_title", is_by_title, Intent.TITLE, 0.85),
    structured_matcher("social_media", is_social_media, Intent.SOCIAL_MEDIA, 0.85),
    hybrid_matcher,
)


def classify(signals: Signals, cascade: tuple[Matcher, ...] = CASCADE) -> Classification:
    for matcher in cascade:
        result = matcher(signals)
        if result is not None:
            return result
    return semantic_fallback(signals)


class QueryAnalyzer:
    def __init__(self, rewriter: QueryRewriter | None = None, cascade: tuple[Matcher, ...] = CASCADE):
        self.rewriter = rewriter or QueryRewriter()
        self.cascade = cascade

    def extract(self, text: str, rewrite: RewriteResult) -> ExtractedEntities:
        if rewrite.intent == COMPOUND_INTENT:
            return extract_entities(split_conjuncts(text))
        return extract_entities([text])

    def analyze(self, text: str) -> QueryAnalysis:
        rewrite = self.rewriter.rewrite(text)
        query = rewrite.rewritten
        entities = self.extract(query, rewrite)

        classification = classify(
            Signals(
                text=query.lower(),
                rewrite_intent=rewrite.intent,
                rewrite_confidence=rewrite.confidence,
                has_entities=entities.has_any(),
            ),
            self.cascade,
        )

        return QueryAnalysis(
            query_type=classification.query_type,
            intent=classification.intent,
            strategy=classification.strategy,
            confidence=classification.confidence,
            entities=entities,
            patterns=classification.patterns,
            original_query=text,
            rewritten_query=query,
            rewrite_confidence=rewrite.confidence,
            was_rewritten=rewrite.was_rewritten,
        )
