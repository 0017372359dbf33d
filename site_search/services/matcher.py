"""
Query matching and relevance ranking over a ContentIndex.

Scoring weights per query token:
- title substring:               0.7
- description/content substring: 0.4
- tag exact match:               0.5
A token's combined weight is capped at TOKEN_CEILING, the item score is the
mean capped token score plus 1.0 for an exact title match, clamped to 1.0.
"""
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from site_search.schemas.search import SearchableItem, SearchQuery, SearchResult
from site_search.services.index import ContentIndex

TITLE_EXACT_WEIGHT = 1.0
TITLE_TOKEN_WEIGHT = 0.7
BODY_TOKEN_WEIGHT = 0.4
TAG_EXACT_WEIGHT = 0.5
TOKEN_CEILING = 1.0

BROWSE_SCORE = 1.0

# An unclosed quote runs to the end of the text
_TOKEN_RE = re.compile(r'"([^"]*)"?|(\S+)')
_OPERATORS = ("type", "category", "tag")


@dataclass(frozen=True)
class ParsedQuery:
    terms: Tuple[str, ...] = ()
    types: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()

    @property
    def phrase(self) -> str:
        return " ".join(self.terms)


def normalize_text(text: str) -> str:
    """Lower-case and collapse whitespace."""
    return " ".join(text.lower().split())


def tokenize(text: str) -> List[str]:
    return normalize_text(text).split()


def parse_query_text(text: str) -> ParsedQuery:
    """
    Split query text into search terms and field operators.

    ``type:project``, ``category:consulting`` and ``tag:react`` narrow the
    filters; a double-quoted phrase is kept as a single term.
    """
    terms: List[str] = []
    operators: Dict[str, List[str]] = {name: [] for name in _OPERATORS}

    for match in _TOKEN_RE.finditer(text):
        phrase, word = match.group(1), match.group(2)
        if phrase is not None:
            phrase = normalize_text(phrase)
            if phrase:
                terms.append(phrase)
            continue

        name, sep, value = word.partition(":")
        if sep and name.lower() in operators and value:
            operators[name.lower()].append(value.lower())
        else:
            terms.append(word.lower())

    return ParsedQuery(
        terms=tuple(terms),
        types=tuple(operators["type"]),
        categories=tuple(operators["category"]),
        tags=tuple(operators["tag"]),
    )


def score_item(item: SearchableItem, parsed: ParsedQuery) -> float:
    if not parsed.terms:
        return 0.0

    title = item.title.lower()
    body = f"{item.description} {item.content}".lower()
    tags = {t.lower() for t in item.tags}

    exact = TITLE_EXACT_WEIGHT if parsed.phrase == normalize_text(item.title) else 0.0

    total = 0.0
    for term in parsed.terms:
        weight = 0.0
        if term in title:
            weight += TITLE_TOKEN_WEIGHT
        if term in body:
            weight += BODY_TOKEN_WEIGHT
        if term in tags:
            weight += TAG_EXACT_WEIGHT
        total += min(weight, TOKEN_CEILING)

    mean = total / (len(parsed.terms) * TOKEN_CEILING)
    return min(1.0, exact + mean)


def _any_of(wanted, value: str) -> bool:
    return not wanted or value.lower() in {w.lower() for w in wanted}


def _passes_filters(item: SearchableItem, query: SearchQuery, parsed: ParsedQuery) -> bool:
    filters = query.filters
    item_tags = {t.lower() for t in item.tags}

    if not _any_of(filters.types, item.type) or not _any_of(parsed.types, item.type):
        return False
    if not _any_of(filters.categories, item.category) or not _any_of(parsed.categories, item.category):
        return False
    for wanted in (filters.tags, parsed.tags):
        if wanted and not item_tags & {t.lower() for t in wanted}:
            return False
    if filters.date_range is not None:
        if not filters.date_range.start <= item.last_updated <= filters.date_range.end:
            return False
    return True


SORT_KEYS: Dict[str, Callable[[SearchResult], object]] = {
    "relevance": lambda r: r.relevance_score,
    "date": lambda r: r.item.last_updated,
    "title": lambda r: r.item.title.lower(),
    "type": lambda r: r.item.type,
}


class QueryMatcher:
    """Pure matcher: the same index and query always yield the same list."""

    def __init__(self, snippet_length: int = 150):
        self.snippet_length = snippet_length

    def match(self, index: ContentIndex, query: SearchQuery) -> List[SearchResult]:
        results, _ = self.search(index, query)
        return results

    def search(self, index: ContentIndex, query: SearchQuery) -> Tuple[List[SearchResult], int]:
        """Return the requested page of results and the total hit count."""
        parsed = parse_query_text(query.text)
        browse = not parsed.terms
        min_relevance = query.filters.min_relevance

        hits: List[SearchResult] = []
        for item in index.all():
            score = BROWSE_SCORE if browse else score_item(item, parsed)
            if score <= 0.0:
                continue
            if not _passes_filters(item, query, parsed):
                continue
            if min_relevance is not None and score < min_relevance:
                continue
            hits.append(SearchResult(
                item=item,
                relevance_score=score,
                snippet=self.build_snippet(item, parsed.terms),
            ))

        # Stable sorts: id ascending survives as the tie-breaker
        hits.sort(key=lambda r: r.item.id)
        hits.sort(key=SORT_KEYS[query.sort_by], reverse=query.sort_order == "desc")

        total = len(hits)
        page = hits[query.offset:query.offset + query.limit]
        return page, total

    def build_snippet(self, item: SearchableItem, terms: Tuple[str, ...]) -> Optional[str]:
        text = item.description or item.content
        if not text:
            return None

        start = 0
        pattern = None
        if terms:
            alternatives = "|".join(re.escape(t) for t in sorted(set(terms), key=len, reverse=True))
            pattern = re.compile(f"({alternatives})", re.IGNORECASE)
            # Offsets come from the original text; lower() can change its length
            first = pattern.search(text)
            if first is not None:
                start = max(0, first.start() - self.snippet_length // 4)
        snippet = text[start:start + self.snippet_length]
        if start > 0:
            snippet = "..." + snippet
        if start + self.snippet_length < len(text):
            snippet = snippet + "..."

        if pattern is not None:
            snippet = pattern.sub(r"<mark>\1</mark>", snippet)
        return snippet
