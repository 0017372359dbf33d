from typing import Dict, List, Sequence

from site_search.schemas.search import SearchSuggestion
from site_search.services.index import ContentIndex
from site_search.services.matcher import normalize_text

TITLE_PREFIX_SCORE = 0.9
HISTORY_PREFIX_SCORE = 0.6
CATEGORY_SUBSTRING_SCORE = 0.3

TRENDING_SCORE = 0.5
RECENT_SCORE = 0.4


class SuggestionGenerator:
    """Autocomplete candidates from the index and the user's past queries."""

    def suggest(
        self,
        index: ContentIndex,
        history_queries: Sequence[str],
        partial_text: str,
        max_results: int,
    ) -> List[SearchSuggestion]:
        prefix = normalize_text(partial_text)
        if not prefix or max_results <= 0:
            return []

        candidates: Dict[str, SearchSuggestion] = {}

        def add(suggestion: SearchSuggestion) -> None:
            # First source to claim a text keeps it
            candidates.setdefault(normalize_text(suggestion.text), suggestion)

        for item in index.all():
            if normalize_text(item.title).startswith(prefix):
                add(SearchSuggestion(
                    id=f"title-{item.id}",
                    text=item.title,
                    type="query",
                    score=TITLE_PREFIX_SCORE,
                    metadata={"url": item.url, "type": item.type},
                ))
        for tag in index.tags():
            if tag.lower().startswith(prefix):
                add(SearchSuggestion(
                    id=f"tag-{tag.lower()}",
                    text=tag,
                    type="filter",
                    score=TITLE_PREFIX_SCORE,
                    metadata={"filter": "tags", "value": tag},
                ))

        for query in history_queries:
            if normalize_text(query).startswith(prefix):
                add(SearchSuggestion(
                    id=f"history-{normalize_text(query)}",
                    text=query,
                    type="query",
                    score=HISTORY_PREFIX_SCORE,
                ))

        for category in index.categories():
            if prefix in category.lower():
                add(SearchSuggestion(
                    id=f"category-{category.lower()}",
                    text=category,
                    type="category",
                    score=CATEGORY_SUBSTRING_SCORE,
                    metadata={"filter": "categories", "value": category},
                ))

        ranked = sorted(candidates.values(), key=lambda s: (-s.score, s.text.lower()))
        return ranked[:max_results]

    def idle_suggestions(
        self,
        recent_queries: Sequence[str],
        popular_queries: Sequence[str],
        max_results: int,
    ) -> List[SearchSuggestion]:
        """Suggestions for an empty search box: trending first, then recent."""
        suggestions: List[SearchSuggestion] = []
        seen = set()
        sources = (
            (popular_queries[:3], "trending", TRENDING_SCORE),
            (recent_queries[:3], "recent", RECENT_SCORE),
        )
        for queries, source, score in sources:
            for query in queries:
                key = normalize_text(query)
                if not key or key in seen:
                    continue
                seen.add(key)
                suggestions.append(SearchSuggestion(
                    id=f"{source}-{key}",
                    text=query,
                    type="query",
                    score=score,
                    metadata={"source": source},
                ))
        return suggestions[:max_results]
