"""
Search analytics, rebuilt on demand from the history log.

The aggregator holds no state of its own; calling ``aggregate`` twice with
the same history gives the same answer.
"""
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Sequence

from site_search.schemas.discovery import (
    PopularQuery, PopularResult, SearchAnalytics, SearchTrend, UserBehavior
)
from site_search.schemas.history import SearchHistoryEntry
from site_search.services.index import ContentIndex
from site_search.services.matcher import normalize_text, tokenize

REFINEMENT_TOKEN_SHARE = 0.7
DEFAULT_TOP_N = 10


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def is_refinement(previous: str, current: str) -> bool:
    """``current`` differs from ``previous`` but keeps most of its tokens."""
    if normalize_text(previous) == normalize_text(current):
        return False
    prev_tokens = set(tokenize(previous))
    if not prev_tokens:
        return False
    shared = prev_tokens & set(tokenize(current))
    return len(shared) / len(prev_tokens) >= REFINEMENT_TOKEN_SHARE


def click_position(entry: SearchHistoryEntry, result_id: str) -> Optional[int]:
    """1-based position of a clicked result within the entry's result page."""
    try:
        return entry.result_ids.index(result_id) + 1
    except ValueError:
        return None


class SearchAnalyticsAggregator:
    def __init__(self, top_n: int = DEFAULT_TOP_N):
        self.top_n = top_n

    def aggregate(
        self,
        history: Sequence[SearchHistoryEntry],
        index: Optional[ContentIndex] = None,
    ) -> SearchAnalytics:
        entries = sorted(history, key=lambda e: e.timestamp)
        return SearchAnalytics(
            total_searches=len(entries),
            popular_queries=self._popular_queries(entries),
            popular_results=self._popular_results(entries, index),
            search_trends=self._search_trends(entries),
            user_behavior=self._user_behavior(entries),
        )

    def _popular_queries(self, entries: Sequence[SearchHistoryEntry]) -> List[PopularQuery]:
        counts: Dict[str, int] = defaultdict(int)
        relevances: Dict[str, List[float]] = defaultdict(list)
        for entry in entries:
            key = normalize_text(entry.query)
            if not key:
                continue
            counts[key] += 1
            if entry.avg_relevance is not None:
                relevances[key].append(entry.avg_relevance)

        popular = [
            PopularQuery(
                query=key,
                count=count,
                # None when no entry for the query recorded a relevance
                avg_relevance=round(_mean(relevances[key]), 4) if relevances[key] else None,
            )
            for key, count in counts.items()
        ]
        popular.sort(key=lambda p: (-p.count, p.query))
        return popular[:self.top_n]

    def _popular_results(
        self,
        entries: Sequence[SearchHistoryEntry],
        index: Optional[ContentIndex],
    ) -> List[PopularResult]:
        clicks: Dict[str, int] = defaultdict(int)
        positions: Dict[str, List[int]] = defaultdict(list)
        for entry in entries:
            for result_id in entry.clicked_result_ids:
                clicks[result_id] += 1
                position = click_position(entry, result_id)
                if position is not None:
                    positions[result_id].append(position)

        popular = []
        for result_id, count in clicks.items():
            item = index.get(result_id) if index is not None else None
            popular.append(PopularResult(
                result_id=result_id,
                title=item.title if item is not None else result_id,
                click_count=count,
                avg_position=round(_mean(positions[result_id]), 4),
            ))
        popular.sort(key=lambda p: (-p.click_count, p.result_id))
        return popular[:self.top_n]

    def _search_trends(self, entries: Sequence[SearchHistoryEntry]) -> List[SearchTrend]:
        buckets: Dict[date, List[int]] = defaultdict(list)
        for entry in entries:
            buckets[entry.timestamp.date()].append(entry.results_count)
        return [
            SearchTrend(date=day, search_count=len(counts), avg_results_count=round(_mean(counts), 4))
            for day, counts in sorted(buckets.items())
        ]

    def _user_behavior(self, entries: Sequence[SearchHistoryEntry]) -> UserBehavior:
        if not entries:
            return UserBehavior()

        positions = []
        for entry in entries:
            for result_id in entry.clicked_result_ids:
                position = click_position(entry, result_id)
                if position is not None:
                    positions.append(position)
        pairs = list(zip(entries, entries[1:]))
        refinements = sum(1 for prev, cur in pairs if is_refinement(prev.query, cur.query))

        return UserBehavior(
            avg_query_length=round(_mean([len(e.query.strip()) for e in entries]), 4),
            avg_results_viewed=round(_mean([len(e.clicked_result_ids) for e in entries]), 4),
            avg_click_position=round(_mean(positions), 4),
            refinement_rate=round(refinements / len(pairs), 4) if pairs else 0.0,
        )
