"""
Search Engine

The single service object handed to consumers. Constructed once at start-up
and injected; owns the history log, saved searches and the orchestrator, and
exposes the derived reads (suggestions, analytics, discoveries).
"""
import logging
import time
from datetime import datetime
from typing import Callable, List, Optional, Set, Tuple

from pydantic import ValidationError

from site_search.config import Settings
from site_search.schemas.discovery import ContentDiscoveryItem, SearchAnalytics
from site_search.schemas.history import SavedSearch, SearchHistoryEntry
from site_search.schemas.search import (
    SearchFilters, SearchQuery, SearchResult, SearchState, SearchSuggestion
)
from site_search.services.analytics import SearchAnalyticsAggregator
from site_search.services.discovery import ContentDiscoveryEngine
from site_search.services.history import DEFAULT_CAPACITY, SearchHistoryStore, utcnow
from site_search.services.index import ContentIndex
from site_search.services.matcher import QueryMatcher
from site_search.services.orchestrator import (
    DEFAULT_DEBOUNCE_MS, SearchOrchestrator, Subscriber, average_relevance
)
from site_search.services.persistence import PersistencePort
from site_search.services.saved_searches import SavedSearchStore
from site_search.services.suggestions import SuggestionGenerator

logger = logging.getLogger(__name__)

HISTORY_KEY = "search-history"
SAVED_SEARCHES_KEY = "saved-searches"


class SearchEngine:
    def __init__(
        self,
        index: ContentIndex,
        persistence: Optional[PersistencePort] = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        history_capacity: int = DEFAULT_CAPACITY,
        results_per_page: int = 20,
        suggestions_limit: int = 8,
        discovery_limit: int = 5,
        snippet_length: int = 150,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.index = index
        self.persistence = persistence
        self.results_per_page = results_per_page
        self.suggestions_limit = suggestions_limit
        self.discovery_limit = discovery_limit
        # Set once the persistence port fails; history stays in memory afterwards
        self.degraded = False

        self.history = SearchHistoryStore(capacity=history_capacity, clock=clock)
        self.saved_searches = SavedSearchStore(clock=clock)
        self.matcher = QueryMatcher(snippet_length=snippet_length)
        self.suggestion_generator = SuggestionGenerator()
        self.discovery_engine = ContentDiscoveryEngine()
        self.analytics_aggregator = SearchAnalyticsAggregator()
        self.viewed_item_ids: Set[str] = set()

        self.orchestrator = SearchOrchestrator(
            index,
            self.matcher,
            self.history,
            debounce_ms=debounce_ms,
            default_limit=results_per_page,
            on_commit=self._on_commit,
        )

    @classmethod
    def from_settings(
        cls,
        index: ContentIndex,
        settings: Settings,
        persistence: Optional[PersistencePort] = None,
    ) -> "SearchEngine":
        return cls(
            index,
            persistence=persistence,
            debounce_ms=settings.SEARCH_DEBOUNCE_MS,
            history_capacity=settings.SEARCH_HISTORY_CAPACITY,
            results_per_page=settings.SEARCH_RESULTS_PER_PAGE,
            suggestions_limit=settings.SEARCH_SUGGESTIONS_LIMIT,
            discovery_limit=settings.SEARCH_DISCOVERY_LIMIT,
            snippet_length=settings.SEARCH_SNIPPET_LENGTH,
        )

    # ============================================
    # Persistence
    # ============================================

    async def restore(self) -> None:
        """Load history and saved searches. Never raises; failures leave them empty."""
        history_data = await self._load(HISTORY_KEY)
        if history_data:
            try:
                self.history.load(history_data)
            except (ValidationError, ValueError) as e:
                logger.warning("Discarding unreadable search history: %s", e)
                self.history.clear()

        saved_data = await self._load(SAVED_SEARCHES_KEY)
        if saved_data:
            try:
                self.saved_searches.load(saved_data)
            except (ValidationError, ValueError) as e:
                logger.warning("Discarding unreadable saved searches: %s", e)

        logger.info(
            "Search state restored: history=%d, saved_searches=%d, degraded=%s",
            len(self.history), len(self.saved_searches), self.degraded,
        )

    async def _load(self, key: str) -> Optional[bytes]:
        if self.persistence is None or self.degraded:
            return None
        try:
            return await self.persistence.load(key)
        except Exception as e:
            self._degrade("load", key, e)
            return None

    async def _save(self, key: str, data: bytes) -> None:
        if self.persistence is None or self.degraded:
            return
        try:
            await self.persistence.save(key, data)
        except Exception as e:
            self._degrade("save", key, e)

    def _degrade(self, operation: str, key: str, error: Exception) -> None:
        logger.warning(
            "Persistence %s failed for %r, continuing in memory only: %s", operation, key, error
        )
        self.degraded = True

    async def _persist_history(self) -> None:
        await self._save(HISTORY_KEY, self.history.dump())

    async def _persist_saved_searches(self) -> None:
        await self._save(SAVED_SEARCHES_KEY, self.saved_searches.dump())

    async def _on_commit(self, entry: SearchHistoryEntry) -> None:
        await self._persist_history()

    # ============================================
    # Live search
    # ============================================

    def search(self, text: str, filters: Optional[SearchFilters] = None) -> None:
        """Fire-and-forget; observe the outcome through ``state`` or ``subscribe``."""
        self.orchestrator.search(text, filters)

    @property
    def state(self) -> SearchState:
        return self.orchestrator.state

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.orchestrator.subscribe(callback)

    async def wait(self) -> SearchState:
        return await self.orchestrator.wait()

    def clear(self) -> None:
        self.orchestrator.clear()

    async def execute(self, query: SearchQuery) -> Tuple[List[SearchResult], int, float]:
        """Run ``query`` immediately, bypassing the debounce, and record it."""
        start_time = time.time()
        results, total = self.matcher.search(self.index, query)
        if query.text.strip():
            self.history.record(
                query.text,
                total,
                result_ids=[r.item.id for r in results],
                avg_relevance=average_relevance(results),
            )
            await self._persist_history()
        duration_ms = (time.time() - start_time) * 1000
        return results, total, duration_ms

    # ============================================
    # Derived reads
    # ============================================

    def get_suggestions(self, partial_text: str, max_results: Optional[int] = None) -> List[SearchSuggestion]:
        limit = self.suggestions_limit if max_results is None else max_results
        try:
            return self.suggestion_generator.suggest(
                self.index, self.history.recent(self.history.capacity), partial_text, limit
            )
        except Exception:
            logger.exception("Suggestion generation failed for %r", partial_text)
            return []

    def get_idle_suggestions(self, max_results: Optional[int] = None) -> List[SearchSuggestion]:
        limit = self.suggestions_limit if max_results is None else max_results
        try:
            popular = [p.query for p in self.get_analytics().popular_queries]
            return self.suggestion_generator.idle_suggestions(self.history.recent(3), popular, limit)
        except Exception:
            logger.exception("Idle suggestion generation failed")
            return []

    def get_history(self) -> List[SearchHistoryEntry]:
        return self.history.all()

    async def clear_history(self) -> None:
        self.history.clear()
        await self._persist_history()

    def get_analytics(self) -> SearchAnalytics:
        return self.analytics_aggregator.aggregate(self.history.all(), self.index)

    def get_discoveries(self, max_items: Optional[int] = None) -> List[ContentDiscoveryItem]:
        limit = self.discovery_limit if max_items is None else max_items
        try:
            return self.discovery_engine.discover(
                self.index, self.history.all(), self.viewed_item_ids, limit
            )
        except Exception:
            logger.exception("Content discovery failed")
            return []

    # ============================================
    # Behaviour signals
    # ============================================

    async def record_result_click(self, result_id: str) -> Optional[SearchHistoryEntry]:
        """
        Attach a click to the most recent history entry that showed ``result_id``.

        Unknown results are logged and ignored; returns the updated entry or None.
        """
        entry = self.history.find_latest_with_result(result_id)
        if entry is None:
            logger.warning("Click on result %r matches no history entry, ignoring", result_id)
            return None
        self.history.record_click(entry.id, result_id)
        await self._persist_history()
        return entry

    def record_view(self, item_id: str) -> None:
        """Mark an item as viewed. Raises NotFoundError for ids outside the index."""
        self.index.by_id(item_id)
        self.viewed_item_ids.add(item_id)

    # ============================================
    # Saved searches
    # ============================================

    def get_saved_searches(self) -> List[SavedSearch]:
        return self.saved_searches.all()

    async def save_search(self, name: str, query: SearchQuery) -> SavedSearch:
        saved = self.saved_searches.save(name, query)
        await self._persist_saved_searches()
        return saved

    async def update_saved_search(
        self,
        search_id: str,
        name: Optional[str] = None,
        notifications_enabled: Optional[bool] = None,
    ) -> SavedSearch:
        saved = self.saved_searches.update(search_id, name=name, notifications_enabled=notifications_enabled)
        await self._persist_saved_searches()
        return saved

    async def delete_saved_search(self, search_id: str) -> None:
        self.saved_searches.delete(search_id)
        await self._persist_saved_searches()

    async def run_saved_search(self, search_id: str) -> Tuple[SavedSearch, List[SearchResult], int, float]:
        saved = self.saved_searches.mark_used(search_id)
        await self._persist_saved_searches()
        results, total, duration_ms = await self.execute(saved.query)
        return saved, results, total, duration_ms
