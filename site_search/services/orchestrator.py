"""
Search Orchestrator

Owns the live query/result state and drives the matcher:

    IDLE -> DEBOUNCING -> MATCHING -> SETTLED

Every input bumps a request sequence number. A matcher call is never
interrupted; when it finishes its outcome is only committed if its sequence
number is still the latest one.
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple

from site_search.core.exceptions import IllegalTransitionError
from site_search.schemas.history import SearchHistoryEntry
from site_search.schemas.search import (
    SearchFilters, SearchPhase, SearchQuery, SearchResult, SearchState
)
from site_search.services.history import SearchHistoryStore
from site_search.services.index import ContentIndex
from site_search.services.matcher import QueryMatcher

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 300


class SearchEvent(str, Enum):
    INPUT = "input"
    TIMER_ELAPSED = "timer_elapsed"
    MATCH_SUCCEEDED = "match_succeeded"
    MATCH_FAILED = "match_failed"
    CLEAR = "clear"


@dataclass(frozen=True)
class Transition:
    from_phase: SearchPhase
    event: SearchEvent
    to_phase: SearchPhase


TRANSITIONS = [
    Transition(SearchPhase.IDLE, SearchEvent.INPUT, SearchPhase.DEBOUNCING),
    Transition(SearchPhase.SETTLED, SearchEvent.INPUT, SearchPhase.DEBOUNCING),
    Transition(SearchPhase.DEBOUNCING, SearchEvent.INPUT, SearchPhase.DEBOUNCING),
    Transition(SearchPhase.MATCHING, SearchEvent.INPUT, SearchPhase.DEBOUNCING),
    Transition(SearchPhase.DEBOUNCING, SearchEvent.TIMER_ELAPSED, SearchPhase.MATCHING),
    Transition(SearchPhase.MATCHING, SearchEvent.MATCH_SUCCEEDED, SearchPhase.SETTLED),
    Transition(SearchPhase.MATCHING, SearchEvent.MATCH_FAILED, SearchPhase.SETTLED),
] + [Transition(phase, SearchEvent.CLEAR, SearchPhase.IDLE) for phase in SearchPhase]

TRANSITION_TABLE: Dict[Tuple[SearchPhase, SearchEvent], SearchPhase] = {
    (t.from_phase, t.event): t.to_phase for t in TRANSITIONS
}

Subscriber = Callable[[SearchState], None]
CommitHook = Callable[[SearchHistoryEntry], Awaitable[None]]


class SearchOrchestrator:
    def __init__(
        self,
        index: ContentIndex,
        matcher: QueryMatcher,
        history: SearchHistoryStore,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        default_limit: int = 20,
        on_commit: Optional[CommitHook] = None,
    ):
        self.index = index
        self.matcher = matcher
        self.history = history
        self.debounce = debounce_ms / 1000
        self.default_limit = default_limit
        self.on_commit = on_commit

        self._phase = SearchPhase.IDLE
        self._sequence = 0
        self._query_text = ""
        self._results: List[SearchResult] = []
        self._error: Optional[str] = None

        self._debounce_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._subscribers: List[Subscriber] = []

    # ============================================
    # State
    # ============================================

    @property
    def phase(self) -> SearchPhase:
        return self._phase

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def state(self) -> SearchState:
        return SearchState(
            phase=self._phase,
            query=self._query_text,
            results=list(self._results),
            error=self._error,
            sequence=self._sequence,
        )

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback`` on every transition into SETTLED. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _apply(self, event: SearchEvent) -> SearchPhase:
        to_phase = TRANSITION_TABLE.get((self._phase, event))
        if to_phase is None:
            raise IllegalTransitionError(self._phase, event)
        logger.debug("Search phase %s -> %s on %s", self._phase.value, to_phase.value, event.value)
        self._phase = to_phase
        return to_phase

    def _notify(self) -> None:
        state = self.state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("Search state subscriber failed")

    # ============================================
    # Inputs
    # ============================================

    def search(self, text: str, filters: Optional[SearchFilters] = None) -> int:
        """
        Start (or restart) a debounced search for ``text``.

        Must be called from inside a running event loop. Returns the request
        sequence number.
        """
        # Validation happens before any state changes
        query = SearchQuery(text=text, filters=filters or SearchFilters(), limit=self.default_limit)

        self._apply(SearchEvent.INPUT)
        self._sequence += 1
        sequence = self._sequence
        self._query_text = text
        self._error = None

        if self._debounce_task is not None:
            self._debounce_task.cancel()

        task = asyncio.get_running_loop().create_task(self._run(sequence, query))
        self._debounce_task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return sequence

    def clear(self) -> None:
        self._sequence += 1
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None
        self._apply(SearchEvent.CLEAR)
        self._query_text = ""
        self._results = []
        self._error = None

    async def wait(self) -> SearchState:
        """Wait until no request is in flight and return the resulting state."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return self.state
            await asyncio.gather(*pending, return_exceptions=True)

    # ============================================
    # Request lifecycle
    # ============================================

    def _is_current(self, sequence: int) -> bool:
        return sequence == self._sequence

    async def _run(self, sequence: int, query: SearchQuery) -> None:
        await asyncio.sleep(self.debounce)
        if not self._is_current(sequence):
            return

        # Past this point the request is no longer cancellable, only discardable
        if self._debounce_task is asyncio.current_task():
            self._debounce_task = None
        self._apply(SearchEvent.TIMER_ELAPSED)

        try:
            outcome = self.matcher.search(self.index, query)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except Exception as e:
            if not self._is_current(sequence):
                logger.debug("Discarding failure of superseded request %d", sequence)
                return
            logger.warning("Search failed: query=%r, error=%s", query.text, e)
            self._error = f"{type(e).__name__}: {e}"
            self._results = []
            self._apply(SearchEvent.MATCH_FAILED)
            self._notify()
            return

        if not self._is_current(sequence):
            logger.debug("Discarding stale results of request %d (latest is %d)", sequence, self._sequence)
            return

        results, total = outcome
        self._results = list(results)
        self._apply(SearchEvent.MATCH_SUCCEEDED)

        entry = None
        if query.text.strip():
            entry = self.history.record(
                query.text,
                total,
                result_ids=[r.item.id for r in results],
                avg_relevance=average_relevance(results),
            )
        logger.info("Search settled: query=%r, results=%d, request=%d", query.text, total, sequence)
        self._notify()

        if entry is not None and self.on_commit is not None:
            await self.on_commit(entry)


def average_relevance(results: List[SearchResult]) -> Optional[float]:
    if not results:
        return None
    return sum(r.relevance_score for r in results) / len(results)
