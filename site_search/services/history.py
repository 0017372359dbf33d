"""
Search History Store

Capacity-bounded, append-only log of executed queries. The oldest entry is
evicted once the store is full. Entries only ever change by having a clicked
result id appended.
"""
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, List, Optional, Sequence
from uuid import uuid4

from pydantic import TypeAdapter

from site_search.core.exceptions import NotFoundError
from site_search.schemas.history import SearchHistoryEntry
from site_search.services.matcher import normalize_text

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100

_entries_adapter = TypeAdapter(List[SearchHistoryEntry])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SearchHistoryStore:
    def __init__(self, capacity: int = DEFAULT_CAPACITY, clock: Callable[[], datetime] = utcnow):
        if capacity < 1:
            raise ValueError("history capacity must be at least 1")
        self.capacity = capacity
        self._clock = clock
        self._entries: Deque[SearchHistoryEntry] = deque(maxlen=capacity)

    def record(
        self,
        query: str,
        results_count: int,
        result_ids: Optional[Sequence[str]] = None,
        avg_relevance: Optional[float] = None,
    ) -> SearchHistoryEntry:
        entry = SearchHistoryEntry(
            id=uuid4().hex,
            query=query,
            timestamp=self._clock(),
            results_count=results_count,
            result_ids=list(result_ids or []),
            avg_relevance=avg_relevance,
        )
        if len(self._entries) == self.capacity:
            logger.debug("History full, evicting entry %s", self._entries[0].id)
        # deque(maxlen) drops the oldest entry on overflow
        self._entries.append(entry)
        return entry

    def record_click(self, entry_id: str, result_id: str) -> SearchHistoryEntry:
        entry = self.get(entry_id)
        entry.clicked_result_ids.append(result_id)
        return entry

    def get(self, entry_id: str) -> SearchHistoryEntry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise NotFoundError("history entry", entry_id)

    def find_latest_with_result(self, result_id: str) -> Optional[SearchHistoryEntry]:
        """Most recent entry whose committed results contain ``result_id``."""
        for entry in reversed(self._entries):
            if result_id in entry.result_ids:
                return entry
        return None

    def recent(self, n: int) -> List[str]:
        """Most-recent-first query texts, one per normalized text."""
        queries: List[str] = []
        seen = set()
        for entry in reversed(self._entries):
            if len(queries) >= n:
                break
            key = normalize_text(entry.query)
            if key in seen:
                continue
            seen.add(key)
            queries.append(entry.query)
        return queries

    def all(self) -> List[SearchHistoryEntry]:
        """Entries in chronological order, oldest first."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    # ============================================
    # Serialization
    # ============================================

    def dump(self) -> bytes:
        return _entries_adapter.dump_json(list(self._entries))

    def load(self, data: bytes) -> None:
        """Replace the contents with a previously dumped log."""
        entries = _entries_adapter.validate_json(data)
        self._entries = deque(entries[-self.capacity:], maxlen=self.capacity)
