import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from pydantic import TypeAdapter

from site_search.core.exceptions import NotFoundError
from site_search.schemas.history import SavedSearch
from site_search.schemas.search import SearchQuery
from site_search.services.history import utcnow

logger = logging.getLogger(__name__)

_saved_adapter = TypeAdapter(List[SavedSearch])


class SavedSearchStore:
    """User-named searches. Created, renamed and deleted explicitly."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._searches: Dict[str, SavedSearch] = {}

    def save(self, name: str, query: SearchQuery) -> SavedSearch:
        now = self._clock()
        saved = SavedSearch(
            id=uuid4().hex,
            name=name,
            query=query,
            created_at=now,
            last_used=now,
            use_count=1,
        )
        self._searches[saved.id] = saved
        logger.info("Saved search created: id=%s, name=%s", saved.id, name)
        return saved

    def get(self, search_id: str) -> SavedSearch:
        saved = self._searches.get(search_id)
        if saved is None:
            raise NotFoundError("saved search", search_id)
        return saved

    def update(
        self,
        search_id: str,
        name: Optional[str] = None,
        notifications_enabled: Optional[bool] = None,
    ) -> SavedSearch:
        saved = self.get(search_id)
        changes = {}
        if name is not None:
            changes["name"] = name
        if notifications_enabled is not None:
            changes["notifications_enabled"] = notifications_enabled
        if not changes:
            return saved
        updated = SavedSearch.model_validate({**saved.model_dump(), **changes})
        self._searches[search_id] = updated
        return updated

    def mark_used(self, search_id: str) -> SavedSearch:
        saved = self.get(search_id)
        updated = saved.model_copy(update={
            "last_used": self._clock(),
            "use_count": saved.use_count + 1,
        })
        self._searches[search_id] = updated
        return updated

    def delete(self, search_id: str) -> None:
        if self._searches.pop(search_id, None) is None:
            raise NotFoundError("saved search", search_id)
        logger.info("Saved search deleted: id=%s", search_id)

    def all(self) -> List[SavedSearch]:
        """Most recently used first."""
        return sorted(self._searches.values(), key=lambda s: (s.last_used, s.created_at), reverse=True)

    def __len__(self) -> int:
        return len(self._searches)

    def dump(self) -> bytes:
        return _saved_adapter.dump_json(list(self._searches.values()))

    def load(self, data: bytes) -> None:
        self._searches = {s.id: s for s in _saved_adapter.validate_json(data)}
