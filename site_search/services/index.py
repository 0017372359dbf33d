import logging
from typing import Dict, Iterable, List, Optional

from site_search.core.exceptions import DuplicateIdError, NotFoundError
from site_search.schemas.search import SearchableItem

logger = logging.getLogger(__name__)


class ContentIndex:
    """
    Read-only view of the searchable corpus.

    Built once through ``build``; replacing content means building a new
    index, never mutating this one.
    """

    def __init__(self, items: Dict[str, SearchableItem]):
        self._items = items
        self._categories = sorted({i.category for i in items.values() if i.category}, key=str.lower)
        tags: Dict[str, str] = {}
        for item in items.values():
            for tag in item.tags:
                tags.setdefault(tag.lower(), tag)
        self._tags = sorted(tags.values(), key=str.lower)

    @classmethod
    def build(cls, items: Iterable[SearchableItem]) -> "ContentIndex":
        by_id: Dict[str, SearchableItem] = {}
        for item in items:
            if item.id in by_id:
                raise DuplicateIdError(item.id)
            by_id[item.id] = item
        logger.info("Content index built: items=%d", len(by_id))
        return cls(by_id)

    def all(self) -> List[SearchableItem]:
        return list(self._items.values())

    def by_id(self, item_id: str) -> SearchableItem:
        item = self._items.get(item_id)
        if item is None:
            raise NotFoundError("item", item_id)
        return item

    def get(self, item_id: str) -> Optional[SearchableItem]:
        return self._items.get(item_id)

    def categories(self) -> List[str]:
        return list(self._categories)

    def tags(self) -> List[str]:
        return list(self._tags)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items
