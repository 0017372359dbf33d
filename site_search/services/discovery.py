"""
Content discovery: proactive recommendations from behaviour signals.

An interest profile weights categories and tags seen in viewed items,
clicked results and past query tokens. Each unseen item is scored by the
share of the profile its category and tags cover.
"""
import logging
from collections import defaultdict
from typing import Collection, Dict, List, Sequence, Set, Tuple

from site_search.schemas.discovery import ContentDiscoveryItem, DiscoveryBasis
from site_search.schemas.history import SearchHistoryEntry
from site_search.schemas.search import SearchableItem
from site_search.services.index import ContentIndex
from site_search.services.matcher import tokenize

logger = logging.getLogger(__name__)

VIEW_WEIGHT = 1.0
INTERACTION_WEIGHT = 1.5
SEARCH_WEIGHT = 0.5

FALLBACK_REASON = "recently added"

# (kind, lower-cased value)
ProfileKey = Tuple[str, str]


class InterestProfile:
    def __init__(self):
        self.weights: Dict[ProfileKey, float] = defaultdict(float)
        self.sources: Dict[ProfileKey, Set[str]] = defaultdict(set)
        self.labels: Dict[ProfileKey, str] = {}

    def add(self, kind: str, value: str, weight: float, source: str) -> None:
        if not value:
            return
        key = (kind, value.lower())
        self.weights[key] += weight
        self.sources[key].add(source)
        self.labels.setdefault(key, value)

    def add_item(self, item: SearchableItem, weight: float, source: str) -> None:
        self.add("category", item.category, weight, source)
        for tag in item.tags:
            self.add("tag", tag, weight, source)

    @property
    def total(self) -> float:
        return sum(self.weights.values())

    def __bool__(self) -> bool:
        return self.total > 0


class ContentDiscoveryEngine:
    def build_profile(
        self,
        index: ContentIndex,
        history: Sequence[SearchHistoryEntry],
        viewed_item_ids: Collection[str],
    ) -> InterestProfile:
        profile = InterestProfile()

        for item_id in sorted(viewed_item_ids):
            item = index.get(item_id)
            if item is not None:
                profile.add_item(item, VIEW_WEIGHT, "view")

        known_tags = {t.lower(): t for t in index.tags()}
        known_categories = {c.lower(): c for c in index.categories()}
        for entry in history:
            for result_id in entry.clicked_result_ids:
                item = index.get(result_id)
                if item is not None:
                    profile.add_item(item, INTERACTION_WEIGHT, "interaction")
            for token in tokenize(entry.query):
                if token in known_tags:
                    profile.add("tag", known_tags[token], SEARCH_WEIGHT, "search")
                if token in known_categories:
                    profile.add("category", known_categories[token], SEARCH_WEIGHT, "search")

        return profile

    def discover(
        self,
        index: ContentIndex,
        history: Sequence[SearchHistoryEntry],
        viewed_item_ids: Collection[str],
        max_items: int,
    ) -> List[ContentDiscoveryItem]:
        if max_items <= 0:
            return []

        profile = self.build_profile(index, history, viewed_item_ids)
        total = profile.total
        # Opened results count as viewed
        viewed = set(viewed_item_ids)
        for entry in history:
            viewed.update(entry.clicked_result_ids)

        scored: List[Tuple[SearchableItem, float, List[ProfileKey]]] = []
        for item in index.all():
            if item.id in viewed:
                continue
            keys = self._item_keys(item)
            contributing = [k for k in keys if profile.weights.get(k, 0.0) > 0]
            overlap = sum(profile.weights[k] for k in contributing)
            confidence = min(1.0, overlap / total) if total > 0 else 0.0
            scored.append((item, confidence, contributing))

        # Stable sorts, least significant key first
        scored.sort(key=lambda s: s[0].id)
        scored.sort(key=lambda s: s[0].last_updated, reverse=True)
        scored.sort(key=lambda s: s[1], reverse=True)

        logger.debug("Discovery candidates=%d, profile_weight=%.2f", len(scored), total)
        return [
            self._to_discovery(item, confidence, contributing, profile)
            for item, confidence, contributing in scored[:max_items]
        ]

    @staticmethod
    def _item_keys(item: SearchableItem) -> List[ProfileKey]:
        keys: List[ProfileKey] = []
        if item.category:
            keys.append(("category", item.category.lower()))
        keys.extend(("tag", t.lower()) for t in item.tags)
        return keys

    def _to_discovery(
        self,
        item: SearchableItem,
        confidence: float,
        contributing: List[ProfileKey],
        profile: InterestProfile,
    ) -> ContentDiscoveryItem:
        if not contributing or confidence == 0.0:
            reason = FALLBACK_REASON
            based_on: List[DiscoveryBasis] = []
        else:
            strongest = max(contributing, key=lambda k: (profile.weights[k], k[0] == "category", k[1]))
            label = profile.labels[strongest]
            if profile.sources[strongest] == {"search"}:
                reason = f'based on your searches for "{label}"'
            else:
                reason = f"based on your interest in {label}"
            based_on = [
                DiscoveryBasis(type=source, data={"kind": key[0], "value": profile.labels[key]})
                for key in contributing
                for source in sorted(profile.sources[key])
            ]

        return ContentDiscoveryItem(
            id=item.id,
            title=item.title,
            description=item.description,
            url=item.url,
            type=item.type,
            reason=reason,
            confidence=confidence,
            based_on=based_on,
        )
