from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List

import pytest
from httpx import ASGITransport, AsyncClient

from site_search.api.v1.dependencies import get_engine
from site_search.main import app
from site_search.schemas.search import SearchableItem
from site_search.services.engine import SearchEngine
from site_search.services.index import ContentIndex
from site_search.services.persistence import InMemoryPersistence


def make_item(item_id: str, title: str, type: str = "page", **fields) -> SearchableItem:
    fields.setdefault("url", f"/{item_id}")
    fields.setdefault("last_updated", datetime(2025, 1, 1, tzinfo=timezone.utc))
    return SearchableItem(id=item_id, title=title, type=type, **fields)


class FakeClock:
    """Deterministic clock advancing by ``step`` on every call."""

    def __init__(self, start: datetime = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc),
                 step: timedelta = timedelta(minutes=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.now
        self.now += self.step
        return value


@pytest.fixture
def items() -> List[SearchableItem]:
    return [
        make_item(
            "p1", "React Portfolio", type="project",
            category="web-development", tags=["react"],
            last_updated=datetime(2025, 3, 1, tzinfo=timezone.utc),
        ),
        make_item(
            "s1", "SEO Services", type="service",
            category="marketing", tags=["seo"],
            description="Search engine optimisation audits and content strategy.",
            last_updated=datetime(2025, 2, 1, tzinfo=timezone.utc),
        ),
        make_item(
            "p2", "Next.js Storefront", type="project",
            category="web-development", tags=["nextjs", "react", "ecommerce"],
            description="Headless storefront built with React and Next.js.",
            last_updated=datetime(2025, 4, 1, tzinfo=timezone.utc),
        ),
        make_item(
            "k1", "TypeScript", type="skill",
            category="languages", tags=["typescript"],
            last_updated=datetime(2024, 12, 1, tzinfo=timezone.utc),
        ),
        make_item(
            "c1", "Writing Accessible Forms", type="content",
            category="accessibility", tags=["a11y", "forms"],
            description="Labels, errors and focus order for forms that work with screen readers.",
            last_updated=datetime(2025, 1, 15, tzinfo=timezone.utc),
        ),
    ]


@pytest.fixture
def index(items) -> ContentIndex:
    return ContentIndex.build(items)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def persistence() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
async def engine(index, persistence, clock) -> SearchEngine:
    search_engine = SearchEngine(index, persistence=persistence, debounce_ms=0, clock=clock)
    await search_engine.restore()
    return search_engine


@pytest.fixture
async def client(engine: SearchEngine) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_engine] = lambda: engine
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
