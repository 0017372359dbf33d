import pytest

from site_search.core.exceptions import NotFoundError, PersistenceError
from site_search.schemas.search import SearchFilters, SearchPhase, SearchQuery
from site_search.services.engine import HISTORY_KEY, SAVED_SEARCHES_KEY, SearchEngine
from site_search.services.persistence import InMemoryPersistence


class FailingPersistence:
    def __init__(self):
        self.calls = 0

    async def load(self, key):
        self.calls += 1
        raise PersistenceError("disk on fire")

    async def save(self, key, data):
        self.calls += 1
        raise PersistenceError("disk on fire")


@pytest.mark.asyncio
async def test_live_search_persists_history(engine, persistence):
    engine.search("react")
    state = await engine.wait()

    assert state.phase == SearchPhase.SETTLED
    assert len(engine.get_history()) == 1
    assert HISTORY_KEY in persistence.data


@pytest.mark.asyncio
async def test_execute_returns_page_total_and_timing(engine):
    results, total, duration_ms = await engine.execute(SearchQuery(text="react", limit=1))

    assert total == 2
    assert [r.item.id for r in results] == ["p1"]
    assert duration_ms >= 0
    assert engine.get_history()[0].result_ids == ["p1"]


@pytest.mark.asyncio
async def test_click_is_attached_to_latest_entry_showing_result(engine):
    await engine.execute(SearchQuery(text="react"))
    await engine.execute(SearchQuery(text="storefront"))

    entry = await engine.record_result_click("p2")

    assert entry.query == "storefront"
    assert entry.clicked_result_ids == ["p2"]
    assert engine.get_history()[0].clicked_result_ids == []


@pytest.mark.asyncio
async def test_click_on_unknown_result_is_ignored(engine):
    await engine.execute(SearchQuery(text="react"))
    assert await engine.record_result_click("k1") is None
    assert all(e.clicked_result_ids == [] for e in engine.get_history())


@pytest.mark.asyncio
async def test_restore_round_trip(index, clock):
    persistence = InMemoryPersistence()
    first = SearchEngine(index, persistence=persistence, debounce_ms=0, clock=clock)
    await first.restore()
    await first.execute(SearchQuery(text="react"))
    saved = await first.save_search("React work", SearchQuery(text="react", sort_by="date"))

    second = SearchEngine(index, persistence=persistence, debounce_ms=0, clock=clock)
    await second.restore()

    assert [e.query for e in second.get_history()] == ["react"]
    assert second.get_saved_searches() == [saved]
    assert not second.degraded


@pytest.mark.asyncio
async def test_corrupt_history_starts_empty(index):
    persistence = InMemoryPersistence({HISTORY_KEY: b"not json", SAVED_SEARCHES_KEY: b"[{}]"})
    engine = SearchEngine(index, persistence=persistence)

    await engine.restore()

    assert engine.get_history() == []
    assert engine.get_saved_searches() == []
    assert not engine.degraded


@pytest.mark.asyncio
async def test_failing_persistence_degrades_to_memory(index):
    persistence = FailingPersistence()
    engine = SearchEngine(index, persistence=persistence, debounce_ms=0)

    await engine.restore()
    assert engine.degraded
    calls = persistence.calls

    engine.search("react")
    state = await engine.wait()

    assert state.phase == SearchPhase.SETTLED
    assert len(engine.get_history()) == 1
    # once degraded the port is left alone
    assert persistence.calls == calls


@pytest.mark.asyncio
async def test_save_failure_keeps_search_working(index):
    class SaveFails(InMemoryPersistence):
        async def save(self, key, data):
            raise PersistenceError("read-only")

    engine = SearchEngine(index, persistence=SaveFails())
    await engine.restore()
    results, total, _ = await engine.execute(SearchQuery(text="forms"))

    assert total == 1
    assert engine.degraded
    assert len(engine.get_history()) == 1


@pytest.mark.asyncio
async def test_suggestions_and_discoveries_fail_closed(engine):
    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    engine.suggestion_generator.suggest = explode
    engine.suggestion_generator.idle_suggestions = explode
    engine.discovery_engine.discover = explode

    assert engine.get_suggestions("re") == []
    assert engine.get_idle_suggestions() == []
    assert engine.get_discoveries() == []


@pytest.mark.asyncio
async def test_suggestions_use_recent_history(engine):
    await engine.execute(SearchQuery(text="react hooks"))
    texts = [s.text for s in engine.get_suggestions("react h")]
    assert texts == ["react hooks"]

    idle = engine.get_idle_suggestions()
    assert [s.text for s in idle] == ["react hooks"]


@pytest.mark.asyncio
async def test_views_shape_discoveries(engine):
    engine.record_view("p1")
    discoveries = engine.get_discoveries()

    assert discoveries[0].id == "p2"
    assert "p1" not in [d.id for d in discoveries]
    assert len(discoveries) <= engine.discovery_limit

    with pytest.raises(NotFoundError):
        engine.record_view("missing")


@pytest.mark.asyncio
async def test_analytics_reflect_history(engine):
    await engine.execute(SearchQuery(text="react"))
    await engine.record_result_click("p1")
    await engine.execute(SearchQuery(text="React"))

    analytics = engine.get_analytics()

    assert analytics.total_searches == 2
    assert analytics.popular_queries[0].query == "react"
    assert analytics.popular_queries[0].count == 2
    assert analytics.popular_results[0].title == "React Portfolio"


@pytest.mark.asyncio
async def test_clear_history(engine, persistence):
    await engine.execute(SearchQuery(text="react"))
    await engine.clear_history()

    assert engine.get_history() == []
    assert persistence.data[HISTORY_KEY] == b"[]"


@pytest.mark.asyncio
async def test_saved_search_lifecycle(engine, clock):
    query = SearchQuery(text="", filters=SearchFilters(types=["project"]), sort_by="date")
    saved = await engine.save_search("Projects", query)
    assert saved.use_count == 1

    updated = await engine.update_saved_search(saved.id, name="All projects", notifications_enabled=True)
    assert updated.name == "All projects"
    assert updated.notifications_enabled

    used, results, total, _ = await engine.run_saved_search(saved.id)
    assert used.use_count == 2
    assert used.last_used > saved.last_used
    assert total == 2
    assert [r.item.id for r in results] == ["p2", "p1"]

    await engine.delete_saved_search(saved.id)
    assert engine.get_saved_searches() == []
    with pytest.raises(NotFoundError):
        await engine.run_saved_search(saved.id)


@pytest.mark.asyncio
async def test_clicked_result_is_not_rediscovered(engine):
    await engine.execute(SearchQuery(text="storefront"))
    await engine.record_result_click("p2")

    ids = [d.id for d in engine.get_discoveries()]

    assert "p2" not in ids
    assert ids[0] == "p1"
