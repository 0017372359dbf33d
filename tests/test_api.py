import pytest
from httpx import AsyncClient

from site_search.services.engine import SearchEngine


@pytest.mark.asyncio
async def test_search(client: AsyncClient):
    response = await client.get("/api/v1/search/?q=react")
    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 2
    assert data["results"][0]["item"]["id"] == "p1"
    assert data["results"][0]["relevance_score"] == 1.0
    assert data["search_time_ms"] >= 0

    # Filters and pagination
    response = await client.get("/api/v1/search/?q=&types=project&sort_by=date&limit=1")
    data = response.json()
    assert data["total_count"] == 2
    assert data["limit"] == 1
    assert [r["item"]["id"] for r in data["results"]] == ["p2"]

    # Highlighting
    response = await client.get("/api/v1/search/?q=forms")
    snippet = response.json()["results"][0]["snippet"]
    assert "<mark>forms</mark>" in snippet


@pytest.mark.asyncio
async def test_search_rejects_bad_parameters(client: AsyncClient):
    response = await client.get("/api/v1/search/?q=react&offset=-1")
    assert response.status_code == 422
    response = await client.get("/api/v1/search/?q=react&types=banana")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_history_and_clear(client: AsyncClient):
    await client.get("/api/v1/search/?q=react")
    await client.get("/api/v1/search/?q=seo")

    response = await client.get("/api/v1/search/history")
    assert [e["query"] for e in response.json()] == ["react", "seo"]

    response = await client.delete("/api/v1/search/history")
    assert response.json() == {"status": "ok"}
    response = await client.get("/api/v1/search/history")
    assert response.json() == []


@pytest.mark.asyncio
async def test_suggestions(client: AsyncClient):
    response = await client.get("/api/v1/search/suggestions?q=rea")
    assert response.status_code == 200
    texts = [s["text"] for s in response.json()]
    assert "React Portfolio" in texts

    response = await client.get("/api/v1/search/suggestions?q=")
    assert response.status_code == 422

    await client.get("/api/v1/search/?q=forms")
    response = await client.get("/api/v1/search/suggestions/idle")
    assert [s["text"] for s in response.json()] == ["forms"]


@pytest.mark.asyncio
async def test_clicks(client: AsyncClient):
    response = await client.post("/api/v1/search/clicks", json={"result_id": "p1"})
    assert response.status_code == 404

    await client.get("/api/v1/search/?q=react")
    response = await client.post("/api/v1/search/clicks", json={"result_id": "p1"})
    assert response.status_code == 200
    assert response.json()["clicked_result_ids"] == ["p1"]

    response = await client.get("/api/v1/search/analytics")
    data = response.json()
    assert data["total_searches"] == 1
    assert data["popular_results"][0]["result_id"] == "p1"
    assert data["popular_results"][0]["click_count"] == 1


@pytest.mark.asyncio
async def test_views_and_discoveries(client: AsyncClient):
    response = await client.post("/api/v1/search/views", json={"item_id": "nope"})
    assert response.status_code == 404

    response = await client.post("/api/v1/search/views", json={"item_id": "p1"})
    assert response.json() == {"status": "ok"}

    response = await client.get("/api/v1/search/discoveries?limit=2")
    data = response.json()
    assert len(data) == 2
    assert data[0]["id"] == "p2"
    assert data[0]["confidence_label"] == "High"


@pytest.mark.asyncio
async def test_live_input(client: AsyncClient, engine: SearchEngine):
    response = await client.post("/api/v1/search/input", json={"text": "seo"})
    assert response.status_code == 202
    assert response.json()["phase"] == "debouncing"

    await engine.wait()
    response = await client.get("/api/v1/search/state")
    data = response.json()
    assert data["phase"] == "settled"
    assert [r["item"]["id"] for r in data["results"]] == ["s1"]

    response = await client.post("/api/v1/search/clear")
    assert response.json()["phase"] == "idle"


@pytest.mark.asyncio
async def test_saved_searches(client: AsyncClient):
    payload = {"name": "Projects", "query": {"text": "", "filters": {"types": ["project"]}}}
    response = await client.post("/api/v1/saved-searches/", json=payload)
    assert response.status_code == 200
    saved = response.json()
    assert saved["use_count"] == 1

    response = await client.patch(f"/api/v1/saved-searches/{saved['id']}", json={"name": "Work"})
    assert response.json()["name"] == "Work"

    response = await client.post(f"/api/v1/saved-searches/{saved['id']}/run")
    assert response.status_code == 200
    assert response.json()["total_count"] == 2

    response = await client.get("/api/v1/saved-searches/")
    assert response.json()[0]["use_count"] == 2

    response = await client.delete(f"/api/v1/saved-searches/{saved['id']}")
    assert response.json() == {"status": "ok"}
    response = await client.post(f"/api/v1/saved-searches/{saved['id']}/run")
    assert response.status_code == 404
    response = await client.patch("/api/v1/saved-searches/missing", json={"name": "x"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.json() == {"status": "ok", "degraded": False, "indexed_items": 5}
