from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from site_search.api.v1.dependencies import get_engine
from site_search.core.exceptions import NotFoundError
from site_search.schemas.discovery import ContentDiscoveryItem, SearchAnalytics
from site_search.schemas.history import ClickCreate, SearchHistoryEntry, ViewCreate
from site_search.schemas.search import (
    ContentType, SearchFilters, SearchInput, SearchQuery, SearchResponse,
    SearchState, SearchSuggestion, SortBy, SortOrder
)
from site_search.services.engine import SearchEngine

router = APIRouter()

@router.get("/", response_model=SearchResponse)
async def search_content(
    q: str = Query("", max_length=500, description="Search query, empty to browse"),
    types: List[ContentType] = Query([]),
    categories: List[str] = Query([]),
    tags: List[str] = Query([]),
    min_relevance: Optional[float] = Query(None, ge=0.0, le=1.0),
    sort_by: SortBy = "relevance",
    sort_order: SortOrder = "desc",
    limit: Optional[int] = Query(None, ge=0, le=100),
    offset: int = Query(0, ge=0),
    engine: SearchEngine = Depends(get_engine)
) -> Any:
    """
    Search the content index immediately and record the query in history.
    """
    query = SearchQuery(
        text=q,
        filters=SearchFilters(types=types, categories=categories, tags=tags, min_relevance=min_relevance),
        sort_by=sort_by,
        sort_order=sort_order,
        limit=engine.results_per_page if limit is None else limit,
        offset=offset,
    )
    results, total, duration = await engine.execute(query)

    return {
        "query": q,
        "results": results,
        "total_count": total,
        "limit": query.limit,
        "offset": offset,
        "search_time_ms": duration
    }

@router.post("/input", response_model=SearchState, status_code=202)
async def search_input(
    search_in: SearchInput,
    engine: SearchEngine = Depends(get_engine)
) -> Any:
    """
    Feed live input to the debounced search. Poll /state for the outcome.
    """
    engine.search(search_in.text, search_in.filters)
    return engine.state

@router.get("/state", response_model=SearchState)
async def search_state(engine: SearchEngine = Depends(get_engine)) -> Any:
    return engine.state

@router.post("/clear", response_model=SearchState)
async def clear_search(engine: SearchEngine = Depends(get_engine)) -> Any:
    engine.clear()
    return engine.state

@router.get("/suggestions", response_model=List[SearchSuggestion])
async def search_suggestions(
    q: str = Query(..., min_length=1),
    limit: Optional[int] = Query(None, ge=1, le=20),
    engine: SearchEngine = Depends(get_engine)
) -> Any:
    """
    Get autocomplete suggestions.
    """
    return engine.get_suggestions(q, max_results=limit)

@router.get("/suggestions/idle", response_model=List[SearchSuggestion])
async def idle_suggestions(
    limit: Optional[int] = Query(None, ge=1, le=20),
    engine: SearchEngine = Depends(get_engine)
) -> Any:
    """
    Trending and recent queries for an empty search box.
    """
    return engine.get_idle_suggestions(max_results=limit)

@router.get("/history", response_model=List[SearchHistoryEntry])
async def search_history(engine: SearchEngine = Depends(get_engine)) -> Any:
    return engine.get_history()

@router.delete("/history")
async def clear_history(engine: SearchEngine = Depends(get_engine)) -> Any:
    await engine.clear_history()
    return {"status": "ok"}

@router.get("/analytics", response_model=SearchAnalytics)
async def search_analytics(engine: SearchEngine = Depends(get_engine)) -> Any:
    return engine.get_analytics()

@router.get("/discoveries", response_model=List[ContentDiscoveryItem])
async def content_discoveries(
    limit: Optional[int] = Query(None, ge=1, le=50),
    engine: SearchEngine = Depends(get_engine)
) -> Any:
    """
    Recommended content based on views, clicks and past searches.
    """
    return engine.get_discoveries(max_items=limit)

@router.post("/clicks", response_model=SearchHistoryEntry)
async def record_click(
    click_in: ClickCreate,
    engine: SearchEngine = Depends(get_engine)
) -> Any:
    entry = await engine.record_result_click(click_in.result_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="No search showed this result")
    return entry

@router.post("/views")
async def record_view(
    view_in: ViewCreate,
    engine: SearchEngine = Depends(get_engine)
) -> Any:
    try:
        engine.record_view(view_in.item_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Item not found")
    return {"status": "ok"}
