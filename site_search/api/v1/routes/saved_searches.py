from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException

from site_search.api.v1.dependencies import get_engine
from site_search.core.exceptions import NotFoundError
from site_search.schemas.history import SavedSearch, SavedSearchCreate, SavedSearchUpdate
from site_search.schemas.search import SearchResponse
from site_search.services.engine import SearchEngine

router = APIRouter()

@router.get("/", response_model=List[SavedSearch])
async def list_saved_searches(engine: SearchEngine = Depends(get_engine)) -> Any:
    """
    List saved searches, most recently used first.
    """
    return engine.get_saved_searches()

@router.post("/", response_model=SavedSearch)
async def create_saved_search(
    saved_in: SavedSearchCreate,
    engine: SearchEngine = Depends(get_engine)
) -> Any:
    return await engine.save_search(saved_in.name, saved_in.query)

@router.patch("/{search_id}", response_model=SavedSearch)
async def update_saved_search(
    search_id: str,
    saved_in: SavedSearchUpdate,
    engine: SearchEngine = Depends(get_engine)
) -> Any:
    """
    Rename a saved search or toggle its notifications.
    """
    try:
        return await engine.update_saved_search(
            search_id,
            name=saved_in.name,
            notifications_enabled=saved_in.notifications_enabled,
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Saved search not found")

@router.delete("/{search_id}")
async def delete_saved_search(
    search_id: str,
    engine: SearchEngine = Depends(get_engine)
) -> Any:
    try:
        await engine.delete_saved_search(search_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Saved search not found")
    return {"status": "ok"}

@router.post("/{search_id}/run", response_model=SearchResponse)
async def run_saved_search(
    search_id: str,
    engine: SearchEngine = Depends(get_engine)
) -> Any:
    """
    Execute a saved search and bump its usage counters.
    """
    try:
        saved, results, total, duration = await engine.run_saved_search(search_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Saved search not found")

    return {
        "query": saved.query.text,
        "results": results,
        "total_count": total,
        "limit": saved.query.limit,
        "offset": saved.query.offset,
        "search_time_ms": duration
    }
