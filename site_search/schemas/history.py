"""
History and saved-search schemas.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from site_search.schemas.search import SearchQuery


class SearchHistoryEntry(BaseModel):
    """One executed query. Only ``clicked_result_ids`` changes after creation."""
    id: str
    query: str
    timestamp: datetime
    results_count: int = Field(..., ge=0)
    clicked_result_ids: List[str] = []
    # Ordered ids of the committed result page, used to derive click positions
    result_ids: List[str] = []
    avg_relevance: Optional[float] = None


class SavedSearch(BaseModel):
    id: str
    name: str = Field(..., min_length=1, max_length=100)
    query: SearchQuery
    created_at: datetime
    last_used: datetime
    use_count: int = Field(1, ge=0)
    notifications_enabled: bool = False


class SavedSearchCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    query: SearchQuery


class SavedSearchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    notifications_enabled: Optional[bool] = None


class ClickCreate(BaseModel):
    result_id: str = Field(..., min_length=1)


class ViewCreate(BaseModel):
    item_id: str = Field(..., min_length=1)
