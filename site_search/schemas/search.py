from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

ContentType = Literal["page", "project", "service", "content", "skill"]
SortBy = Literal["relevance", "date", "title", "type"]
SortOrder = Literal["asc", "desc"]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SearchableItem(BaseModel):
    id: str = Field(..., min_length=1, max_length=255)
    title: str = Field(..., min_length=1)
    description: str = ""
    content: str = ""
    url: str
    type: ContentType
    category: str = ""
    tags: List[str] = []
    last_updated: datetime
    metadata: Dict[str, Any] = {}

    model_config = ConfigDict(frozen=True)

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, v: List[str]) -> List[str]:
        seen = set()
        tags = []
        for tag in v:
            key = tag.strip().lower()
            if key and key not in seen:
                seen.add(key)
                tags.append(tag.strip())
        return tags

    @field_validator("last_updated")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return _as_utc(v)


class DateRange(BaseModel):
    start: datetime
    end: datetime

    model_config = ConfigDict(frozen=True)

    @field_validator("start", "end")
    @classmethod
    def normalize_bounds(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("date range start must not be after end")
        return self


class SearchFilters(BaseModel):
    types: List[ContentType] = []
    categories: List[str] = []
    tags: List[str] = []
    date_range: Optional[DateRange] = None
    min_relevance: Optional[float] = Field(None, ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True)


class SearchQuery(BaseModel):
    text: str = Field("", max_length=500)
    filters: SearchFilters = Field(default_factory=SearchFilters)
    sort_by: SortBy = "relevance"
    sort_order: SortOrder = "desc"
    limit: int = Field(20, ge=0)
    offset: int = Field(0, ge=0)

    model_config = ConfigDict(frozen=True)


class SearchResult(BaseModel):
    item: SearchableItem
    relevance_score: float = Field(..., ge=0.0, le=1.0)
    snippet: Optional[str] = None


class SearchSuggestion(BaseModel):
    id: str
    text: str
    type: Literal["query", "filter", "category"]
    score: float
    metadata: Optional[Dict[str, Any]] = None


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResult]
    total_count: int
    limit: int
    offset: int
    search_time_ms: float


# ============================================
# Orchestrator state
# ============================================

class SearchPhase(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    MATCHING = "matching"
    SETTLED = "settled"


class SearchState(BaseModel):
    """Snapshot of the orchestrator, handed to subscribers and the API."""
    phase: SearchPhase = SearchPhase.IDLE
    query: str = ""
    results: List[SearchResult] = []
    error: Optional[str] = None
    sequence: int = 0


class SearchInput(BaseModel):
    text: str = Field("", max_length=500)
    filters: SearchFilters = Field(default_factory=SearchFilters)
