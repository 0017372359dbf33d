import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, computed_field

from site_search.schemas.search import ContentType


class DiscoveryBasis(BaseModel):
    type: Literal["search", "view", "interaction"]
    data: Any = None


class ContentDiscoveryItem(BaseModel):
    id: str
    title: str
    description: str = ""
    url: str
    type: ContentType
    reason: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    based_on: List[DiscoveryBasis] = []

    @computed_field
    @property
    def confidence_label(self) -> str:
        if self.confidence >= 0.8:
            return "High"
        if self.confidence >= 0.6:
            return "Medium"
        return "Low"


# ============================================
# Analytics
# ============================================

class PopularQuery(BaseModel):
    query: str
    count: int
    avg_relevance: Optional[float] = None


class PopularResult(BaseModel):
    result_id: str
    title: str
    click_count: int
    avg_position: float


class SearchTrend(BaseModel):
    date: datetime.date
    search_count: int
    avg_results_count: float


class UserBehavior(BaseModel):
    avg_query_length: float = 0.0
    avg_results_viewed: float = 0.0
    avg_click_position: float = 0.0
    refinement_rate: float = 0.0


class SearchAnalytics(BaseModel):
    total_searches: int = 0
    popular_queries: List[PopularQuery] = []
    popular_results: List[PopularResult] = []
    search_trends: List[SearchTrend] = []
    user_behavior: UserBehavior = Field(default_factory=UserBehavior)
