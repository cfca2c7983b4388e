from pydantic import BaseModel, Field
from typing import Optional, List


class ScoredRecommendation(BaseModel):
    id: str
    title: str
    author: str
    category: str
    department: str
    available_copies: int
    score: int = Field(ge=1)
    reasons: List[str] = Field(min_length=1)  # Distinct, in the order they were earned
    is_new_arrival: bool = False
    is_popular: bool = False


class RecommendationContext(BaseModel):
    explicit_interests: List[str] = Field(default_factory=list)
    derived_categories: List[str] = Field(default_factory=list)
    department: Optional[str] = None
    fallback_used: bool = False


class RecommendationResult(BaseModel):
    items: List[ScoredRecommendation] = Field(default_factory=list)
    context: RecommendationContext = Field(default_factory=RecommendationContext)


class RecommendationsResponse(BaseModel):
    """Response wrapper for recommendations that includes request_id for event tracking."""
    request_id: str
    items: List[ScoredRecommendation]
    context: RecommendationContext
