"""Property review models."""

from typing import Optional
from pydantic import Field

from src.models.base import MarketplaceModel


class Review(MarketplaceModel):
    """Tenant review of a property."""
    id: str
    property_id: str
    user_id: Optional[str] = None
    name: Optional[str] = Field(None, description="Reviewer display name")
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    created_at: Optional[str] = None


class ReviewSummary(MarketplaceModel):
    """Aggregate shown above the review list."""
    average_rating: float = 0.0
    total_reviews: int = 0
    reviews: list[Review] = Field(default_factory=list)
