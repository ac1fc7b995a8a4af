"""Saved search models."""

from decimal import Decimal
from typing import Optional
from pydantic import Field

from src.models.base import MarketplaceModel
from src.models.property import Property


class SearchFilters(MarketplaceModel):
    """Optional bounds applied to property listings."""
    city: Optional[str] = None
    property_type: Optional[str] = None
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0, description="Minimum bedrooms")
    bathrooms: Optional[Decimal] = Field(None, ge=0, description="Minimum bathrooms")

    def matches(self, prop: Property) -> bool:
        """Check whether a listing satisfies every set bound."""
        if self.city and prop.city.strip().lower() != self.city.strip().lower():
            return False
        if self.property_type and (prop.property_type or "").lower() != self.property_type.lower():
            return False
        if self.min_price is not None and prop.price < self.min_price:
            return False
        if self.max_price is not None and prop.price > self.max_price:
            return False
        if self.bedrooms is not None and (prop.bedrooms or 0) < self.bedrooms:
            return False
        if self.bathrooms is not None and (prop.bathrooms or 0) < self.bathrooms:
            return False
        return True


class SavedSearch(MarketplaceModel):
    """Named filter set owned by a user."""
    id: str
    user_id: str = Field(..., description="Owner, 'local' when anonymous")
    name: str = Field(..., min_length=1)
    filters: SearchFilters = Field(default_factory=SearchFilters)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
