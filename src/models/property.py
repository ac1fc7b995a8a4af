"""Property listing models."""

from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import Field

from src.models.base import MarketplaceModel


class PropertyStatus(str, Enum):
    """Listing lifecycle; deletion of a referenced listing is ``archived``."""
    AVAILABLE = "available"
    PENDING = "pending"
    ARCHIVED = "archived"


class PropertyDraft(MarketplaceModel):
    """Landlord-supplied fields for a new or edited listing."""
    title: str = Field(..., min_length=1, description="Listing title")
    description: Optional[str] = None
    address: str = Field(..., min_length=1, description="Street address")
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: Optional[str] = None
    price: Decimal = Field(..., ge=0, description="Monthly rent")
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[Decimal] = Field(None, ge=0)
    square_feet: Optional[int] = Field(None, ge=0)
    property_type: Optional[str] = Field(None, description="house, apartment, condo, ...")
    images: list[str] = Field(default_factory=list, description="Ordered image references")
    status: PropertyStatus = Field(default=PropertyStatus.AVAILABLE)
    furnished: Optional[bool] = None
    pets_allowed: Optional[bool] = None


class Property(PropertyDraft):
    """Rental listing."""
    id: str = Field(..., description="Stable listing ID")
    owner_id: str = Field(..., description="Owning landlord ID, 'local' when anonymous")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
