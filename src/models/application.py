"""Rental application models."""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from pydantic import Field

from src.models.base import MarketplaceModel

# Sections of the multi-step application form, each an open key/value record
APPLICATION_SECTIONS = ("personal_info", "rental_history", "employment", "references", "disclosures")


class ApplicationStatus(str, Enum):
    """Review status; approved and rejected are terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ApplicationStatus.PENDING


class Application(MarketplaceModel):
    """Renter application for a property."""
    id: str = Field(..., description="Application ID")
    property_id: str = Field(..., description="Property applied for")
    user_id: str = Field(..., description="Applicant, 'local' when anonymous")
    step: int = Field(default=1, ge=1, description="Furthest completed form step")
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING)
    personal_info: dict[str, Any] = Field(default_factory=dict)
    rental_history: dict[str, Any] = Field(default_factory=dict)
    employment: dict[str, Any] = Field(default_factory=dict)
    references: dict[str, Any] = Field(default_factory=dict)
    disclosures: dict[str, Any] = Field(default_factory=dict)
    documents: list[str] = Field(default_factory=list, description="Uploaded document references")
    application_fee: Optional[Decimal] = Field(None, ge=0)
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    submitted_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_open(self) -> bool:
        """Still being filled in by the renter."""
        return self.submitted_at is None and self.status is ApplicationStatus.PENDING
