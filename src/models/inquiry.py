"""Inquiry and contact message models."""

from typing import Optional
from pydantic import Field

from src.models.base import MarketplaceModel


class InquiryDraft(MarketplaceModel):
    """Prospective renter's question about a listing."""
    property_id: Optional[str] = None
    agent_id: Optional[str] = Field(None, description="Addressed agent")
    sender_name: str
    sender_email: str
    sender_phone: Optional[str] = None
    message: str


class Inquiry(InquiryDraft):
    """Stored inquiry; read by the addressed agent, no status machine."""
    id: str
    created_at: Optional[str] = None


class ContactMessage(MarketplaceModel):
    """General contact form submission, kept locally."""
    id: str
    name: str
    email: str
    subject: Optional[str] = None
    message: str
    created_at: str
