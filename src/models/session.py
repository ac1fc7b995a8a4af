"""Session and user models."""

from enum import Enum
from typing import Any, Optional
from pydantic import Field

from src.models.base import MarketplaceModel


class Role(str, Enum):
    """Marketplace roles."""
    ANONYMOUS = "anonymous"
    TENANT = "tenant"
    LANDLORD = "landlord"
    ADMIN = "admin"

    @classmethod
    def from_metadata(cls, value: Optional[str]) -> "Role":
        """Map identity-provider metadata to a role (``owner`` is a landlord)."""
        normalized = (value or "").strip().lower()
        if normalized in ("owner", "landlord"):
            return cls.LANDLORD
        if normalized == "admin":
            return cls.ADMIN
        return cls.TENANT


class User(MarketplaceModel):
    """Authenticated user profile."""
    id: str = Field(..., description="Identity provider user ID")
    email: str = Field(..., description="Email address")
    name: Optional[str] = Field(None, description="Display name")
    role: Role = Field(default=Role.TENANT, description="Marketplace role")
    email_confirmed: bool = Field(default=False, description="Whether the email was verified")
    created_at: Optional[str] = None


class Session(MarketplaceModel):
    """Authenticated session; present iff a user is signed in."""
    user_id: str = Field(..., description="Opaque user identifier")
    token: str = Field(..., description="Bearer access token")
    refresh_token: Optional[str] = Field(None, description="Refresh token for renewal")
    role: Role = Field(default=Role.TENANT)
    expires_at: Optional[int] = Field(None, description="Unix expiry of the access token")

    @property
    def is_owner(self) -> bool:
        return self.role in (Role.LANDLORD, Role.ADMIN)


def user_from_provider(raw: Any) -> User:
    """Build a User from a Supabase auth user object."""
    metadata = getattr(raw, "user_metadata", None) or {}
    return User(
        id=str(raw.id),
        email=raw.email or "",
        name=metadata.get("full_name") or metadata.get("name"),
        role=Role.from_metadata(metadata.get("role")),
        email_confirmed=bool(getattr(raw, "email_confirmed_at", None)),
        created_at=str(raw.created_at) if getattr(raw, "created_at", None) else None,
    )
