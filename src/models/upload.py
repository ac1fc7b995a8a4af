"""Image upload models."""

from typing import Optional
from pydantic import BaseModel, Field

from src.models.base import MarketplaceModel


class UploadCredential(MarketplaceModel):
    """Short-lived signed upload credential issued by the trusted backend."""
    token: str
    signature: str
    expire: int = Field(..., description="Unix expiry timestamp")
    public_key: str
    url_endpoint: str


class UploadFile(BaseModel):
    """File selected for upload."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class UploadResult(MarketplaceModel):
    """CDN response for a stored image."""
    file_id: str
    name: str
    size: int
    file_path: str
    url: str
    thumbnail_url: Optional[str] = None
    height: Optional[int] = None
    width: Optional[int] = None
    file_type: Optional[str] = Field(None, description="image or non-image")
