"""Shared model configuration."""

from typing import Any
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class MarketplaceModel(BaseModel):
    """
    Base for every marketplace entity.

    Serialises with camelCase keys (REST API and local storage) and accepts
    either camelCase or snake_case on input (Supabase rows are snake_case).
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        """JSON-safe dict with camelCase keys, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
