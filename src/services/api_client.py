"""Remote data accessor - authenticated JSON calls against the marketplace API."""

from typing import Any, Callable, Optional, Type, TypeVar
import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError

from src.models.application import Application
from src.models.inquiry import Inquiry
from src.models.property import Property
from src.models.review import Review
from src.models.saved_search import SavedSearch, SearchFilters
from src.models.upload import UploadCredential
from src.utils.config import AppConfig
from src.utils.errors import RemoteError
from src.utils.logging import get_structured_logger, log_timing, mask_user_id

logger = get_structured_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

TokenProvider = Callable[[], Optional[str]]


def unwrap_payload(body: Any, legacy_key: Optional[str] = None) -> Any:
    """
    Extract the payload from a response body.

    Accepts ``{"data": ...}``, the legacy ``{"<legacy_key>": ...}`` shape, or a
    bare array/object.
    """
    if isinstance(body, dict):
        if "data" in body:
            return body["data"]
        if legacy_key and legacy_key in body:
            return body[legacy_key]
    return body


def parse_model(model: Type[ModelT], payload: Any, what: str) -> ModelT:
    """Validate one record, turning schema failures into RemoteError."""
    if not isinstance(payload, dict):
        raise RemoteError(f"Malformed {what} payload: expected an object")
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise RemoteError(f"Malformed {what} payload: {e.error_count()} invalid field(s)") from e


def parse_model_list(model: Type[ModelT], payload: Any, what: str) -> list[ModelT]:
    """Validate a list of records."""
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise RemoteError(f"Malformed {what} payload: expected a list")
    return [parse_model(model, item, what) for item in payload]


def favorite_row_id(user_id: str, property_id: str) -> str:
    """Row id of a favorite, stable per (user, property)."""
    return f"fav_{user_id}_{property_id}"


class RemoteAccessor:
    """Thin CRUD client for properties, favorites, applications, saved searches, inquiries and reviews."""

    def __init__(
        self,
        base_url: str = AppConfig.API_BASE_URL,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = AppConfig.HTTP_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider or (lambda: None)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if we created it."""
        if self._owns_client:
            await self.client.aclose()

    def _headers(self, auth: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if auth:
            token = self.token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        auth: bool = True,
        legacy_key: Optional[str] = None,
    ) -> Any:
        """
        Issue a request and return the unwrapped payload.

        Raises RemoteError on transport failure, non-2xx status (message taken
        from the body's ``error`` field when present) or an unparseable body.
        """
        url = f"{self.base_url}{path}"
        with log_timing("remote_request", logger=logger, method=method, path=path):
            try:
                response = await self.client.request(
                    method,
                    url,
                    json=json,
                    params={k: v for k, v in (params or {}).items() if v is not None} or None,
                    headers=self._headers(auth),
                )
            except httpx.HTTPError as e:
                logger.warning("Remote request failed in transit", method=method, path=path, error=str(e))
                raise RemoteError(f"Network error: {e}") from e

        if not response.is_success:
            message = None
            try:
                body = response.json()
                if isinstance(body, dict) and isinstance(body.get("error"), str):
                    message = body["error"]
            except ValueError:
                pass
            logger.warning(
                "Remote request rejected",
                method=method,
                path=path,
                status_code=response.status_code,
                server_message=message
            )
            raise RemoteError(
                message or f"Request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteError("Malformed response: body is not JSON", status_code=response.status_code) from e
        return unwrap_payload(body, legacy_key)

    # Properties
    async def list_properties(self, filters: Optional[SearchFilters] = None) -> list[Property]:
        params = {}
        if filters is not None:
            params = {
                "city": filters.city,
                "propertyType": filters.property_type,
                "minPrice": str(filters.min_price) if filters.min_price is not None else None,
                "maxPrice": str(filters.max_price) if filters.max_price is not None else None,
            }
        payload = await self.request("GET", "/api/properties", params=params, auth=False, legacy_key="properties")
        return parse_model_list(Property, payload, "property")

    async def get_property(self, property_id: str) -> Property:
        payload = await self.request("GET", f"/api/properties/{property_id}", auth=False)
        return parse_model(Property, payload, "property")

    async def list_owned_properties(self, owner_id: str) -> list[Property]:
        payload = await self.request(
            "GET", "/api/properties", params={"ownerId": owner_id}, legacy_key="properties"
        )
        return parse_model_list(Property, payload, "property")

    async def create_property(self, data: dict[str, Any]) -> Property:
        payload = await self.request("POST", "/api/properties", json=data)
        return parse_model(Property, payload, "property")

    async def update_property(self, property_id: str, changes: dict[str, Any]) -> Property:
        payload = await self.request("PATCH", f"/api/properties/{property_id}", json=changes)
        return parse_model(Property, payload, "property")

    async def delete_property(self, property_id: str) -> Optional[Property]:
        """Delete a listing; returns the archived row when the server archives instead."""
        payload = await self.request("DELETE", f"/api/properties/{property_id}")
        if isinstance(payload, dict) and "id" in payload:
            return parse_model(Property, payload, "property")
        return None

    # Favorites
    async def list_favorites(self, user_id: str) -> list[str]:
        payload = await self.request("GET", f"/api/favorites/user/{user_id}", legacy_key="favorites")
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise RemoteError("Malformed favorites payload: expected a list")
        ids: list[str] = []
        for item in payload:
            if isinstance(item, str):
                property_id = item
            elif isinstance(item, dict):
                property_id = item.get("property_id") or item.get("propertyId")
            else:
                property_id = None
            if not property_id:
                raise RemoteError("Malformed favorites payload: missing property id")
            if property_id not in ids:
                ids.append(property_id)
        logger.debug("Fetched favorites", user_id=mask_user_id(user_id), count=len(ids))
        return ids

    async def add_favorite(self, user_id: str, property_id: str) -> None:
        await self.request("POST", "/api/favorites", json={
            "id": favorite_row_id(user_id, property_id),
            "user_id": user_id,
            "property_id": property_id,
        })

    async def remove_favorite(self, user_id: str, property_id: str) -> None:
        await self.request("DELETE", f"/api/favorites/{favorite_row_id(user_id, property_id)}")

    # Applications
    async def list_user_applications(self, user_id: str) -> list[Application]:
        payload = await self.request("GET", f"/api/applications/user/{user_id}", legacy_key="applications")
        return parse_model_list(Application, payload, "application")

    async def list_owner_applications(self, owner_id: str) -> list[Application]:
        payload = await self.request("GET", f"/api/applications/property/{owner_id}", legacy_key="applications")
        return parse_model_list(Application, payload, "application")

    async def create_application(self, data: dict[str, Any]) -> Application:
        payload = await self.request("POST", "/api/applications", json=data)
        return parse_model(Application, payload, "application")

    async def update_application(self, application_id: str, changes: dict[str, Any]) -> Application:
        payload = await self.request("PATCH", f"/api/applications/{application_id}", json=changes)
        return parse_model(Application, payload, "application")

    # Saved searches
    async def list_saved_searches(self, user_id: str) -> list[SavedSearch]:
        payload = await self.request("GET", f"/api/saved-searches/user/{user_id}", legacy_key="searches")
        return parse_model_list(SavedSearch, payload, "saved search")

    async def create_saved_search(self, data: dict[str, Any]) -> SavedSearch:
        payload = await self.request("POST", "/api/saved-searches", json=data)
        return parse_model(SavedSearch, payload, "saved search")

    async def update_saved_search(self, search_id: str, changes: dict[str, Any]) -> SavedSearch:
        payload = await self.request("PATCH", f"/api/saved-searches/{search_id}", json=changes)
        return parse_model(SavedSearch, payload, "saved search")

    async def delete_saved_search(self, search_id: str) -> None:
        await self.request("DELETE", f"/api/saved-searches/{search_id}")

    # Inquiries
    async def create_inquiry(self, data: dict[str, Any]) -> Inquiry:
        payload = await self.request("POST", "/api/inquiries", json=data)
        return parse_model(Inquiry, payload, "inquiry")

    async def list_agent_inquiries(self, agent_id: str) -> list[Inquiry]:
        payload = await self.request("GET", f"/api/inquiries/agent/{agent_id}", legacy_key="inquiries")
        return parse_model_list(Inquiry, payload, "inquiry")

    # Reviews
    async def list_property_reviews(self, property_id: str) -> list[Review]:
        payload = await self.request(
            "GET", f"/api/reviews/property/{property_id}", auth=False, legacy_key="reviews"
        )
        return parse_model_list(Review, payload, "review")

    async def create_review(self, data: dict[str, Any]) -> Review:
        payload = await self.request("POST", "/api/reviews", json=data)
        return parse_model(Review, payload, "review")

    # Uploads
    async def request_upload_token(self) -> UploadCredential:
        payload = await self.request("POST", "/api/imagekit/upload_token")
        return parse_model(UploadCredential, payload, "upload credential")
