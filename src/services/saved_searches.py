"""Saved searches synchroniser."""

from typing import Any, Iterable, Optional, Union

from src.models.property import Property
from src.models.saved_search import SavedSearch, SearchFilters
from src.models.session import Session
from src.services.local_storage import StorageKeys
from src.services.sync_state import (
    LocalMutation,
    RemoteMutation,
    find_by_id,
    remove_by_id,
    replace_by_id,
)
from src.services.synced_collection import SyncedCollection, build_model, utc_now_iso
from src.utils.errors import ValidationError
from src.utils.ids import generate_local_id
from src.utils.logging import get_structured_logger
from src.utils.validation import require

logger = get_structured_logger(__name__)

LOCAL_USER_ID = "local"

FiltersInput = Union[SearchFilters, dict[str, Any], None]


def _coerce_filters(filters: FiltersInput) -> SearchFilters:
    if filters is None:
        filters = SearchFilters()
    elif isinstance(filters, dict):
        filters = build_model(SearchFilters, filters)
    if filters.min_price is not None and filters.max_price is not None and filters.min_price > filters.max_price:
        raise ValidationError("Minimum price cannot exceed maximum price", field="min_price")
    return filters


class SavedSearchesSync(SyncedCollection[SavedSearch]):
    """Named filter sets of the current user or the anonymous scope."""

    storage_key = StorageKeys.SAVED_SEARCHES
    entity_label = "saved search"

    def _decode_local(self, raw: list[Any]) -> list[SavedSearch]:
        searches = []
        for item in raw:
            try:
                searches.append(SavedSearch.model_validate(item))
            except ValueError:
                logger.warning("Skipping unreadable local saved search", storage_key=self.storage_key)
        return searches

    async def _fetch_remote(self, session: Session) -> list[SavedSearch]:
        return await self.remote.list_saved_searches(session.user_id)

    async def create_search(self, name: str, filters: FiltersInput = None) -> SavedSearch:
        name = require(name, "name", "Search name")
        filters = _coerce_filters(filters)

        if not self._remote_mode():
            created = SavedSearch(
                id=generate_local_id("search", (s.id for s in self.items)),
                user_id=LOCAL_USER_ID,
                name=name,
                filters=filters,
                created_at=utc_now_iso(),
            )
            await self._run_local(LocalMutation(
                action="create",
                apply=lambda items: [*items, created],
                success_message="Search saved locally",
                failure_message="Could not save search",
            ))
            return created

        payload = {
            "userId": self.session.session.user_id,
            "name": name,
            "filters": filters.to_json_dict(),
        }
        return await self._run_remote(RemoteMutation(
            action="create",
            request=lambda: self.remote.create_saved_search(payload),
            reconcile=replace_by_id,
            success_message="Search saved successfully",
            failure_message="Error saving search",
        ))

    async def update_search(self, search_id: str, name: str, filters: FiltersInput = None) -> SavedSearch:
        name = require(name, "name", "Search name")
        filters = _coerce_filters(filters)

        if not self._remote_mode():
            current = find_by_id(self.items, search_id)
            if current is None:
                raise ValidationError(f"Saved search {search_id} not found", field="search_id")
            updated = current.model_copy(update={"name": name, "filters": filters, "updated_at": utc_now_iso()})
            await self._run_local(LocalMutation(
                action="update",
                apply=lambda items: replace_by_id(items, updated),
                success_message="Search updated",
                failure_message="Could not save search",
            ))
            return updated

        payload = {"name": name, "filters": filters.to_json_dict()}
        return await self._run_remote(RemoteMutation(
            action="update",
            request=lambda: self.remote.update_saved_search(search_id, payload),
            reconcile=replace_by_id,
            success_message="Search updated",
            failure_message="Error updating search",
        ))

    async def delete_search(self, search_id: str) -> None:
        if not self._remote_mode():
            await self._run_local(LocalMutation(
                action="delete",
                apply=lambda items: remove_by_id(items, search_id),
                success_message="Search deleted",
                failure_message="Could not delete search",
            ))
            return

        await self._run_remote(RemoteMutation(
            action="delete",
            request=lambda: self.remote.delete_saved_search(search_id),
            reconcile=lambda items, _: remove_by_id(items, search_id),
            success_message="Search deleted",
            failure_message="Error deleting search",
        ))

    def apply(self, search_id: str, properties: Iterable[Property]) -> list[Property]:
        """Listings matching a saved search's filters."""
        search: Optional[SavedSearch] = find_by_id(self.items, search_id)
        if search is None:
            raise ValidationError(f"Saved search {search_id} not found", field="search_id")
        return [p for p in properties if search.filters.matches(p)]
