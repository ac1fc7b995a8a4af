"""Favorites synchroniser - a duplicate-free set of property ids per scope."""

from typing import Any

from src.models.session import Session
from src.services.local_storage import StorageKeys
from src.services.sync_state import KeyedMutex, LocalMutation, RemoteMutation
from src.services.synced_collection import SyncedCollection
from src.utils.logging import get_structured_logger, mask_user_id
from src.utils.validation import require

logger = get_structured_logger(__name__)


def _without(ids: list[str], property_id: str) -> list[str]:
    return [existing for existing in ids if existing != property_id]


def _with(ids: list[str], property_id: str) -> list[str]:
    return ids if property_id in ids else [*ids, property_id]


class FavoritesSync(SyncedCollection[str]):
    """
    Favorited property ids for the current session or the anonymous scope.

    Mutations on the same id are serialised and each one evaluates membership
    only once the previous one has settled, so rapid toggles resolve to the
    last intent. Different ids proceed independently.
    """

    storage_key = StorageKeys.FAVORITES
    entity_label = "favorites"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._in_flight = KeyedMutex()

    def _decode_local(self, raw: list[Any]) -> list[str]:
        ids: list[str] = []
        for item in raw:
            if isinstance(item, str) and item not in ids:
                ids.append(item)
        return ids

    def _encode_local(self, items: list[str]) -> list[Any]:
        return list(items)

    async def _fetch_remote(self, session: Session) -> list[str]:
        return await self.remote.list_favorites(session.user_id)

    def is_favorited(self, property_id: str) -> bool:
        return property_id in self.items

    def is_pending(self, property_id: str) -> bool:
        """Whether a mutation for this id is still in flight."""
        return self._in_flight.in_flight(property_id)

    async def toggle_favorite(self, property_id: str) -> bool:
        """Flip membership of ``property_id``; returns the new membership."""
        property_id = require(property_id, "property_id", "Property")
        async with self._in_flight.hold(property_id):
            remote = self._remote_mode()
            target = not self.is_favorited(property_id)
            await self._set_membership(property_id, target, remote)
            return target

    async def add_favorite(self, property_id: str) -> None:
        property_id = require(property_id, "property_id", "Property")
        async with self._in_flight.hold(property_id):
            remote = self._remote_mode()
            if not self.is_favorited(property_id):
                await self._set_membership(property_id, True, remote)

    async def remove_favorite(self, property_id: str) -> None:
        property_id = require(property_id, "property_id", "Property")
        async with self._in_flight.hold(property_id):
            remote = self._remote_mode()
            if self.is_favorited(property_id):
                await self._set_membership(property_id, False, remote)

    async def _set_membership(self, property_id: str, favorited: bool, remote: bool) -> None:
        if favorited:
            message = "Added to favorites"
            change = _with
        else:
            message = "Removed from favorites"
            change = _without

        if not remote:
            await self._run_local(LocalMutation(
                action="add" if favorited else "remove",
                apply=lambda ids: change(ids, property_id),
                success_message=message,
                failure_message="Could not update favorites",
            ))
            return

        user_id = self.session.session.user_id
        if favorited:
            request = lambda: self.remote.add_favorite(user_id, property_id)
        else:
            request = lambda: self.remote.remove_favorite(user_id, property_id)

        await self._run_remote(RemoteMutation(
            action="add" if favorited else "remove",
            request=request,
            reconcile=lambda ids, _: change(ids, property_id),
            success_message=message,
            failure_message="Could not update favorites",
        ))
        logger.debug(
            "Favorite updated",
            user_id=mask_user_id(user_id),
            property_id=property_id,
            favorited=favorited
        )
