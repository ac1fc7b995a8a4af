"""Owned properties synchroniser - the landlord's own listings."""

from typing import Any, Optional, Union

from src.models.property import Property, PropertyDraft, PropertyStatus
from src.models.session import Session
from src.services.local_storage import StorageKeys
from src.services.sync_state import (
    LocalMutation,
    RemoteMutation,
    find_by_id,
    remove_by_id,
    replace_by_id,
)
from src.services.synced_collection import (
    SyncedCollection,
    build_model,
    changes_payload,
    normalize_changes,
    utc_now_iso,
)
from src.utils.errors import ValidationError
from src.utils.ids import generate_local_id
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

LOCAL_OWNER_ID = "local"

# Fields only the store may set
_PROTECTED_FIELDS = ("id", "owner_id", "created_at", "updated_at")


class OwnedPropertiesSync(SyncedCollection[Property]):
    """Listings owned by the signed-in landlord, or drafted anonymously."""

    storage_key = StorageKeys.OWNED_PROPERTIES
    entity_label = "property"

    def _decode_local(self, raw: list[Any]) -> list[Property]:
        properties = []
        for item in raw:
            try:
                properties.append(Property.model_validate(item))
            except ValueError:
                logger.warning("Skipping unreadable local property", storage_key=self.storage_key)
        return properties

    async def _fetch_remote(self, session: Session) -> list[Property]:
        return await self.remote.list_owned_properties(session.user_id)

    def _require_owned(self, property_id: str) -> Property:
        existing = find_by_id(self.items, property_id)
        if existing is None:
            raise ValidationError(f"Property {property_id} not found", field="property_id")
        return existing

    def _listed_remotely(self, property_id: str) -> Optional[Property]:
        """
        Listing targeted by a remote mutation.

        Records served from the local fallback belong to the anonymous scope
        and are never sent to the server.
        """
        current = find_by_id(self.items, property_id)
        if current is not None and current.owner_id != self.session.session.user_id:
            raise ValidationError(f"Property {property_id} not found", field="property_id")
        return current

    def _referenced_locally(self, property_id: str) -> bool:
        """Whether any locally stored application points at the listing."""
        for key in (StorageKeys.APPLICATIONS, StorageKeys.OWNER_APPLICATIONS):
            raw = self.storage.read_json(key, [])
            if not isinstance(raw, list):
                continue
            for item in raw:
                if isinstance(item, dict) and (item.get("propertyId") or item.get("property_id")) == property_id:
                    return True
        return False

    async def create_property(self, draft: Union[PropertyDraft, dict[str, Any]]) -> Property:
        """Create a listing in the authoritative store."""
        if isinstance(draft, dict):
            draft = build_model(PropertyDraft, draft)

        if not self._remote_mode():
            created = Property(
                **draft.model_dump(),
                id=generate_local_id("prop", (p.id for p in self.items)),
                owner_id=LOCAL_OWNER_ID,
                created_at=utc_now_iso(),
            )
            await self._run_local(LocalMutation(
                action="create",
                apply=lambda items: [*items, created],
                success_message="Property added",
                failure_message="Could not save property",
            ))
            return created

        payload = {**draft.to_json_dict(), "ownerId": self.session.session.user_id}
        return await self._run_remote(RemoteMutation(
            action="create",
            request=lambda: self.remote.create_property(payload),
            reconcile=replace_by_id,
            success_message="Property created successfully",
            failure_message="Error creating property",
        ))

    async def update_property(self, property_id: str, changes: dict[str, Any]) -> Property:
        """Apply a partial update to one listing."""
        changes = normalize_changes(Property, changes, protected=_PROTECTED_FIELDS)

        if not self._remote_mode():
            current = self._require_owned(property_id)
            updated = build_model(Property, {**current.model_dump(), **changes, "updated_at": utc_now_iso()})
            await self._run_local(LocalMutation(
                action="update",
                apply=lambda items: replace_by_id(items, updated),
                success_message="Property updated",
                failure_message="Could not save property",
            ))
            return updated

        current = self._listed_remotely(property_id)
        if current is not None:
            build_model(Property, {**current.model_dump(), **changes})
        payload = changes_payload(Property, changes)
        return await self._run_remote(RemoteMutation(
            action="update",
            request=lambda: self.remote.update_property(property_id, payload),
            reconcile=replace_by_id,
            success_message="Property updated",
            failure_message="Error updating property",
        ))

    async def archive_property(self, property_id: str) -> Property:
        """Take a listing off the market without deleting it."""
        return await self.update_property(property_id, {"status": PropertyStatus.ARCHIVED})

    async def delete_property(self, property_id: str) -> Optional[Property]:
        """
        Delete a listing.

        A listing still referenced by an application is archived instead and
        the archived record is returned; otherwise it is removed and None is
        returned.
        """
        if not self._remote_mode():
            self._require_owned(property_id)
            if self._referenced_locally(property_id):
                logger.info("Property referenced by an application, archiving instead", property_id=property_id)
                return await self.archive_property(property_id)
            await self._run_local(LocalMutation(
                action="delete",
                apply=lambda items: remove_by_id(items, property_id),
                success_message="Property deleted",
                failure_message="Could not delete property",
            ))
            return None

        self._listed_remotely(property_id)

        def reconcile(items: list[Property], archived: Optional[Property]) -> list[Property]:
            if archived is not None and archived.status is PropertyStatus.ARCHIVED:
                return replace_by_id(items, archived)
            return remove_by_id(items, property_id)

        return await self._run_remote(RemoteMutation(
            action="delete",
            request=lambda: self.remote.delete_property(property_id),
            reconcile=reconcile,
            success_message="Property deleted",
            failure_message="Error deleting property",
        ))
