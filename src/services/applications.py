"""
Application synchronisers.

Renters fill in a multi-step form whose progress is saved against one
application record per (property, applicant); owners review applications for
their listings and move them from pending to approved or rejected.
"""

from typing import Any, Optional

from src.models.application import APPLICATION_SECTIONS, Application, ApplicationStatus
from src.models.session import Session
from src.services.local_storage import StorageKeys
from src.services.sync_state import KeyedMutex, LocalMutation, RemoteMutation, find_by_id, replace_by_id
from src.services.synced_collection import (
    SyncedCollection,
    build_model,
    changes_payload,
    utc_now_iso,
)
from src.utils.errors import PermissionDeniedError, ValidationError
from src.utils.ids import generate_local_id
from src.utils.logging import get_structured_logger
from src.utils.validation import require

logger = get_structured_logger(__name__)

LOCAL_APPLICANT_ID = "local"


class _ApplicationCollection(SyncedCollection[Application]):
    entity_label = "application"

    def _decode_local(self, raw: list[Any]) -> list[Application]:
        applications = []
        for item in raw:
            try:
                applications.append(Application.model_validate(item))
            except ValueError:
                logger.warning("Skipping unreadable local application", storage_key=self.storage_key)
        return applications

    def _require(self, application_id: str) -> Application:
        existing = find_by_id(self.items, application_id)
        if existing is None:
            raise ValidationError(f"Application {application_id} not found", field="application_id")
        return existing

    async def _save(
        self,
        application_id: str,
        changes: dict[str, Any],
        success_message: str,
        failure_message: str,
    ) -> Application:
        """Persist a validated change set in whichever store is authoritative."""
        if not self._remote_mode():
            current = self._require(application_id)
            updated = build_model(Application, {**current.model_dump(), **changes, "updated_at": utc_now_iso()})
            await self._run_local(LocalMutation(
                action="update",
                apply=lambda items: replace_by_id(items, updated),
                success_message=success_message,
                failure_message=failure_message,
            ))
            return updated

        payload = changes_payload(Application, changes)
        return await self._run_remote(RemoteMutation(
            action="update",
            request=lambda: self.remote.update_application(application_id, payload),
            reconcile=replace_by_id,
            success_message=success_message,
            failure_message=failure_message,
        ))


class RenterApplicationsSync(_ApplicationCollection):
    """The applicant's own applications."""

    storage_key = StorageKeys.APPLICATIONS

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._starting = KeyedMutex()

    async def _fetch_remote(self, session: Session) -> list[Application]:
        return await self.remote.list_user_applications(session.user_id)

    def _applicant_id(self) -> Optional[str]:
        """Applicant the authoritative store is scoped to; None in local mode."""
        session = self.session.session
        return session.user_id if self._uses_remote(session) else None

    def _require(self, application_id: str) -> Application:
        existing = super()._require(application_id)
        applicant_id = self._applicant_id()
        if applicant_id is not None and existing.user_id != applicant_id:
            # Local fallback record, unknown to the server
            raise ValidationError(f"Application {application_id} not found", field="application_id")
        return existing

    def find_open(self, property_id: str, user_id: Optional[str] = None) -> Optional[Application]:
        """Application still being filled in for ``property_id``, if any."""
        return next(
            (
                a for a in self.items
                if a.property_id == property_id and a.is_open
                and (user_id is None or a.user_id == user_id)
            ),
            None,
        )

    async def start_application(
        self,
        property_id: str,
        sections: Optional[dict[str, dict[str, Any]]] = None,
        application_fee: Optional[Any] = None,
    ) -> Application:
        """
        Begin an application for a property.

        Returns the open application for the same property and applicant when
        one exists, so resuming the form never creates a second record.
        Concurrent starts for one property run one at a time.
        """
        property_id = require(property_id, "property_id", "Property")
        sections = _check_sections(sections or {})

        async with self._starting.hold(property_id):
            remote = self._remote_mode()
            existing = self.find_open(property_id, self._applicant_id())
            if existing is not None:
                if sections:
                    return await self.save_progress(existing.id, existing.step, **sections)
                return existing
            return await self._create(property_id, sections, application_fee, remote)

    async def _create(
        self,
        property_id: str,
        sections: dict[str, dict[str, Any]],
        application_fee: Optional[Any],
        remote: bool,
    ) -> Application:
        user = self.session.user
        if not remote:
            created = build_model(Application, {
                "id": generate_local_id("app", (a.id for a in self.items)),
                "property_id": property_id,
                "user_id": LOCAL_APPLICANT_ID,
                "step": 1,
                "application_fee": application_fee,
                "created_at": utc_now_iso(),
                **sections,
            })
            await self._run_local(LocalMutation(
                action="create",
                apply=lambda items: [*items, created],
                success_message="Application started",
                failure_message="Could not save application",
            ))
            return created

        payload = {
            "propertyId": property_id,
            "userId": self.session.session.user_id,
            "step": 1,
            "status": ApplicationStatus.PENDING.value,
            "userEmail": user.email if user else None,
            "userName": user.name if user else None,
            "applicationFee": str(application_fee) if application_fee is not None else None,
            **changes_payload(Application, sections),
        }
        payload = {key: value for key, value in payload.items() if value is not None}
        return await self._run_remote(RemoteMutation(
            action="create",
            request=lambda: self.remote.create_application(payload),
            reconcile=replace_by_id,
            success_message="Application started",
            failure_message="Error saving application",
        ))

    async def save_progress(self, application_id: str, step: int, **sections: dict[str, Any]) -> Application:
        """
        Record form progress on the same application record.

        ``step`` never moves backwards; section dicts are merged into what
        was saved before.
        """
        self._remote_mode()
        current = self._require(application_id)
        if not current.is_open:
            raise ValidationError("Application has already been submitted", field="application_id")
        if step < current.step:
            raise ValidationError(
                f"Cannot move application back from step {current.step} to {step}", field="step"
            )

        changes: dict[str, Any] = {"step": step}
        for name, values in _check_sections(sections).items():
            changes[name] = {**getattr(current, name), **values}
        return await self._save(application_id, changes, "Progress saved", "Error saving application")

    async def attach_documents(self, application_id: str, documents: list[str]) -> Application:
        """Append uploaded document references."""
        self._remote_mode()
        current = self._require(application_id)
        if not current.is_open:
            raise ValidationError("Application has already been submitted", field="application_id")
        merged = list(current.documents)
        for document in documents:
            if document not in merged:
                merged.append(document)
        return await self._save(application_id, {"documents": merged}, "Documents attached", "Error saving application")

    async def submit_application(self, application_id: str) -> Application:
        """Finalise the application for review."""
        self._remote_mode()
        current = self._require(application_id)
        if not current.is_open:
            raise ValidationError("Application has already been submitted", field="application_id")
        return await self._save(
            application_id,
            {"submitted_at": utc_now_iso(), "status": ApplicationStatus.PENDING},
            "Application submitted",
            "Error submitting application",
        )


class OwnerApplicationsSync(_ApplicationCollection):
    """Applications received for the signed-in landlord's listings."""

    storage_key = StorageKeys.OWNER_APPLICATIONS

    def _uses_remote(self, session: Optional[Session]) -> bool:
        return session is not None and session.is_owner

    async def _fetch_remote(self, session: Session) -> list[Application]:
        return await self.remote.list_owner_applications(session.user_id)

    async def update_application_status(self, application_id: str, status: ApplicationStatus) -> Application:
        """Approve or reject a pending application; decisions are final."""
        status = ApplicationStatus(status)
        session = self.session.session
        if session is not None and not session.is_owner:
            raise PermissionDeniedError("Only the property owner or an admin can review applications")

        self._remote_mode()
        current = self._require(application_id)
        if current.status.is_terminal:
            raise ValidationError(
                f"Application already {current.status.value}; a new application is required", field="status"
            )
        if status is ApplicationStatus.PENDING:
            raise ValidationError("Status must be approved or rejected", field="status")

        return await self._save(
            application_id,
            {"status": status},
            f"Application marked as {status.value}",
            "Error updating application",
        )


def _check_sections(sections: dict[str, Any]) -> dict[str, dict[str, Any]]:
    unknown = [name for name in sections if name not in APPLICATION_SECTIONS]
    if unknown:
        raise ValidationError(f"Unknown application section(s): {', '.join(sorted(unknown))}")
    for name, values in sections.items():
        if not isinstance(values, dict):
            raise ValidationError(f"Section '{name}' must be a mapping", field=name)
    return dict(sections)
