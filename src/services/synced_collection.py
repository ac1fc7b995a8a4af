"""
Reconciled view over the local store and the remote API for one entity kind.

Authority follows the session: without a session the local store is
authoritative and no network call is made; with a session the remote API is,
and a failed fetch falls back to the local copy without retrying or writing
it back. Anonymous and user data are never merged: an identity change resets
the collection and loads the new scope from scratch.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, ClassVar, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python

from src.models.session import Session
from src.services.api_client import RemoteAccessor
from src.services.local_storage import LocalStorage
from src.services.session_context import SessionContext
from src.services.sync_state import (
    LocalMutation,
    LoggingNotifier,
    Notification,
    Notifier,
    RemoteMutation,
    SyncStatus,
    failure,
    success,
)
from src.utils.errors import PersistenceError, RemoteError, SessionNotReadyError, ValidationError
from src.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")
ModelT = TypeVar("ModelT", bound=BaseModel)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_model(model: Type[ModelT], data: dict[str, Any]) -> ModelT:
    """Validate user input, reporting the first problem as a ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(f"{field or 'input'}: {first.get('msg', 'invalid value')}", field=field) from e


def normalize_changes(
    model: Type[BaseModel],
    changes: dict[str, Any],
    protected: tuple[str, ...] = ("id", "created_at"),
) -> dict[str, Any]:
    """
    Map camelCase or snake_case keys of a partial update to field names.

    Unknown fields are rejected; store-managed fields are dropped.
    """
    by_alias = {field.alias: name for name, field in model.model_fields.items() if field.alias}
    normalized: dict[str, Any] = {}
    for key, value in changes.items():
        name = key if key in model.model_fields else by_alias.get(key)
        if name is None:
            raise ValidationError(f"Unknown field '{key}'", field=key)
        if name in protected:
            continue
        normalized[name] = value
    if not normalized:
        raise ValidationError("No changes supplied")
    return normalized


def changes_payload(model: Type[BaseModel], changes: dict[str, Any]) -> dict[str, Any]:
    """JSON body for a PATCH: camelCase keys, JSON-safe values."""
    return {
        (model.model_fields[name].alias or name): to_jsonable_python(value)
        for name, value in changes.items()
    }


class SyncedCollection(Generic[T]):
    """Base synchroniser; subclasses supply the key, the codec and the remote fetch."""

    storage_key: ClassVar[str]
    entity_label: ClassVar[str] = "item"

    def __init__(
        self,
        session: SessionContext,
        remote: RemoteAccessor,
        storage: LocalStorage,
        notifier: Optional[Notifier] = None,
    ):
        self.session = session
        self.remote = remote
        self.storage = storage
        self.notifier: Notifier = notifier or LoggingNotifier()

        self.items: list[T] = []
        self.status = SyncStatus.UNINITIALIZED
        self.error: Optional[str] = None

        self._generation = 0
        self._mounted = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._refresh_task: Optional[asyncio.Task] = None

    # Subclass hooks

    def _decode_local(self, raw: list[Any]) -> list[T]:
        raise NotImplementedError

    def _encode_local(self, items: list[T]) -> list[Any]:
        return [item.to_json_dict() for item in items]

    async def _fetch_remote(self, session: Session) -> list[T]:
        raise NotImplementedError

    def _uses_remote(self, session: Optional[Session]) -> bool:
        """Whether the remote API is authoritative for this session."""
        return session is not None

    # Lifecycle

    @property
    def is_loading(self) -> bool:
        return self.status is SyncStatus.LOADING

    async def mount(self) -> None:
        """Start following the session and load the current scope."""
        if not self._mounted:
            self._mounted = True
            self._unsubscribe = self.session.subscribe(self._on_session_change)
        await self.refresh()

    def unmount(self) -> None:
        """Stop following the session; late responses are discarded."""
        self._mounted = False
        self._generation += 1
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        if self._refresh_task and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = None

    def _on_session_change(self, session: Optional[Session]) -> None:
        self._generation += 1
        self.items = []
        self.error = None
        self.status = SyncStatus.UNINITIALIZED
        if not self._mounted:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._refresh_task = loop.create_task(self.refresh())

    async def wait_ready(self) -> None:
        """Wait for a reload triggered by a session change to settle."""
        while self._refresh_task is not None and not self._refresh_task.done():
            await asyncio.shield(self._refresh_task)

    def read_local(self) -> list[T]:
        """Current contents of the local store for this entity kind."""
        raw = self.storage.read_json(self.storage_key, [])
        if not isinstance(raw, list):
            logger.warning("Local blob is not a list, ignoring", storage_key=self.storage_key)
            return []
        return self._decode_local(raw)

    async def refresh(self) -> None:
        """
        Load the authoritative data set for the current session.

        A no-op while the session is restoring. Fetch failures under a session
        serve the local copy and record ``error``.
        """
        if self.session.is_loading:
            self.status = SyncStatus.UNINITIALIZED
            return

        self._generation += 1
        generation = self._generation
        session = self.session.session

        if not self._uses_remote(session):
            self.items = self.read_local()
            self.error = None
            self.status = SyncStatus.READY_LOCAL
            return

        self.status = SyncStatus.LOADING
        self.error = None
        try:
            items = await self._fetch_remote(session)
        except RemoteError as e:
            if generation != self._generation:
                return
            self.items = self.read_local()
            self.error = e.message
            self.status = SyncStatus.READY_REMOTE_FALLBACK
            logger.warning(
                f"Remote {self.entity_label} fetch failed, serving local copy",
                user_id=mask_user_id(session.user_id),
                error=e.message,
                fallback_count=len(self.items)
            )
            return

        if generation != self._generation:
            logger.debug(f"Discarding stale {self.entity_label} response")
            return
        self.items = items
        self.status = SyncStatus.READY_REMOTE

    # Mutations

    def _ensure_local_loaded(self) -> None:
        if self.status is not SyncStatus.READY_LOCAL:
            # Never persist a partial list over what is already stored
            self.items = self.read_local()
            self.status = SyncStatus.READY_LOCAL
            self.error = None

    def _remote_mode(self) -> bool:
        """Pick the authoritative store for a mutation about to run."""
        if self.session.is_loading:
            raise SessionNotReadyError("Session is still loading, try again in a moment")
        remote = self._uses_remote(self.session.session)
        if not remote:
            self._ensure_local_loaded()
        return remote

    def _emit(self, notification: Notification) -> None:
        self.notifier.notify(notification)

    async def _run_local(self, mutation: LocalMutation[T]) -> list[T]:
        self._ensure_local_loaded()
        previous = list(self.items)
        self.items = mutation.apply(previous)
        try:
            self.storage.write_json(self.storage_key, self._encode_local(self.items))
        except PersistenceError as e:
            self.items = previous
            self._emit(failure(f"{mutation.failure_message}: {e}"))
            raise
        self._emit(success(mutation.success_message))
        return self.items

    async def _run_remote(self, mutation: RemoteMutation[T, R]) -> R:
        generation = self._generation
        try:
            result = await mutation.request()
        except RemoteError as e:
            message = e.message or mutation.failure_message
            self.error = message
            self._emit(failure(message))
            raise

        if generation == self._generation:
            self.items = mutation.reconcile(self.items, result)
        else:
            logger.debug(f"Session changed during {self.entity_label} {mutation.action}, not applying result")
        self._emit(success(mutation.success_message))
        return result
