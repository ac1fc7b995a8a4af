"""Building blocks shared by the synchronisers: states, mutation variants, notifications, per-id locks."""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, Protocol, TypeVar

from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class SyncStatus(str, Enum):
    """Lifecycle of a synchroniser for the current session identity."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY_LOCAL = "ready_local"
    READY_REMOTE = "ready_remote"
    READY_REMOTE_FALLBACK = "ready_remote_fallback"

    @property
    def is_ready(self) -> bool:
        return self in (SyncStatus.READY_LOCAL, SyncStatus.READY_REMOTE, SyncStatus.READY_REMOTE_FALLBACK)


@dataclass(frozen=True)
class LocalMutation(Generic[T]):
    """
    Mutation against the anonymous local store.

    Applied to the in-memory list first (optimistic), then the whole list is
    written in one go; a failed write restores the previous list.
    """
    action: str
    apply: Callable[[list[T]], list[T]]
    success_message: str
    failure_message: str


@dataclass(frozen=True)
class RemoteMutation(Generic[T, R]):
    """
    Mutation against the remote API.

    Nothing changes in memory until ``request`` settles successfully; then
    ``reconcile`` patches only the affected entity into the list.
    """
    action: str
    request: Callable[[], Awaitable[R]]
    reconcile: Callable[[list[T], R], list[T]]
    success_message: str
    failure_message: str


@dataclass(frozen=True)
class Notification:
    """Toast-equivalent summary of a mutation outcome."""
    title: str
    description: str
    variant: str = "default"

    @property
    def is_failure(self) -> bool:
        return self.variant == "destructive"


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Default notifier; writes notifications to the structured log."""

    def notify(self, notification: Notification) -> None:
        if notification.is_failure:
            logger.warning(notification.title, description=notification.description)
        else:
            logger.info(notification.title, description=notification.description)


def success(description: str) -> Notification:
    return Notification(title="Success", description=description)


def failure(description: str) -> Notification:
    return Notification(title="Error", description=description, variant="destructive")


class KeyedMutex:
    """
    Per-key in-flight map of locks.

    Callers holding the same key run one at a time in arrival order; other
    keys are unaffected. Entries are dropped once nobody holds or waits.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def in_flight(self, key: str) -> bool:
        return self._holders.get(key, 0) > 0

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]


def replace_by_id(items: list[Any], entity: Any) -> list[Any]:
    """Swap the entity with the same id into the list, appending when new."""
    replaced = False
    updated = []
    for item in items:
        if item.id == entity.id:
            updated.append(entity)
            replaced = True
        else:
            updated.append(item)
    if not replaced:
        updated.append(entity)
    return updated


def remove_by_id(items: list[Any], entity_id: str) -> list[Any]:
    return [item for item in items if item.id != entity_id]


def find_by_id(items: list[Any], entity_id: str) -> Optional[Any]:
    return next((item for item in items if item.id == entity_id), None)
