"""Composition root wiring session, stores and synchronisers together."""

from pathlib import Path
from typing import Optional, Union

import httpx

from src.services.api_client import RemoteAccessor
from src.services.applications import OwnerApplicationsSync, RenterApplicationsSync
from src.services.favorites import FavoritesSync
from src.services.image_upload import ImageUploadCoordinator
from src.services.inquiries import InquiriesService
from src.services.local_storage import LocalStorage
from src.services.owned_properties import OwnedPropertiesSync
from src.services.reviews import ReviewsService
from src.services.saved_searches import SavedSearchesSync
from src.services.session_context import SessionContext
from src.services.supabase_client import close_supabase_client
from src.services.sync_state import LoggingNotifier, Notifier
from src.services.synced_collection import SyncedCollection
from src.utils.config import AppConfig
from src.utils.logging import correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

logger = get_structured_logger(__name__)


class MarketplaceClient:
    """Every synchroniser and service sharing one session, store and HTTP client."""

    def __init__(
        self,
        session: SessionContext,
        remote: RemoteAccessor,
        storage: LocalStorage,
        notifier: Notifier,
        http_client: httpx.AsyncClient,
        owns_http_client: bool = True,
    ):
        self.session = session
        self.remote = remote
        self.storage = storage
        self.notifier = notifier
        self._http_client = http_client
        self._owns_http_client = owns_http_client

        self.favorites = FavoritesSync(session, remote, storage, notifier)
        self.owned_properties = OwnedPropertiesSync(session, remote, storage, notifier)
        self.applications = RenterApplicationsSync(session, remote, storage, notifier)
        self.owner_applications = OwnerApplicationsSync(session, remote, storage, notifier)
        self.saved_searches = SavedSearchesSync(session, remote, storage, notifier)
        self.inquiries = InquiriesService(session, remote, storage, notifier)
        self.reviews = ReviewsService(session, remote, notifier)
        self.uploads = ImageUploadCoordinator(remote, notifier=notifier, client=http_client)

    @property
    def synchronisers(self) -> list[SyncedCollection]:
        return [
            self.favorites,
            self.owned_properties,
            self.applications,
            self.owner_applications,
            self.saved_searches,
        ]

    async def mount(self) -> None:
        """Restore the persisted session, then load every collection for it."""
        with correlation_context():
            await self.session.restore()
            for sync in self.synchronisers:
                await sync.mount()
            logger.info(
                "Marketplace client mounted",
                logged_in=self.session.is_logged_in,
                role=self.session.role.value
            )

    async def aclose(self) -> None:
        """Stop following the session and release the HTTP client."""
        for sync in self.synchronisers:
            sync.unmount()
        if self._owns_http_client:
            await self._http_client.aclose()
        close_supabase_client()

    async def __aenter__(self) -> "MarketplaceClient":
        await self.mount()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False


def create_marketplace_client(
    base_url: str = AppConfig.API_BASE_URL,
    storage_dir: Union[str, Path, None] = None,
    notifier: Optional[Notifier] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    timeout: float = AppConfig.HTTP_TIMEOUT_SECONDS,
    configure_logging: bool = True,
) -> MarketplaceClient:
    """Build a client whose collections all follow the same session."""
    if configure_logging:
        LoggingConfig.setup_logging()
    storage = LocalStorage(storage_dir)
    session = SessionContext(storage)
    owns_http_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=timeout)
    remote = RemoteAccessor(base_url, token_provider=session.get_auth_token, client=client)
    return MarketplaceClient(
        session=session,
        remote=remote,
        storage=storage,
        notifier=notifier or LoggingNotifier(),
        http_client=client,
        owns_http_client=owns_http_client,
    )
