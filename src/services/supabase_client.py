"""Supabase Auth access; Supabase is the hosted identity provider behind SessionContext."""

from typing import Optional
from supabase import create_client, Client
from supabase.client import ClientOptions

from src.utils.config import AppConfig
from src.utils.errors import AuthError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

# Global client instance (singleton pattern)
_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Get or create the anon-key client used for end-user auth calls."""
    global _client

    if _client is None:
        if not AppConfig.SUPABASE_URL or not AppConfig.SUPABASE_ANON_KEY:
            raise AuthError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")

        # SessionContext persists and refreshes the session itself
        _client = create_client(
            AppConfig.SUPABASE_URL,
            AppConfig.SUPABASE_ANON_KEY,
            ClientOptions(auto_refresh_token=False, persist_session=False),
        )
        logger.info("Supabase auth client initialized", url=AppConfig.SUPABASE_URL)

    return _client


def close_supabase_client() -> None:
    """Forget the client so the next call rebuilds it from configuration."""
    global _client
    if _client is not None:
        _client = None
        logger.info("Supabase auth client released")


class SupabaseClient:
    """Async context manager scoping one auth operation against Supabase."""

    def __init__(self, operation: str = "auth"):
        self.operation = operation
        self.client: Optional[Client] = None

    async def __aenter__(self) -> Client:
        self.client = get_supabase_client()
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.warning(
                "Supabase auth operation failed",
                operation=self.operation,
                error=str(exc_val),
                error_type=exc_type.__name__
            )
        return False
