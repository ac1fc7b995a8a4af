"""Test helper functions."""

import asyncio
import json
from io import BytesIO
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import Mock

from src.services.session_context import SessionContext
from src.services.sync_state import Notification


class CollectingNotifier:
    """Notifier that keeps every notification for assertions."""

    def __init__(self):
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    @property
    def last(self) -> Optional[Notification]:
        return self.notifications[-1] if self.notifications else None

    @property
    def failures(self) -> list[Notification]:
        return [n for n in self.notifications if n.is_failure]


def create_provider_user(
    user_id: str = "user-123",
    email: str = "renter@example.com",
    name: str = "Test Renter",
    role: str = "tenant",
) -> SimpleNamespace:
    """Shape of a Supabase auth user."""
    return SimpleNamespace(
        id=user_id,
        email=email,
        user_metadata={"full_name": name, "role": role},
        email_confirmed_at="2024-12-01T00:00:00Z",
        created_at="2024-12-01T00:00:00Z",
    )


def create_auth_response(
    user_id: str = "user-123",
    email: str = "renter@example.com",
    role: str = "tenant",
    access_token: str = "access-token",
    refresh_token: Optional[str] = "refresh-token",
    with_session: bool = True,
) -> SimpleNamespace:
    """Shape of a Supabase AuthResponse."""
    session = None
    if with_session:
        session = SimpleNamespace(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=1733745600,
        )
    return SimpleNamespace(
        user=create_provider_user(user_id=user_id, email=email, role=role),
        session=session,
    )


def sign_in(context: SessionContext, user_id: str = "user-123", role: str = "tenant") -> None:
    """Establish a session the way a successful login does."""
    context._establish(create_auth_response(user_id=user_id, role=role))


def sign_out(context: SessionContext, monkeypatch) -> None:
    """Log out without touching the identity provider."""
    monkeypatch.setattr(
        "src.services.session_context.get_supabase_client",
        lambda: Mock(),
    )
    context.logout()


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def invoke_handler(handler_class: Any, method: str, path: str) -> tuple[Mock, dict]:
    """Run a Vercel handler method and return (send_response mock, JSON body)."""
    class MockSocket:
        def makefile(self, *args, **kwargs):
            return BytesIO(f"{method} {path} HTTP/1.1\r\n\r\n".encode())

        def sendall(self, data):
            pass

        def close(self):
            pass

    h = handler_class(MockSocket(), ("127.0.0.1", 8000), None)
    h.wfile = BytesIO()
    h.send_response = Mock()
    h.send_header = Mock()
    h.end_headers = Mock()

    getattr(h, f"do_{method}")()

    h.wfile.seek(0)
    return h.send_response, json.loads(h.wfile.read().decode('utf-8'))
