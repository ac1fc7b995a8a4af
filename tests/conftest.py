"""Shared pytest fixtures and configuration."""

import os
import logging
import tempfile
import pytest
from unittest.mock import AsyncMock
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("CHOICE_API_BASE_URL", "https://api.test.local")
os.environ.setdefault("CHOICE_STORAGE_DIR", os.path.join(tempfile.gettempdir(), "choice-properties-tests"))
os.environ.setdefault("IMAGEKIT_PUBLIC_KEY", "public_test_key")
os.environ.setdefault("IMAGEKIT_PRIVATE_KEY", "private_test_key")
os.environ.setdefault("IMAGEKIT_URL_ENDPOINT", "https://upload.imagekit.test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from src.services.api_client import RemoteAccessor  # noqa: E402
from src.services.local_storage import LocalStorage  # noqa: E402
from src.services.session_context import SessionContext  # noqa: E402
from tests.utils.helpers import CollectingNotifier  # noqa: E402


@pytest.fixture
def storage(tmp_path):
    """Local store rooted in a per-test directory."""
    return LocalStorage(tmp_path / "storage")


@pytest.fixture
def notifier():
    """Notifier that records every notification."""
    return CollectingNotifier()


@pytest.fixture
def session_context(storage):
    """Anonymous, fully restored session context."""
    return SessionContext(storage)


@pytest.fixture
def mock_remote():
    """Remote accessor with every call mocked."""
    return AsyncMock(spec=RemoteAccessor)


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        yield frozen_time


@pytest.fixture(scope="function")
def reset_environment(monkeypatch):
    """Reset environment variables for each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def detach_service_log_handlers():
    """Drop stdout handlers installed by setup_logging once a test ends."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_choice_properties", False):
            root.removeHandler(handler)
