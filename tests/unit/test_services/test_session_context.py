"""Tests for the session/identity context."""

import pytest
from unittest.mock import MagicMock, Mock, patch
from supabase import AuthApiError

from src.models.session import Role
from src.services.local_storage import StorageKeys
from src.services.session_context import SessionContext
from src.utils.errors import AuthError, ValidationError
from tests.utils.helpers import create_auth_response


@pytest.mark.unit
@pytest.mark.asyncio
async def test_login_establishes_session(session_context, storage):
    """Successful login sets user and session, persists and notifies."""
    mock_client = MagicMock()
    mock_client.auth.sign_in_with_password.return_value = create_auth_response(
        user_id="user-1", email="renter@example.com", role="tenant"
    )
    seen = []
    session_context.subscribe(seen.append)

    with patch('src.services.session_context.SupabaseClient') as mock_client_class:
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client_class.return_value.__aexit__.return_value = None

        user = await session_context.login("renter@example.com", "secret123")

    assert user.id == "user-1"
    assert session_context.is_logged_in
    assert session_context.token == "access-token"
    assert session_context.role is Role.TENANT
    assert storage.read_json(StorageKeys.SESSION) == {
        "accessToken": "access-token",
        "refreshToken": "refresh-token",
    }
    assert len(seen) == 1 and seen[0].user_id == "user-1"
    mock_client.auth.sign_in_with_password.assert_called_once_with(
        {"email": "renter@example.com", "password": "secret123"}
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_login_rejected_by_provider(session_context):
    """Provider errors surface as AuthError with the provider's message."""
    mock_client = MagicMock()
    mock_client.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")

    with patch('src.services.session_context.SupabaseClient') as mock_client_class:
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client_class.return_value.__aexit__.return_value = None

        with pytest.raises(AuthError, match="Invalid login credentials"):
            await session_context.login("renter@example.com", "secret123")

    assert session_context.session is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_login_unverified_email(session_context):
    mock_client = MagicMock()
    mock_client.auth.sign_in_with_password.return_value = create_auth_response(with_session=False)

    with patch('src.services.session_context.SupabaseClient') as mock_client_class:
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client_class.return_value.__aexit__.return_value = None

        with pytest.raises(AuthError, match="verify your email"):
            await session_context.login("renter@example.com", "secret123")


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("email,password,message", [
    ("", "secret123", "Email is required"),
    ("not-an-email", "secret123", "valid email"),
    ("renter@example.com", "123", "at least 6 characters"),
])
async def test_login_validates_before_network(session_context, email, password, message):
    """Bad input never reaches the identity provider."""
    with patch('src.services.session_context.SupabaseClient') as mock_client_class:
        with pytest.raises(ValidationError, match=message):
            await session_context.login(email, password)

        mock_client_class.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_signup_requires_matching_passwords(session_context):
    with pytest.raises(ValidationError) as exc_info:
        await session_context.signup("a@example.com", "Ann", "secret123", confirm_password="secret124")

    assert exc_info.value.field == "confirm_password"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_signup_awaiting_verification(session_context):
    """Without a provider session the user is returned unconfirmed and no session is set."""
    mock_client = MagicMock()
    mock_client.auth.sign_up.return_value = create_auth_response(
        user_id="new-user", email="owner@example.com", role="owner", with_session=False
    )

    with patch('src.services.session_context.SupabaseClient') as mock_client_class:
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client_class.return_value.__aexit__.return_value = None

        user = await session_context.signup(
            "owner@example.com", "Olive Owner", "secret123", role=Role.LANDLORD
        )
        await session_context.resend_verification_email()

    assert user.id == "new-user"
    assert user.role is Role.LANDLORD
    assert session_context.session is None
    sent = mock_client.auth.sign_up.call_args[0][0]
    assert sent["options"]["data"] == {"full_name": "Olive Owner", "role": "owner"}
    mock_client.auth.resend.assert_called_once_with({"type": "signup", "email": "owner@example.com"})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_restore_from_persisted_credential(session_context, storage):
    storage.write_json(StorageKeys.SESSION, {"accessToken": "old", "refreshToken": "refresh-1"})
    mock_client = MagicMock()
    mock_client.auth.set_session.return_value = create_auth_response(user_id="user-9", role="owner")

    with patch('src.services.session_context.SupabaseClient') as mock_client_class:
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client_class.return_value.__aexit__.return_value = None

        user = await session_context.restore()

    assert user.id == "user-9"
    assert session_context.session.is_owner
    assert session_context.is_loading is False
    mock_client.auth.set_session.assert_called_once_with("old", "refresh-1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_restore_without_credential_stays_anonymous(session_context):
    seen = []
    session_context.subscribe(seen.append)

    with patch('src.services.session_context.SupabaseClient') as mock_client_class:
        assert await session_context.restore() is None
        mock_client_class.assert_not_called()

    assert session_context.is_loading is False
    assert seen == [None]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_restore_rejected_credential_is_forgotten(session_context, storage):
    storage.write_json(StorageKeys.SESSION, {"accessToken": "old", "refreshToken": "stale"})
    mock_client = MagicMock()
    mock_client.auth.set_session.side_effect = AuthApiError(
        "Invalid Refresh Token: Refresh Token Not Found", 400, "refresh_token_not_found"
    )

    with patch('src.services.session_context.SupabaseClient') as mock_client_class:
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client_class.return_value.__aexit__.return_value = None

        assert await session_context.restore() is None

    assert storage.get_item(StorageKeys.SESSION) is None
    assert session_context.session is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_restore_offline_keeps_credential(session_context, storage):
    storage.write_json(StorageKeys.SESSION, {"accessToken": "old", "refreshToken": "refresh-1"})
    mock_client = MagicMock()
    mock_client.auth.set_session.side_effect = ConnectionError("temporary DNS failure")

    with patch('src.services.session_context.SupabaseClient') as mock_client_class:
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client_class.return_value.__aexit__.return_value = None

        assert await session_context.restore() is None

    assert storage.read_json(StorageKeys.SESSION)["refreshToken"] == "refresh-1"
    assert session_context.session is None
    assert session_context.is_loading is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refresh_replaces_token(session_context):
    session_context._establish(create_auth_response(user_id="user-1"))
    mock_client = MagicMock()
    mock_client.auth.refresh_session.return_value = create_auth_response(
        user_id="user-1", access_token="access-2", refresh_token="refresh-2"
    )

    with patch('src.services.session_context.SupabaseClient') as mock_client_class:
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client_class.return_value.__aexit__.return_value = None

        session = await session_context.refresh()

    assert session.token == "access-2"
    assert session_context.get_auth_token() == "access-2"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refresh_rejected_logs_out(session_context, storage):
    session_context._establish(create_auth_response(user_id="user-1"))
    mock_client = MagicMock()
    mock_client.auth.refresh_session.side_effect = AuthApiError(
        "Invalid Refresh Token: Refresh Token Not Found", 400, "refresh_token_not_found"
    )

    with patch('src.services.session_context.SupabaseClient') as mock_client_class, \
            patch('src.services.session_context.get_supabase_client') as mock_get_client:
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client_class.return_value.__aexit__.return_value = None
        mock_get_client.return_value = Mock()

        with pytest.raises(AuthError):
            await session_context.refresh()

    assert session_context.session is None
    assert storage.get_item(StorageKeys.SESSION) is None


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    ConnectionError("temporary DNS failure"),
    AuthApiError("Service Unavailable", 503, None),
])
async def test_refresh_transient_failure_keeps_session(session_context, storage, error):
    session_context._establish(create_auth_response(user_id="user-1"))
    seen = []
    session_context.subscribe(seen.append)
    mock_client = MagicMock()
    mock_client.auth.refresh_session.side_effect = error

    with patch('src.services.session_context.SupabaseClient') as mock_client_class, \
            patch('src.services.session_context.get_supabase_client') as mock_get_client:
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client_class.return_value.__aexit__.return_value = None

        with pytest.raises(AuthError, match="try again"):
            await session_context.refresh()

    assert session_context.session is not None
    assert session_context.get_auth_token() == "access-token"
    assert storage.read_json(StorageKeys.SESSION)["refreshToken"] == "refresh-token"
    assert seen == []
    mock_get_client.return_value.auth.sign_out.assert_not_called()


@pytest.mark.unit
def test_logout_clears_session_synchronously(session_context, storage):
    session_context._establish(create_auth_response(user_id="user-1"))
    seen = []
    session_context.subscribe(seen.append)

    with patch('src.services.session_context.get_supabase_client') as mock_get_client:
        mock_get_client.return_value.auth.sign_out.side_effect = Exception("network down")
        session_context.logout()

    assert session_context.session is None
    assert session_context.user is None
    assert session_context.get_auth_token() is None
    assert storage.get_item(StorageKeys.SESSION) is None
    assert seen == [None]


@pytest.mark.unit
def test_unsubscribe_stops_notifications(session_context):
    seen = []
    unsubscribe = session_context.subscribe(seen.append)
    unsubscribe()

    session_context._establish(create_auth_response())

    assert seen == []


@pytest.mark.unit
def test_anonymous_defaults():
    context = SessionContext(storage=MagicMock())

    assert context.role is Role.ANONYMOUS
    assert context.get_auth_token() is None
    assert not context.is_logged_in
