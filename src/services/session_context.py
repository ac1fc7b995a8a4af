"""
Session/identity context.

Single owner of the current session. Dependants read ``session``/``user`` and
subscribe for identity changes; nothing else mutates them. The session is
replaced wholesale on restore, login, signup, refresh and logout.
"""

from typing import Any, Callable, Optional

from supabase import AuthApiError

from src.models.session import Role, Session, User, user_from_provider
from src.services.local_storage import LocalStorage, StorageKeys
from src.services.supabase_client import SupabaseClient, get_supabase_client
from src.utils.errors import AuthError, PersistenceError
from src.utils.logging import get_structured_logger, mask_user_id
from src.utils.validation import require, validate_email, validate_password

logger = get_structured_logger(__name__)

SessionListener = Callable[[Optional[Session]], None]


def _provider_message(error: Exception, fallback: str) -> str:
    """Human-readable message from a Supabase auth error."""
    message = getattr(error, "message", None) or str(error)
    return message or fallback


def _credential_rejected(error: Exception) -> bool:
    """True when the provider refused the token, not when it could not be reached."""
    status = getattr(error, "status", None)
    return isinstance(error, AuthApiError) and isinstance(status, int) and 400 <= status < 500


class SessionContext:
    """Process-wide session state backed by Supabase Auth."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage
        self.user: Optional[User] = None
        self.session: Optional[Session] = None
        self.is_loading = False
        self._listeners: list[SessionListener] = []
        self._pending_verification_email: Optional[str] = None

    @property
    def is_logged_in(self) -> bool:
        return self.session is not None

    @property
    def role(self) -> Role:
        return self.session.role if self.session else Role.ANONYMOUS

    @property
    def token(self) -> Optional[str]:
        return self.session.token if self.session else None

    def get_auth_token(self) -> Optional[str]:
        """Bearer token for the current session, if any."""
        return self.token

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register for identity changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.session)

    def _persist_credential(self) -> None:
        if self.session is None or not self.session.refresh_token:
            return
        try:
            self.storage.write_json(StorageKeys.SESSION, {
                "accessToken": self.session.token,
                "refreshToken": self.session.refresh_token,
            })
        except PersistenceError as e:
            # Session stays valid in memory; only restoration on next start is lost
            logger.warning("Could not persist session credential", error=str(e))

    def _forget_credential(self) -> None:
        try:
            self.storage.remove_item(StorageKeys.SESSION)
        except PersistenceError as e:
            logger.warning("Could not remove persisted session credential", error=str(e))

    def _establish(self, response: Any) -> User:
        user = user_from_provider(response.user)
        provider_session = response.session
        self.user = user
        self.session = Session(
            user_id=user.id,
            token=provider_session.access_token,
            refresh_token=provider_session.refresh_token,
            role=user.role,
            expires_at=getattr(provider_session, "expires_at", None),
        )
        self._pending_verification_email = None
        self._persist_credential()
        logger.info("Session established", user_id=mask_user_id(user.id), role=user.role.value)
        self._notify()
        return user

    async def restore(self) -> Optional[User]:
        """Restore the session from the persisted credential on start-up."""
        self.is_loading = True
        try:
            stored = self.storage.read_json(StorageKeys.SESSION)
            if not isinstance(stored, dict) or not stored.get("refreshToken"):
                return None

            async with SupabaseClient("restore") as client:
                try:
                    response = client.auth.set_session(
                        stored.get("accessToken", ""), stored["refreshToken"]
                    )
                except Exception as e:
                    if not _credential_rejected(e):
                        # Credential kept for the next start-up
                        logger.warning("Identity provider unavailable, staying anonymous", error=str(e))
                        return None
                    logger.warning("Persisted session rejected", error=_provider_message(e, "invalid session"))
                    self._forget_credential()
                    return None

            if response is None or response.user is None or response.session is None:
                self._forget_credential()
                return None

            self.is_loading = False
            return self._establish(response)
        except AuthError as e:
            logger.warning("Session restoration skipped", error=str(e))
            return None
        finally:
            if self.is_loading:
                self.is_loading = False
                self._notify()

    async def login(self, email: str, password: str) -> User:
        """Sign in with email and password; raises AuthError with the provider's message."""
        email = validate_email(email)
        validate_password(password)

        async with SupabaseClient("login") as client:
            try:
                response = client.auth.sign_in_with_password({"email": email, "password": password})
            except Exception as e:
                raise AuthError(_provider_message(e, "Invalid email or password")) from e

        if response.user is None or response.session is None:
            raise AuthError("Please verify your email before signing in")
        return self._establish(response)

    async def signup(
        self,
        email: str,
        name: str,
        password: str,
        confirm_password: Optional[str] = None,
        role: Role = Role.TENANT,
    ) -> Optional[User]:
        """
        Create an account.

        Returns the signed-in user, or the unconfirmed user when the provider
        requires email verification first (no session is established then).
        """
        email = validate_email(email)
        name = require(name, "name", "Name")
        validate_password(password, confirm_password)

        metadata_role = "owner" if role is Role.LANDLORD else role.value
        async with SupabaseClient("signup") as client:
            try:
                response = client.auth.sign_up({
                    "email": email,
                    "password": password,
                    "options": {"data": {"full_name": name, "role": metadata_role}},
                })
            except Exception as e:
                raise AuthError(_provider_message(e, "Sign up failed")) from e

        if response.user is None:
            raise AuthError("Sign up failed")
        if response.session is None:
            self._pending_verification_email = email
            logger.info("Sign up awaiting email verification", user_id=mask_user_id(str(response.user.id)))
            return user_from_provider(response.user)
        return self._establish(response)

    async def resend_verification_email(self, email: Optional[str] = None) -> None:
        """Ask the provider to resend the sign-up confirmation email."""
        target = email or self._pending_verification_email or (self.user.email if self.user else None)
        target = validate_email(target)

        async with SupabaseClient("resend_verification") as client:
            try:
                client.auth.resend({"type": "signup", "email": target})
            except Exception as e:
                raise AuthError(_provider_message(e, "Could not resend verification email")) from e
        logger.info("Verification email resent")

    async def refresh(self) -> Optional[Session]:
        """
        Renew the access token.

        A refresh the provider rejects ends the session like ``logout()``; a
        transport failure raises AuthError and keeps the session and the
        persisted credential.
        """
        if self.session is None or not self.session.refresh_token:
            return self.session

        async with SupabaseClient("refresh") as client:
            try:
                response = client.auth.refresh_session(self.session.refresh_token)
            except Exception as e:
                if not _credential_rejected(e):
                    logger.warning("Token refresh failed, keeping session", error=str(e))
                    raise AuthError("Could not reach the identity provider, please try again") from e
                logger.warning("Token refresh rejected, signing out", error=_provider_message(e, "refresh failed"))
                self.logout()
                raise AuthError(_provider_message(e, "Your session has expired, please sign in again")) from e

        if response is None or response.session is None or response.user is None:
            self.logout()
            raise AuthError("Your session has expired, please sign in again")

        user = user_from_provider(response.user)
        if self.session is None or user.id != self.session.user_id:
            self._establish(response)
            return self.session

        self.user = user
        self.session = self.session.model_copy(update={
            "token": response.session.access_token,
            "refresh_token": response.session.refresh_token,
            "expires_at": getattr(response.session, "expires_at", None),
            "role": user.role,
        })
        self._persist_credential()
        logger.debug("Access token refreshed", user_id=mask_user_id(user.id))
        return self.session

    def logout(self) -> None:
        """
        Clear the in-memory session synchronously.

        Per-entity local fallback data is left in place and becomes visible
        to the next anonymous visitor on this device.
        """
        previous = self.session
        self.user = None
        self.session = None
        self._forget_credential()
        self._notify()

        if previous is None:
            return
        logger.info("Session cleared", user_id=mask_user_id(previous.user_id))
        try:
            get_supabase_client().auth.sign_out()
        except Exception as e:
            logger.warning("Provider sign-out failed", error=_provider_message(e, "sign-out failed"))
