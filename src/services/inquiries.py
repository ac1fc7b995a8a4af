"""Inquiries to agents and locally kept contact form messages."""

from typing import Any, Optional, Union

from src.models.inquiry import ContactMessage, Inquiry, InquiryDraft
from src.services.api_client import RemoteAccessor
from src.services.local_storage import LocalStorage, StorageKeys
from src.services.session_context import SessionContext
from src.services.sync_state import LoggingNotifier, Notifier, failure, success
from src.services.synced_collection import build_model, utc_now_iso
from src.utils.errors import AuthError, PersistenceError, RemoteError
from src.utils.ids import generate_local_id
from src.utils.logging import get_structured_logger, mask_user_id, sanitize_message_text
from src.utils.validation import require, validate_email

logger = get_structured_logger(__name__)


class InquiriesService:
    """Submit inquiries, read an agent's inbox, keep contact messages."""

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
        self.agent_inquiries: list[Inquiry] = []

    async def submit_inquiry(self, draft: Union[InquiryDraft, dict[str, Any]]) -> Inquiry:
        """
        Send an inquiry about a listing.

        Works with or without a session; the bearer token is attached when
        present. Remote failures are surfaced, never swallowed.
        """
        if isinstance(draft, dict):
            draft = build_model(InquiryDraft, draft)
        require(draft.sender_name, "sender_name", "Name")
        validate_email(draft.sender_email)
        require(draft.message, "message", "Message")

        logger.info(
            "Submitting inquiry",
            property_id=draft.property_id,
            message_preview=sanitize_message_text(draft.message, max_length=100)
        )
        try:
            inquiry = await self.remote.create_inquiry(draft.to_json_dict())
        except RemoteError as e:
            self.notifier.notify(failure(e.message or "Failed to submit inquiry"))
            raise
        self.notifier.notify(success("Your inquiry has been sent"))
        return inquiry

    async def load_agent_inquiries(self) -> list[Inquiry]:
        """Fetch the inbox of the signed-in agent."""
        session = self.session.session
        if session is None:
            raise AuthError("Sign in to view your inquiries")
        self.agent_inquiries = await self.remote.list_agent_inquiries(session.user_id)
        logger.debug(
            "Loaded agent inquiries",
            agent_id=mask_user_id(session.user_id),
            count=len(self.agent_inquiries)
        )
        return self.agent_inquiries

    def contact_messages(self) -> list[ContactMessage]:
        raw = self.storage.read_json(StorageKeys.CONTACT_MESSAGES, [])
        if not isinstance(raw, list):
            return []
        messages = []
        for item in raw:
            try:
                messages.append(ContactMessage.model_validate(item))
            except ValueError:
                logger.warning("Skipping unreadable contact message")
        return messages

    def save_contact_message(
        self,
        name: str,
        email: str,
        message: str,
        subject: Optional[str] = None,
    ) -> ContactMessage:
        """Record a contact form submission in the local store."""
        existing = self.contact_messages()
        contact = ContactMessage(
            id=generate_local_id("contact", (m.id for m in existing)),
            name=require(name, "name", "Name"),
            email=validate_email(email),
            subject=subject.strip() if subject and subject.strip() else None,
            message=require(message, "message", "Message"),
            created_at=utc_now_iso(),
        )
        try:
            self.storage.write_json(
                StorageKeys.CONTACT_MESSAGES,
                [m.to_json_dict() for m in [*existing, contact]],
            )
        except PersistenceError as e:
            self.notifier.notify(failure(f"Could not save your message: {e}"))
            raise
        self.notifier.notify(success("Thank you for contacting us. We'll respond within 24 hours."))
        return contact
