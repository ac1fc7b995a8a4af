"""
Image upload coordinator.

Two phases: a signed, short-lived credential is requested from the trusted
backend, then the file goes straight to the CDN with that credential while
byte progress is tracked. The backend never sees the file.
"""

import asyncio
from typing import AsyncIterator, Callable, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from src.models.upload import UploadCredential, UploadFile, UploadResult
from src.services.api_client import RemoteAccessor
from src.services.sync_state import LoggingNotifier, Notification, Notifier
from src.utils.config import AppConfig
from src.utils.errors import (
    FileTooLargeError,
    RemoteError,
    UnsupportedFileTypeError,
    UploadAbortedError,
    UploadCredentialError,
    UploadRejectedError,
    UploadTransportError,
    ValidationError,
)
from src.utils.logging import get_structured_logger, log_timing

logger = get_structured_logger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"})
UPLOAD_PATH = "/api/upload"
CHUNK_SIZE = 64 * 1024


def validate_upload(file: UploadFile, max_size_mb: int = AppConfig.UPLOAD_MAX_SIZE_MB) -> None:
    """Advisory client-side checks; the CDN's signed-upload check is authoritative."""
    if file.size > max_size_mb * 1024 * 1024:
        raise FileTooLargeError(f"Maximum file size is {max_size_mb}MB", field="file")
    if file.content_type.lower() not in ALLOWED_CONTENT_TYPES:
        raise UnsupportedFileTypeError("Only JPG, PNG, WebP, and GIF files are allowed", field="file")


class ImageUploadCoordinator:
    """Uploads one image at a time and exposes ``is_uploading``/``upload_progress``."""

    def __init__(
        self,
        remote: RemoteAccessor,
        *,
        max_size_mb: int = AppConfig.UPLOAD_MAX_SIZE_MB,
        folder: Optional[str] = None,
        notifier: Optional[Notifier] = None,
        on_upload_complete: Optional[Callable[[UploadResult], None]] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = AppConfig.HTTP_TIMEOUT_SECONDS,
    ):
        self.remote = remote
        self.max_size_mb = max_size_mb
        self.folder = folder
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.on_upload_complete = on_upload_complete
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

        self.is_uploading = False
        self.upload_progress = 0
        self._upload_task: Optional[asyncio.Task] = None
        self._cancel_requested = False

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def cancel(self) -> bool:
        """Abort the in-flight CDN upload; returns False when nothing is uploading."""
        if self._upload_task is None or self._upload_task.done():
            return False
        self._cancel_requested = True
        self._upload_task.cancel()
        return True

    async def upload_image(self, file: UploadFile) -> UploadResult:
        """
        Validate, obtain a credential, and upload ``file`` to the CDN.

        Raises FileTooLargeError/UnsupportedFileTypeError before any network
        call, then UploadCredentialError, UploadTransportError,
        UploadAbortedError or UploadRejectedError for the respective failure.
        """
        try:
            validate_upload(file, self.max_size_mb)
        except ValidationError as e:
            title = "File Too Large" if isinstance(e, FileTooLargeError) else "Invalid File Type"
            self.notifier.notify(Notification(title=title, description=e.message, variant="destructive"))
            raise

        self.is_uploading = True
        self.upload_progress = 0
        self._cancel_requested = False
        try:
            with log_timing("image_upload", logger=logger, file_size=file.size, content_type=file.content_type):
                credential = await self._request_credential()
                result = await self._send(file, credential)
        except (UploadCredentialError, UploadTransportError, UploadAbortedError, UploadRejectedError) as e:
            self.notifier.notify(Notification(
                title="Upload Failed",
                description=str(e) or "Failed to upload image",
                variant="destructive",
            ))
            raise
        finally:
            self.is_uploading = False
            self.upload_progress = 0
            self._upload_task = None

        if self.on_upload_complete:
            self.on_upload_complete(result)
        self.notifier.notify(Notification(
            title="Image Uploaded",
            description=f"{file.filename} has been uploaded successfully",
        ))
        return result

    async def _request_credential(self) -> UploadCredential:
        try:
            return await self.remote.request_upload_token()
        except RemoteError as e:
            logger.warning("Upload credential request failed", error=e.message)
            raise UploadCredentialError(f"Failed to get upload token: {e.message}") from e

    def _encode(self, file: UploadFile, credential: UploadCredential) -> httpx.Request:
        fields = {
            "publicKey": credential.public_key,
            "signature": credential.signature,
            "expire": str(credential.expire),
            "token": credential.token,
            "fileName": file.filename,
        }
        if self.folder:
            fields["folder"] = self.folder
        return httpx.Request(
            "POST",
            f"{credential.url_endpoint.rstrip('/')}{UPLOAD_PATH}",
            data=fields,
            files={"file": (file.filename, file.data, file.content_type)},
        )

    async def _stream(self, body: bytes) -> AsyncIterator[bytes]:
        total = len(body)
        sent = 0
        for start in range(0, total, CHUNK_SIZE):
            chunk = body[start:start + CHUNK_SIZE]
            sent += len(chunk)
            self.upload_progress = round(sent / total * 100)
            yield chunk

    async def _send(self, file: UploadFile, credential: UploadCredential) -> UploadResult:
        encoded = self._encode(file, credential)
        body = encoded.read()
        headers = {
            "Content-Type": encoded.headers["Content-Type"],
            "Content-Length": str(len(body)),
        }

        self._upload_task = asyncio.ensure_future(
            self.client.post(str(encoded.url), content=self._stream(body), headers=headers)
        )
        try:
            response = await self._upload_task
        except asyncio.CancelledError:
            if self._cancel_requested:
                logger.info("Upload cancelled by user", file_size=file.size)
                raise UploadAbortedError("Upload cancelled") from None
            raise
        except httpx.HTTPError as e:
            logger.warning("Upload transport failure", error=str(e))
            raise UploadTransportError(f"Upload error: {e}") from e

        if not response.is_success:
            raise UploadRejectedError(f"Upload failed with status {response.status_code}", response.status_code)
        try:
            return UploadResult.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise UploadRejectedError("Failed to parse upload response", response.status_code) from e
