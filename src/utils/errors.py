"""Error handling utilities."""

from typing import Optional


class ChoicePropertiesError(Exception):
    """Base exception for the Choice Properties client layer."""
    pass


class AuthError(ChoicePropertiesError):
    """Session operation rejected by the identity provider."""
    pass


class PermissionDeniedError(AuthError):
    """Signed-in user is not allowed to perform the operation."""
    pass


class SessionNotReadyError(ChoicePropertiesError):
    """Session restoration still in progress."""
    pass


class RemoteError(ChoicePropertiesError):
    """Failed call against the remote API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PersistenceError(ChoicePropertiesError):
    """Local storage write failed (quota exceeded, disk error)."""
    pass


class ValidationError(ChoicePropertiesError):
    """Client-side check failed before any network call."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class FileTooLargeError(ValidationError):
    """Upload exceeds the configured size ceiling."""
    pass


class UnsupportedFileTypeError(ValidationError):
    """Upload MIME type is not an accepted image type."""
    pass


class UploadError(ChoicePropertiesError):
    """Image upload failed."""
    pass


class UploadCredentialError(UploadError):
    """Signed upload credential could not be obtained."""
    pass


class UploadTransportError(UploadError):
    """Upload request to the CDN failed in transit."""
    pass


class UploadAbortedError(UploadError):
    """Upload cancelled by the user."""
    pass


class UploadRejectedError(UploadError):
    """CDN refused the upload or answered with garbage."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
