"""Signed upload credentials for direct-to-CDN image uploads (ImageKit scheme)."""

import hmac
import hashlib
import time
import uuid
from typing import Optional

from src.models.upload import UploadCredential
from src.utils.config import AppConfig
from src.utils.errors import UploadCredentialError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

# ImageKit rejects expiries more than an hour out
MAX_TTL_SECONDS = 3600


def sign_upload_token(private_key: str, token: str, expire: int) -> str:
    """HMAC-SHA1 of ``token + expire`` keyed with the private key, hex encoded."""
    return hmac.new(
        private_key.encode('utf-8'),
        f"{token}{expire}".encode('utf-8'),
        hashlib.sha1
    ).hexdigest()


def generate_upload_credential(
    private_key: Optional[str] = None,
    public_key: Optional[str] = None,
    url_endpoint: Optional[str] = None,
    ttl_seconds: Optional[int] = None,
    token: Optional[str] = None,
    now: Optional[int] = None,
) -> UploadCredential:
    """
    Issue a short-lived credential for one upload.

    Falls back to the IMAGEKIT_* settings for anything not passed in.
    """
    private_key = private_key or AppConfig.IMAGEKIT_PRIVATE_KEY
    public_key = public_key or AppConfig.IMAGEKIT_PUBLIC_KEY
    url_endpoint = url_endpoint or AppConfig.IMAGEKIT_URL_ENDPOINT
    if not private_key or not public_key or not url_endpoint:
        raise UploadCredentialError(
            "IMAGEKIT_PUBLIC_KEY, IMAGEKIT_PRIVATE_KEY and IMAGEKIT_URL_ENDPOINT must be set"
        )

    ttl = min(ttl_seconds or AppConfig.IMAGEKIT_TOKEN_TTL_SECONDS, MAX_TTL_SECONDS)
    token = token or str(uuid.uuid4())
    expire = (now if now is not None else int(time.time())) + ttl

    logger.debug("Upload credential issued", expire=expire)
    return UploadCredential(
        token=token,
        signature=sign_upload_token(private_key, token, expire),
        expire=expire,
        public_key=public_key,
        url_endpoint=url_endpoint.rstrip("/"),
    )
