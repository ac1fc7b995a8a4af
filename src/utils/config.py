"""Centralized application configuration with environment variable support."""

import os
from pathlib import Path


class AppConfig:
    """Runtime settings for the client layer and the upload-token function."""

    # Remote API
    API_BASE_URL = os.environ.get("CHOICE_API_BASE_URL", "http://localhost:5000").rstrip("/")
    HTTP_TIMEOUT_SECONDS = float(os.environ.get("HTTP_TIMEOUT_SECONDS", "10"))

    # Local persistence (per-origin directory, browser-like 5MB quota)
    STORAGE_DIR = Path(
        os.environ.get("CHOICE_STORAGE_DIR", str(Path.home() / ".choice_properties"))
    )
    LOCAL_STORAGE_QUOTA_BYTES = int(os.environ.get("LOCAL_STORAGE_QUOTA_BYTES", str(5 * 1024 * 1024)))

    # Identity provider
    SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
    SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")

    # Image uploads
    UPLOAD_MAX_SIZE_MB = int(os.environ.get("UPLOAD_MAX_SIZE_MB", "10"))
    IMAGEKIT_PUBLIC_KEY = os.environ.get("IMAGEKIT_PUBLIC_KEY", "")
    IMAGEKIT_PRIVATE_KEY = os.environ.get("IMAGEKIT_PRIVATE_KEY", "")
    IMAGEKIT_URL_ENDPOINT = os.environ.get("IMAGEKIT_URL_ENDPOINT", "")
    IMAGEKIT_TOKEN_TTL_SECONDS = int(os.environ.get("IMAGEKIT_TOKEN_TTL_SECONDS", "1800"))
