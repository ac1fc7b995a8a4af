"""Structured logging: correlation IDs, redaction of credentials and PII, operation timing."""

import logging
import time
import uuid
import re
import hashlib
from typing import Any, Optional
from contextlib import contextmanager
from contextvars import ContextVar

from src.utils.logging_config import LoggingConfig, get_logger


_correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

# Structured fields whose values are credentials or contact details
SENSITIVE_FIELDS = frozenset({
    "token",
    "access_token",
    "refresh_token",
    "signature",
    "private_key",
    "password",
    "email",
    "sender_email",
    "phone",
})

_REDACTIONS = (
    (re.compile(r'eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+'), '[REDACTED_JWT]'),
    (re.compile(r'(?i)bearer\s+[A-Za-z0-9._~+/=-]+'), 'Bearer [REDACTED]'),
    (re.compile(r'(?i)\b(private_[A-Za-z0-9_]{8,})'), '[REDACTED_KEY]'),
    (re.compile(r'(?i)(api[_-]?key|token|secret|password|signature)[\s:=]+([A-Za-z0-9_-]{20,})'), r'\1=[REDACTED]'),
    (re.compile(r'[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}', re.IGNORECASE), '[REDACTED_EMAIL]'),
    (re.compile(r'\b\+?\d[\d\s().-]{7,}\b'), '[REDACTED_PHONE]'),
)


def generate_correlation_id() -> str:
    """Correlation ID for one client operation (mount, mutation, upload)."""
    return f"op_{uuid.uuid4().hex[:12]}"


def get_correlation_id() -> Optional[str]:
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: Optional[str]) -> None:
    _correlation_id_var.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: Optional[str] = None):
    """Tag every record logged inside the block with one correlation ID."""
    token = _correlation_id_var.set(correlation_id or generate_correlation_id())
    try:
        yield _correlation_id_var.get()
    finally:
        _correlation_id_var.reset(token)


def mask_sensitive_data(text: str) -> str:
    """Redact bearer tokens, JWTs, signing keys, emails and phone numbers in free text."""
    if not text or not LoggingConfig.LOG_MASK_SENSITIVE:
        return text
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def mask_user_id(user_id: str) -> str:
    """Shorten provider UUIDs to a stable, non-reversible tag."""
    if not LoggingConfig.LOG_MASK_SENSITIVE or not user_id:
        return user_id

    if len(user_id) > 12:
        hashed = hashlib.sha256(user_id.encode()).hexdigest()[:8]
        return f"{user_id[:4]}...{hashed}"
    return user_id


def sanitize_message_text(text: str, max_length: int = 500) -> Optional[str]:
    """
    Preview of an inquiry or contact message for logging.

    Returns None when message content logging is disabled.
    """
    if not LoggingConfig.LOG_MESSAGE_CONTENT or not text:
        return None

    if len(text) > max_length:
        text = text[:max_length] + "..."
    return mask_sensitive_data(text)


def _redact_field(key: str, value: Any) -> Any:
    if not LoggingConfig.LOG_MASK_SENSITIVE or value is None:
        return value
    if key in SENSITIVE_FIELDS:
        return "[REDACTED]"
    if isinstance(value, str):
        return mask_sensitive_data(value)
    return value


class StructuredLogger:
    """Logger taking structured fields as keyword arguments."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _get_extra(self, **kwargs: Any) -> dict[str, Any]:
        extra = {key: _redact_field(key, value) for key, value in kwargs.items()}

        correlation_id = get_correlation_id()
        if correlation_id:
            extra["correlation_id"] = correlation_id
        return extra

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, extra=self._get_extra(**kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, extra=self._get_extra(**kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(message, extra=self._get_extra(**kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self.logger.error(message, extra=self._get_extra(**kwargs), exc_info=exc_info)

    def exception(self, message: str, **kwargs: Any) -> None:
        self.logger.exception(message, extra=self._get_extra(**kwargs))


def get_structured_logger(name: str) -> StructuredLogger:
    return StructuredLogger(get_logger(name))


@contextmanager
def log_timing(
    operation_name: str,
    logger: Optional[StructuredLogger] = None,
    threshold_ms: Optional[int] = None,
    **context: Any,
):
    """Time the block; completion is logged at DEBUG, slow completions at WARNING."""
    if logger is None:
        logger = get_structured_logger(__name__)
    if threshold_ms is None:
        threshold_ms = LoggingConfig.LOG_SLOW_OPERATION_THRESHOLD_MS

    start = time.perf_counter()
    failed = False
    try:
        yield
    except BaseException:
        failed = True
        raise
    finally:
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        if elapsed_ms > threshold_ms:
            logger.warning(
                f"Slow operation detected: {operation_name}",
                operation=operation_name,
                processing_time_ms=elapsed_ms,
                threshold_ms=threshold_ms,
                failed=failed,
                **context
            )
        else:
            logger.debug(
                f"Completed {operation_name}",
                operation=operation_name,
                processing_time_ms=elapsed_ms,
                failed=failed,
                **context
            )
