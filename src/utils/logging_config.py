"""Logging configuration shared by the client layer and the serverless functions."""

import os
import logging
import sys
from typing import Optional, TextIO
from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "choice-properties-sync"

# Third-party loggers that are noisy at INFO (supabase pulls in gotrue/postgrest)
QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "supabase", "gotrue", "postgrest", "realtime")


class LoggingConfig:
    """Logging settings read from the environment."""

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json").lower()
    # Whether inquiry/contact message previews may appear in logs
    LOG_MESSAGE_CONTENT = os.environ.get("LOG_MESSAGE_CONTENT", "true").lower() == "true"
    LOG_MASK_SENSITIVE = os.environ.get("LOG_MASK_SENSITIVE", "true").lower() == "true"
    LOG_SLOW_OPERATION_THRESHOLD_MS = int(os.environ.get("LOG_SLOW_OPERATION_THRESHOLD_MS", "1000"))

    @classmethod
    def setup_logging(cls, level: Optional[str] = None, stream: Optional[TextIO] = None) -> logging.Handler:
        """
        Install the service handler on the root logger.

        Safe to call again on a warm function instance: the previously
        installed service handler is replaced, foreign handlers are kept.
        """
        resolved = getattr(logging, (level or cls.LOG_LEVEL).upper(), logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(resolved)

        for existing in list(root_logger.handlers):
            if getattr(existing, "_choice_properties", False):
                root_logger.removeHandler(existing)

        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setLevel(resolved)
        handler._choice_properties = True

        if cls.LOG_FORMAT == "json":
            formatter = JsonFormatter(
                "%(levelname)s %(name)s %(message)s",
                timestamp=True,
                static_fields={"service": SERVICE_NAME},
            )
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )

        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
        return handler


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)
