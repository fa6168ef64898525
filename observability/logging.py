"""
Structured logging for the mod provider backend.

Every record carries the request correlation id and, while an adapter call is
in flight, the id of the provider being talked to. Provider credentials are
scrubbed before anything is formatted.

Usage:
    from observability import get_logger, provider_context

    logger = get_logger(__name__)
    with provider_context("modtale"):
        logger.info("Fetching project", extra={"project_id": "abc"})
"""

import logging
import os
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Mapping, Optional, Set

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "mod-provider-backend"
REDACTED = "[REDACTED]"
NO_VALUE = "none"

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_provider_id: ContextVar[Optional[str]] = ContextVar("provider_id", default=None)

# Literal credential values registered at runtime (see register_secret)
_secrets: Set[str] = set()

# Field names whose values are never logged, compared case-insensitively
SENSITIVE_KEYS = frozenset(
    {
        "api_key",
        "apikey",
        "x-api-key",
        "x-modtale-key",
        "authorization",
        "token",
        "password",
        "secret",
    }
)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def generate_correlation_id() -> str:
    return f"req-{uuid.uuid4().hex[:16]}"


@contextmanager
def correlation_id_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id (generated when missing) for the enclosed block."""
    token = _correlation_id.set(correlation_id or generate_correlation_id())
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


def get_provider_id() -> Optional[str]:
    return _provider_id.get()


@contextmanager
def provider_context(provider_id: str) -> Iterator[str]:
    """Tag log records emitted inside the block with ``provider_id``."""
    token = _provider_id.set(provider_id)
    try:
        yield provider_id
    finally:
        _provider_id.reset(token)


def register_secret(value: Optional[str]) -> None:
    """Remember a credential so it is masked wherever it shows up in a message."""
    if value and len(value) >= 4:
        _secrets.add(value)


def clear_secrets() -> None:
    _secrets.clear()


def _is_sensitive(key: Any) -> bool:
    return isinstance(key, str) and key.lower() in SENSITIVE_KEYS


def _mask(text: str) -> str:
    for secret in _secrets:
        if secret in text:
            text = text.replace(secret, REDACTED)
    return text


def redact(data: Any) -> Any:
    """Recursively replace sensitive mapping values and known secrets."""
    if isinstance(data, Mapping):
        return {k: REDACTED if _is_sensitive(k) else redact(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return type(data)(redact(item) for item in data)
    if isinstance(data, str):
        return _mask(data)
    return data


class ContextFilter(logging.Filter):
    """Copies the correlation id and current provider id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_VALUE
        if not getattr(record, "provider_id", None):
            record.provider_id = get_provider_id() or NO_VALUE
        return True


class SensitiveDataFilter(logging.Filter):
    """Redacts credentials from args, extra fields and the message itself."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.args = redact(record.args)

        for key in list(record.__dict__):
            if _is_sensitive(key):
                setattr(record, key, REDACTED)

        if _secrets and isinstance(record.msg, str):
            record.msg = _mask(record.msg)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["correlation_id"] = getattr(record, "correlation_id", NO_VALUE)
        provider_id = getattr(record, "provider_id", NO_VALUE)
        if provider_id != NO_VALUE:
            log_record["provider_id"] = provider_id
        log_record["service"] = SERVICE_NAME
        log_record["environment"] = os.getenv("ENVIRONMENT", "development")

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return CustomJsonFormatter(
            "%(timestamp)s %(level)s %(logger)s %(correlation_id)s %(message)s",
            rename_fields={"timestamp": "@timestamp"},
        )
    return logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(provider_id)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging() -> None:
    """
    Install the single root handler.

    Environment variables:
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL
    - LOG_FORMAT: json or text (default: json in production, text otherwise)
    - ENVIRONMENT: development, staging, production
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_format = os.getenv("LOG_FORMAT", "json" if os.getenv("ENVIRONMENT") == "production" else "text")

    handler = logging.StreamHandler()
    handler.setFormatter(_build_formatter(log_format))
    handler.addFilter(ContextFilter())
    handler.addFilter(SensitiveDataFilter())

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # httpx logs full upstream URLs at INFO; adapters log their own requests
    for noisy in ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
