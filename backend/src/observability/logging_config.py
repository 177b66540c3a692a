"""Structured logging for the tenancy and secrets layer.

Every record is tagged with the request id and, once resolved, the
request's org_id / user_id. Fields passed via `extra=` are emitted as
top-level JSON keys. Values of secret-bearing fields and plaintext API keys
are masked before a record reaches any handler.
"""

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from .request_context import get_request_id, get_tenant_context

REDACTED = "[REDACTED]"

# Extra fields whose values are never written to logs
SECRET_FIELDS = frozenset({
    "api_key",
    "auth_tag",
    "ciphertext",
    "config",
    "key",
    "key_hash",
    "master_key",
    "password",
    "plaintext",
    "secret",
    "token",
})

API_KEY_PATTERN = re.compile(r"kz_(live|test)_[0-9a-f]{64}")

# Attributes every LogRecord has; anything else came from `extra=`
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "request_id",
    "org_id",
    "user_id",
}


def mask_api_keys(text: str) -> str:
    return API_KEY_PATTERN.sub(lambda m: f"kz_{m.group(1)}_{REDACTED}", text)


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}


class RequestContextFilter(logging.Filter):
    """Add request_id, org_id and user_id to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        org_id, user_id = get_tenant_context()
        if org_id is not None and not hasattr(record, "org_id"):
            record.org_id = org_id
        if user_id is not None and not hasattr(record, "user_id"):
            record.user_id = user_id
        return True


class SecretRedactionFilter(logging.Filter):
    """Mask secret-bearing extras and plaintext API keys in messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in record_extras(record):
            if key.lower() in SECRET_FIELDS:
                setattr(record, key, REDACTED)

        message = record.getMessage()
        masked = mask_api_keys(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "no-request-id"),
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        if hasattr(record, "org_id"):
            log_data["org_id"] = str(record.org_id)
        if hasattr(record, "user_id"):
            log_data["user_id"] = str(record.user_id)

        for key, value in record_extras(record).items():
            log_data.setdefault(key, value)

        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines if True, a plain single-line format otherwise
    """
    numeric_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(request_id)s - %(name)s - %(message)s'
        )

    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SecretRedactionFilter())
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
