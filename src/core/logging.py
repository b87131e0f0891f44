"""
Logging helpers for the API and worker processes.

Every logger handed out by get_logger formats through RedactingFormatter, so
Google OAuth tokens, authorization codes, session JWTs, Anthropic keys and the
Fernet ciphertexts stored on Integration rows are scrubbed from the final
line, including values interpolated from %-style args and tracebacks.
"""

import logging
import re
import uuid
from typing import Any

REDACTED = "[REDACTED]"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# JSON fields whose values are secrets
_SECRET_FIELDS = ("token", "access_token", "refresh_token", "id_token", "client_secret", "api_key", "password")

SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r'"(' + "|".join(_SECRET_FIELDS) + r')":\s*"[^"]+'),
        r'"\1": "' + REDACTED,
    ),
    # Session and Google bearer tokens
    (re.compile(r"Authorization:\s*Bearer\s+\S+", re.IGNORECASE), f"Authorization: Bearer {REDACTED}"),
    (
        re.compile(r"Authorization:\s*(?!Bearer \[REDACTED\])(?:\w+\s+)?\S+", re.IGNORECASE),
        f"Authorization: {REDACTED}",
    ),
    # ?code=... on the OAuth redirect
    (re.compile(r"([?&])code=[^&\s]+"), r"\1code=" + REDACTED),
    (re.compile(r"sk-ant-[\w-]+"), REDACTED),
    (re.compile(r"gAAAAA[0-9A-Za-z_\-=]{20,}"), "[ENCRYPTED]"),
    (re.compile(r"password=\S+", re.IGNORECASE), f"password={REDACTED}"),
    (
        re.compile(r"(postgresql(?:\+\w+)?|rediss?)://[^:/\s]+:[^@\s]+@"),
        r"\1://" + REDACTED + ":" + REDACTED + "@",
    ),
]

# Mapping keys that safe_repr always masks (substring match, case-insensitive)
DEFAULT_REDACT_KEYS = frozenset({"password", "token", "secret", "api_key", "credentials", "code"})


def redact_sensitive_data(message: str) -> str:
    """Apply every pattern in SENSITIVE_PATTERNS to a formatted log line."""
    for pattern, replacement in SENSITIVE_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return redact_sensitive_data(super().format(record))


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Return the named logger, attaching a redacting stream handler the first time.

    Args:
        name: Logger name (typically __name__)
        level: Level applied when the logger is first configured

    Returns:
        Logger writing to stderr through RedactingFormatter
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(RedactingFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def new_correlation_id() -> str:
    """Short id used to tie together the log lines of one background run."""
    return uuid.uuid4().hex[:12]


def _scrub(obj: Any, keys: frozenset[str]) -> Any:
    if isinstance(obj, dict):
        return {
            key: REDACTED if any(k in str(key).lower() for k in keys) else _scrub(value, keys)
            for key, value in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return [_scrub(item, keys) for item in obj]
    return obj


def safe_repr(obj: Any, redact_keys: list[str] | None = None) -> str:
    """
    Render dicts and lists for a log line with secret-looking keys masked.

    Args:
        obj: Value to render
        redact_keys: Extra key fragments to mask (e.g. ['state'])
    """
    keys = DEFAULT_REDACT_KEYS | {k.lower() for k in redact_keys or []}
    return str(_scrub(obj, keys))
