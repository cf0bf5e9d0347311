"""
chronokv Key/Value Validator

Syntactic checks on keys, write bodies and query parameters before anything
reaches storage. Pure functions: no I/O, no side effects. The only input
besides the arguments is the wall clock, and callers may pass `now`
explicitly.

Failures raise a ValidationError subclass carrying a short message (used as
the HTTP 'error' field) and a list of detail strings.
"""

import time
from typing import Any, List, Optional, Tuple

from .contract import (
    KEY_MIN_LENGTH, KEY_MAX_LENGTH, KEY_PATTERN,
    MAX_FUTURE_SECONDS, TIMESTAMP_PATTERN
)


class ValidationError(Exception):
    """Caller input error (never retried, surfaced as 4xx)"""

    message = "Invalid request"

    def __init__(self, details: Optional[List[str]] = None):
        self.details = list(details or [])
        super().__init__(self.message if not self.details else f"{self.message}: {'; '.join(self.details)}")

    def toDict(self) -> dict:
        return {'error': self.message, 'details': self.details}


class InvalidKey(ValidationError):
    message = "Invalid key"


class InvalidBody(ValidationError):
    message = "Invalid request body"


class InvalidTimestamp(ValidationError):
    message = "Invalid timestamp"


class InvalidLimit(ValidationError):
    message = "Invalid limit"


def validateKey(key: Any) -> str:
    """
    Check key syntax.

    Rules: string, 1..255 characters, charset [A-Za-z0-9_.-].

    Returns:
        The key unchanged

    Raises:
        InvalidKey
    """
    if not isinstance(key, str):
        raise InvalidKey(["Key must be a string"])
    if len(key) < KEY_MIN_LENGTH:
        raise InvalidKey(["Key cannot be empty"])
    if len(key) > KEY_MAX_LENGTH:
        raise InvalidKey([f"Key cannot exceed {KEY_MAX_LENGTH} characters"])
    if not KEY_PATTERN.fullmatch(key):
        raise InvalidKey(["Key can only contain alphanumeric characters, underscores, hyphens, and dots"])
    return key


def validateWriteBody(body: Any) -> Tuple[str, Any]:
    """
    Check a write body and extract its sole (key, value) pair.

    The body must be a JSON object with exactly one property. The value may
    be any JSON value, including null. The key is not checked here; run
    validateKey on it.

    Raises:
        InvalidBody
    """
    if not isinstance(body, dict):
        raise InvalidBody(["Request body must be a JSON object"])
    if len(body) == 0:
        raise InvalidBody(["Request body must contain at least one key-value pair"])
    if len(body) > 1:
        raise InvalidBody(["Request body must contain exactly one key-value pair"])

    (key, value), = body.items()
    return key, value


def validateTimestampParam(raw: Any, now: Optional[int] = None) -> int:
    """
    Parse a point-in-time query parameter.

    Accepts a non-negative integer string (or int) no later than
    now + MAX_FUTURE_SECONDS. Zero is valid.

    Args:
        raw: Raw query-string value
        now: Current Unix time in seconds (defaults to wall clock)

    Returns:
        Parsed timestamp

    Raises:
        InvalidTimestamp
    """
    if isinstance(raw, bool):
        raise InvalidTimestamp(["Timestamp must be a valid unix timestamp (numeric string)"])

    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and TIMESTAMP_PATTERN.fullmatch(raw):
        value = int(raw)
    else:
        raise InvalidTimestamp(["Timestamp must be a valid unix timestamp (numeric string)"])

    if value < 0:
        raise InvalidTimestamp(["Timestamp cannot be negative"])

    if now is None:
        now = int(time.time())
    if value > now + MAX_FUTURE_SECONDS:
        raise InvalidTimestamp(["Timestamp must not be more than one day in the future"])

    return value


def validateLimitParam(raw: Any) -> Optional[int]:
    """
    Parse the optional history page size. None means unlimited.

    Raises:
        InvalidLimit: if present and not a positive integer
    """
    if raw is None:
        return None
    if isinstance(raw, int) and not isinstance(raw, bool):
        value = raw
    elif isinstance(raw, str) and TIMESTAMP_PATTERN.fullmatch(raw):
        value = int(raw)
    else:
        raise InvalidLimit(["Limit must be a positive integer"])

    if value < 1:
        raise InvalidLimit(["Limit must be a positive integer"])
    return value
