"""
chronokv Versioned Store Engine

The only component the HTTP edge talks to. Validates input, delegates to the
backend it was constructed with, and shapes results.

Invariants:
- Stateless: no per-call state; safe for concurrent callers
- No retries: StorageError propagates unchanged to the caller
- NotFound is None
- Reads have no side effects

Flow:
    write: validateWriteBody -> validateKey -> backend.put
    read:  validateKey -> [validateTimestampParam -> backend.getAsOf | backend.getLatest]
"""

import threading
from typing import Any, Callable, Dict, Optional

from chronokv.logging import getLogger

from .backends.base import StorageBackend, StorageError, wallClock
from .validators import (
    validateKey, validateWriteBody, validateTimestampParam, validateLimitParam
)


class VersionedStore:
    """
    Versioned key-value engine over one backend instance.

    The engine does not own physical state; it owns the backend handle and
    releases it exactly once in close().
    """

    def __init__(self, backend: StorageBackend, now: Callable[[], int] = wallClock):
        """
        Args:
            backend: Storage backend instance (sqlite, mongodb or memory)
            now: Clock used to bound query timestamps (defaults to wall clock)
        """
        self.backend = backend
        self.now = now
        self.log = getLogger()
        self._closeLock = threading.Lock()
        self._closed = False

    @property
    def backendName(self) -> str:
        return getattr(self.backend, 'name', type(self.backend).__name__)

    def write(self, body: Any) -> Dict[str, Any]:
        """
        Store a new version.

        Args:
            body: Parsed request body; must be {"<key>": <value>}

        Returns:
            {key, value, timestamp}

        Raises:
            InvalidBody, InvalidKey: Validation failed (nothing written)
            StorageError: Backend failed (nothing written)
        """
        bodyKey, value = validateWriteBody(body)
        validateKey(bodyKey)

        try:
            record = self.backend.put(bodyKey, value)
        except StorageError:
            self.log.error("Write failed", key=bodyKey)
            raise

        self.log.info("Value stored", key=record.key, timestamp=record.timestamp)
        return record.toDict()

    def read(self, key: Any, timestampParam: Any = None) -> Optional[Dict[str, Any]]:
        """
        Latest version, or the version visible as of timestampParam.

        Args:
            key: Key to read
            timestampParam: Raw point-in-time parameter (string), or None

        Returns:
            {key, value, timestamp}, or None when no version is visible

        Raises:
            InvalidKey, InvalidTimestamp, StorageError
        """
        validateKey(key)

        if timestampParam is not None:
            timestamp = validateTimestampParam(timestampParam, now=self.now())
            record = self.backend.getAsOf(key, timestamp)
            self.log.debug("Point-in-time read", key=key, asOf=timestamp, found=record is not None)
        else:
            record = self.backend.getLatest(key)
            self.log.debug("Latest read", key=key, found=record is not None)

        return record.toDict() if record else None

    def history(self, key: Any, limitParam: Any = None) -> Optional[Dict[str, Any]]:
        """
        All versions of a key, newest first.

        Returns:
            {key, versions: [{value, timestamp}, ...]}, or None for an unknown key

        Raises:
            InvalidKey, InvalidLimit, StorageError
        """
        validateKey(key)
        limit = validateLimitParam(limitParam)

        records = self.backend.getHistory(key, limit)
        if not records:
            return None
        return {
            'key': key,
            'versions': [record.toVersionDict() for record in records]
        }

    def health(self) -> Dict[str, Any]:
        """Backend liveness: {status, backend, stats} or {status, backend, error}"""
        status = self.backend.healthCheck()
        if not status.healthy:
            self.log.warning("Backend unhealthy", backend=status.backend, reason=status.reason)
        return status.toDict()

    def close(self):
        """Release the backend (first call only)"""
        with self._closeLock:
            if self._closed:
                return
            self._closed = True
        self.log.info("Closing storage backend", backend=self.backendName)
        self.backend.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
