"""
chronokv Storage Backend Interface

Capability set every physical backend provides to the engine. Backends are
independent classes that satisfy this protocol structurally; the engine only
ever sees the protocol, and the concrete class is chosen at startup by the
registry.

Shared rules for all variants:
- put() stamps the record with clock() (integer Unix seconds)
- (key, timestamp) is unique; a put landing on an existing identity
  replaces that record atomically (last committed write wins)
- getAsOf(key, t) returns the record with the greatest timestamp <= t
- NotFound is None, never an exception
- Driver failures raise StorageError with the driver error chained
- close() is idempotent; any other call after close() raises StorageError
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from ..records import VersionRecord


Clock = Callable[[], int]


def wallClock() -> int:
    """Current Unix time in whole seconds"""
    return int(time.time())


class StorageError(Exception):
    """Backend connectivity, constraint or capacity failure (surfaced as 5xx)"""

    def __init__(self, message: str, operation: Optional[str] = None, key: Optional[str] = None):
        self.operation = operation
        self.key = key
        super().__init__(message)


@dataclass
class HealthStatus:
    """
    Result of healthCheck().

    stats is populated when healthy; reason when not.
    """
    healthy: bool
    backend: str
    stats: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None

    def toDict(self) -> Dict[str, Any]:
        if self.healthy:
            return {'status': 'healthy', 'backend': self.backend, 'stats': self.stats}
        return {'status': 'unhealthy', 'backend': self.backend, 'error': self.reason}


def emptyStats() -> Dict[str, Any]:
    return {
        'totalRecords': 0,
        'uniqueKeys': 0,
        'earliestTimestamp': None,
        'latestTimestamp': None
    }


@runtime_checkable
class StorageBackend(Protocol):
    """Versioned record storage"""

    name: str

    def put(self, key: str, value: Any) -> VersionRecord:
        """Persist a new version stamped with the current time"""
        ...

    def getLatest(self, key: str) -> Optional[VersionRecord]:
        """Version with the greatest timestamp, or None"""
        ...

    def getAsOf(self, key: str, timestamp: int) -> Optional[VersionRecord]:
        """Version with the greatest timestamp <= timestamp, or None"""
        ...

    def getHistory(self, key: str, limit: Optional[int] = None) -> List[VersionRecord]:
        """All versions, newest first"""
        ...

    def getStats(self) -> Dict[str, Any]:
        ...

    def healthCheck(self) -> HealthStatus:
        ...

    def close(self) -> None:
        ...
