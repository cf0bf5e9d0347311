"""
chronokv Volatile In-Memory Backend

Process-lifetime store for deployments where persistence is not wanted
(tests, demos, serverless instances). Same contract as the durable variants.

Layout: key -> parallel lists (timestamps ascending, canonical values).
Lookups bisect the timestamp list, so latest / as-of reads are O(log n).
Values are kept in canonical JSON form so callers can never mutate a
stored version through a shared object.
"""

import threading
from bisect import bisect_left, bisect_right
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from chronokv.logging import getLogger

from ..contract import BACKEND_MEMORY
from ..records import VersionRecord
from .base import Clock, HealthStatus, StorageError, emptyStats, wallClock


class _KeyVersions:
    """Versions of one key, ordered by timestamp"""

    __slots__ = ('timestamps', 'values', 'createdAt')

    def __init__(self):
        self.timestamps: List[int] = []
        self.values: List[str] = []
        self.createdAt: List[str] = []

    def record(self, key: str, index: int) -> VersionRecord:
        return VersionRecord.fromStored(key, self.values[index], self.timestamps[index], self.createdAt[index])


class MemoryBackend:
    """In-memory version store"""

    name = BACKEND_MEMORY

    def __init__(self, clock: Clock = wallClock):
        self.log = getLogger()
        self.clock = clock
        self._keys: Dict[str, _KeyVersions] = {}
        self._lock = threading.Lock()
        self._closed = False
        self.log.info("In-memory store ready")

    def _requireOpen(self, operation: str, key: Optional[str] = None):
        if self._closed:
            raise StorageError("Backend is closed", operation=operation, key=key)

    def put(self, key: str, value: Any) -> VersionRecord:
        self._requireOpen('put', key)
        try:
            storedValue = VersionRecord(key=key, value=value, timestamp=0).storedValue()
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value is not JSON-serializable: {e}", operation='put', key=key) from e

        with self._lock:
            self._requireOpen('put', key)
            timestamp = self.clock()
            createdAt = datetime.now(timezone.utc).isoformat()
            versions = self._keys.setdefault(key, _KeyVersions())

            index = bisect_left(versions.timestamps, timestamp)
            if index < len(versions.timestamps) and versions.timestamps[index] == timestamp:
                # Same tick: last write wins
                versions.values[index] = storedValue
                versions.createdAt[index] = createdAt
            else:
                versions.timestamps.insert(index, timestamp)
                versions.values.insert(index, storedValue)
                versions.createdAt.insert(index, createdAt)

        self.log.debug("Value stored", key=key, timestamp=timestamp)
        return VersionRecord.fromStored(key, storedValue, timestamp, createdAt)

    def getLatest(self, key: str) -> Optional[VersionRecord]:
        self._requireOpen('getLatest', key)
        with self._lock:
            versions = self._keys.get(key)
            if not versions or not versions.timestamps:
                return None
            return versions.record(key, len(versions.timestamps) - 1)

    def getAsOf(self, key: str, timestamp: int) -> Optional[VersionRecord]:
        self._requireOpen('getAsOf', key)
        with self._lock:
            versions = self._keys.get(key)
            if not versions:
                return None
            index = bisect_right(versions.timestamps, timestamp)
            if index == 0:
                return None
            return versions.record(key, index - 1)

    def getHistory(self, key: str, limit: Optional[int] = None) -> List[VersionRecord]:
        self._requireOpen('getHistory', key)
        with self._lock:
            versions = self._keys.get(key)
            if not versions:
                return []
            indices = range(len(versions.timestamps) - 1, -1, -1)
            if limit is not None:
                indices = indices[:limit]
            return [versions.record(key, i) for i in indices]

    def getStats(self) -> Dict[str, Any]:
        self._requireOpen('getStats')
        with self._lock:
            populated = [v for v in self._keys.values() if v.timestamps]
            if not populated:
                return emptyStats()
            return {
                'totalRecords': sum(len(v.timestamps) for v in populated),
                'uniqueKeys': len(populated),
                'earliestTimestamp': min(v.timestamps[0] for v in populated),
                'latestTimestamp': max(v.timestamps[-1] for v in populated)
            }

    def healthCheck(self) -> HealthStatus:
        try:
            stats = self.getStats()
        except StorageError as e:
            return HealthStatus(healthy=False, backend=self.name, reason=str(e))
        return HealthStatus(healthy=True, backend=self.name, stats=stats)

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._keys.clear()
        self.log.info("In-memory store closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
