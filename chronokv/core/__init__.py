"""
chronokv Core Package

Versioned storage engine: validation, version records, backend variants,
and the engine that coordinates them.

Invariants:
- (key, timestamp) is unique; same-tick writes replace (last write wins)
- Point-in-time read = greatest timestamp <= target
- No deletes, no compaction
"""

from .engine import VersionedStore
from .records import VersionRecord
from .validators import (
    ValidationError, InvalidKey, InvalidBody, InvalidTimestamp, InvalidLimit,
    validateKey, validateWriteBody, validateTimestampParam, validateLimitParam
)
from .backends import StorageBackend, StorageError, HealthStatus, createBackend

__all__ = [
    'VersionedStore', 'VersionRecord',
    'ValidationError', 'InvalidKey', 'InvalidBody', 'InvalidTimestamp', 'InvalidLimit',
    'validateKey', 'validateWriteBody', 'validateTimestampParam', 'validateLimitParam',
    'StorageBackend', 'StorageError', 'HealthStatus', 'createBackend'
]
