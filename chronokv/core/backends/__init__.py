"""
chronokv storage backends.

Three interchangeable variants behind one protocol:
- sqlite:  durable, embedded file
- mongodb: durable, networked document store
- memory:  volatile, process lifetime
"""

from .base import StorageBackend, StorageError, HealthStatus, wallClock
from .registry import createBackend

__all__ = ['StorageBackend', 'StorageError', 'HealthStatus', 'wallClock', 'createBackend']
