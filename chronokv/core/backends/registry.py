"""
chronokv Backend Registry

Selects and constructs the storage backend named in configuration.
The mongodb variant is imported lazily so that sqlite/memory deployments
load without touching the pymongo driver.
"""

from typing import Any, Callable, Dict, Optional

from chronokv.logging import getLogger

from ..contract import BACKEND_SQLITE, BACKEND_MONGODB, BACKEND_MEMORY, BACKEND_TYPES
from .base import Clock, StorageBackend, wallClock


log = getLogger()


def _createSqlite(options: Dict[str, Any], clock: Clock) -> StorageBackend:
    from .sqliteBackend import SqliteBackend
    return SqliteBackend(
        dbPath=options.get('dbPath', 'data/kv_store.db'),
        busyTimeoutSeconds=float(options.get('busyTimeoutSeconds', 10.0)),
        clock=clock
    )


def _createMongo(options: Dict[str, Any], clock: Clock) -> StorageBackend:
    from .mongoBackend import MongoBackend
    return MongoBackend(
        uri=options.get('uri', 'mongodb://localhost:27017'),
        database=options.get('database', 'chronokv'),
        collection=options.get('collection', 'kv_store'),
        timeoutMs=int(options.get('timeoutMs', 5000)),
        clock=clock
    )


def _createMemory(options: Dict[str, Any], clock: Clock) -> StorageBackend:
    from .memoryBackend import MemoryBackend
    return MemoryBackend(clock=clock)


_FACTORIES: Dict[str, Callable[[Dict[str, Any], Clock], StorageBackend]] = {
    BACKEND_SQLITE: _createSqlite,
    BACKEND_MONGODB: _createMongo,
    BACKEND_MEMORY: _createMemory,
}


def createBackend(backendConfig: Dict[str, Any], clock: Optional[Clock] = None) -> StorageBackend:
    """
    Build the backend described by the 'backend' config section.

    backendConfig shape:
        {"type": "sqlite", "sqlite": {...}, "mongodb": {...}, "memory": {...}}

    Raises:
        ValueError: Unknown backend type
        StorageError: Backend failed to open
    """
    backendType = backendConfig.get('type', BACKEND_SQLITE)
    factory = _FACTORIES.get(backendType)
    if factory is None:
        raise ValueError(f"Unknown backend type '{backendType}'. Must be one of: {BACKEND_TYPES}")

    options = backendConfig.get(backendType) or {}
    log.info("Creating storage backend", backendType=backendType)
    return factory(options, clock or wallClock)
