"""
chronokv configuration.

Layering (later wins):
    DEFAULT_CONFIG  ->  JSON config file (optional)  ->  CHRONOKV_* environment

Sections:
    backend: {type, sqlite: {dbPath, busyTimeoutSeconds},
              mongodb: {uri, database, collection, timeoutMs}}
    server:  {host, port, operationTimeoutSeconds, maxBodyBytes}
    logging: {logDir, level, console, maxBytes, backupCount, utc}
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import orjson

from chronokv.core.contract import BACKEND_TYPES


class ConfigError(ValueError):
    """Invalid configuration file or environment value"""


DEFAULT_CONFIG: Dict[str, Any] = {
    "backend": {
        "type": "sqlite",
        "sqlite": {
            "dbPath": "data/kv_store.db",
            "busyTimeoutSeconds": 10.0
        },
        "mongodb": {
            "uri": "mongodb://localhost:27017",
            "database": "chronokv",
            "collection": "kv_store",
            "timeoutMs": 5000
        }
    },
    "server": {
        "host": "0.0.0.0",
        "port": 3000,
        "operationTimeoutSeconds": 30.0,
        "maxBodyBytes": 10 * 1024 * 1024
    },
    "logging": {
        "logDir": None,
        "level": "INFO",
        "console": True,
        "maxBytes": 10_000_000,
        "backupCount": 5,
        "utc": False
    }
}

# env var -> config path
_ENV_OVERRIDES = {
    'CHRONOKV_BACKEND': ('backend', 'type'),
    'CHRONOKV_DB_PATH': ('backend', 'sqlite', 'dbPath'),
    'CHRONOKV_MONGODB_URI': ('backend', 'mongodb', 'uri'),
    'CHRONOKV_HOST': ('server', 'host'),
    'CHRONOKV_PORT': ('server', 'port'),
    'CHRONOKV_LOG_LEVEL': ('logging', 'level'),
    'CHRONOKV_LOG_DIR': ('logging', 'logDir'),
}


def _deepMerge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _deepMerge(base[key], value)
        else:
            base[key] = value
    return base


def _setPath(config: Dict[str, Any], path: tuple, value: Any):
    node = config
    for part in path[:-1]:
        node = node.setdefault(part, {})
    node[path[-1]] = value


def _parsePositiveNumber(raw: Any, name: str, integer: bool = False) -> float | int:
    try:
        value = int(raw) if integer else float(raw)
    except (TypeError, ValueError) as error:
        raise ConfigError(f"Invalid {name}: expected a number, got '{raw}'") from error
    if value <= 0:
        raise ConfigError(f"Invalid {name}: must be positive, got {value}")
    return value


def validateConfig(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check and normalize types in place.

    Raises:
        ConfigError: unknown backend type, bad port, non-positive timeouts
    """
    if not isinstance(config, dict):
        raise ConfigError("Config is not a JSON object")

    backend = config.get('backend')
    if not isinstance(backend, dict):
        raise ConfigError("Missing 'backend' section")
    if backend.get('type') not in BACKEND_TYPES:
        raise ConfigError(f"Unknown backend type '{backend.get('type')}'. Must be one of: {BACKEND_TYPES}")

    server = config.get('server')
    if not isinstance(server, dict):
        raise ConfigError("Missing 'server' section")
    port = server.get('port')
    try:
        port = int(port)
    except (TypeError, ValueError) as error:
        raise ConfigError(f"Invalid server port: expected integer, got '{port}'") from error
    if not 1 <= port <= 65535:
        raise ConfigError(f"Invalid server port: {port} is outside 1..65535")
    server['port'] = port
    server['operationTimeoutSeconds'] = _parsePositiveNumber(
        server.get('operationTimeoutSeconds'), 'server.operationTimeoutSeconds')
    server['maxBodyBytes'] = _parsePositiveNumber(
        server.get('maxBodyBytes'), 'server.maxBodyBytes', integer=True)

    sqlite = backend.get('sqlite') or {}
    if 'busyTimeoutSeconds' in sqlite:
        sqlite['busyTimeoutSeconds'] = _parsePositiveNumber(
            sqlite['busyTimeoutSeconds'], 'backend.sqlite.busyTimeoutSeconds')
    mongodb = backend.get('mongodb') or {}
    if 'timeoutMs' in mongodb:
        mongodb['timeoutMs'] = _parsePositiveNumber(
            mongodb['timeoutMs'], 'backend.mongodb.timeoutMs', integer=True)

    return config


def loadConfig(configPath: Optional[str | Path] = None,
               environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Build the effective configuration.

    Args:
        configPath: JSON file to merge over defaults; a missing file is
            skipped, an unreadable or malformed one is an error
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if configPath is not None:
        path = Path(configPath)
        if path.exists():
            try:
                fileConfig = orjson.loads(path.read_bytes())
            except (OSError, orjson.JSONDecodeError) as error:
                raise ConfigError(f"Failed to load config file {path}: {error}") from error
            if not isinstance(fileConfig, dict):
                raise ConfigError(f"Config file {path} is not a JSON object")
            _deepMerge(config, fileConfig)

    environ = os.environ if environ is None else environ
    for envName, path in _ENV_OVERRIDES.items():
        if envName in environ:
            _setPath(config, path, environ[envName])

    return validateConfig(config)
