"""
Hierarchical structured logger for chronokv.

Features:
- Logger name auto-detected from the call stack (module + class), computed once
- Structured fields passed as keyword arguments: log.info("Stored", key=k)
- Rotating file handler per application log file, optional console output
- Hostname stamped on every record

Usage:
    from chronokv.logging import getLogger

    class SqliteBackend:
        def __init__(self):
            self.log = getLogger()  # Auto: 'core.backends.sqliteBackend.SqliteBackend'

        def put(self, key, value):
            self.log.debug("Stored value", key=key)

    log = getLogger()  # Module-level, auto: 'server.server'
"""

import inspect
import logging
import logging.handlers
import socket
from pathlib import Path
from typing import Optional
from datetime import datetime, timezone as tz

from .context import installRequestContextFilter


_hostname = socket.gethostname()
_configured = False
_fileHandlers = {}  # logPath -> handler (shared between loggers of one app)
_config = {
    'logDir': None,
    'maxBytes': 10_000_000,
    'backupCount': 5,
    'console': True,
    'level': logging.INFO,
    'utc': False
}


def configureLogging(logDir: Optional[str] = None, maxBytes: int = 10_000_000,
                     backupCount: int = 5, console: bool = True,
                     level: str = 'INFO', utc: bool = False):
    """
    Configure global logging settings (call once at startup).

    Loggers already handed out keep their handlers; configure before the
    first getLogger() call to affect everything.

    Args:
        logDir: Directory for log files (None disables file output)
        maxBytes: Maximum size per log file before rotation
        backupCount: Number of rotated files to keep per app
        console: Also log to stderr
        level: Minimum log level name
        utc: Use UTC timestamps instead of local time
    """
    global _configured

    levelValue = getattr(logging, str(level).upper(), None)
    if not isinstance(levelValue, int):
        raise ValueError(f"Unknown log level: {level}")

    _config.update({'logDir': logDir, 'maxBytes': maxBytes, 'backupCount': backupCount,
                    'console': console, 'level': levelValue, 'utc': utc})

    if logDir is not None:
        Path(logDir).mkdir(parents=True, exist_ok=True)

    # Re-level loggers that were created before configuration
    for name in list(logging.root.manager.loggerDict):
        existing = logging.getLogger(name)
        if getattr(existing, '_configured_by_chronokv', False):
            existing.setLevel(levelValue)
            for handler in existing.handlers:
                handler.setLevel(levelValue)

    _configured = True


def _autoDetectName() -> str:
    """Auto-detect logger name from call stack. Returns hierarchy like 'core.engine.VersionedStore'"""
    frame = inspect.currentframe()
    try:
        current = frame
        while current is not None:
            current = current.f_back
            if current is None:
                break

            module = inspect.getmodule(current)
            if module is None:
                continue

            moduleName = module.__name__

            # Skip frames inside this logging package
            if moduleName.startswith('chronokv.logging'):
                continue

            if moduleName.startswith('importlib') or moduleName == '__main__':
                continue

            parts = moduleName.split('.')

            # 'chronokv' is just the package wrapper
            if parts and parts[0] == 'chronokv' and len(parts) > 1:
                parts = parts[1:]

            className = None
            if current.f_locals:
                if 'self' in current.f_locals:
                    className = current.f_locals['self'].__class__.__name__
                elif 'cls' in current.f_locals and isinstance(current.f_locals['cls'], type):
                    className = current.f_locals['cls'].__name__

            hierarchy = '.'.join(parts) if parts else 'unknown'
            if className:
                hierarchy = f"{hierarchy}.{className}"

            return hierarchy
        return 'unknown'
    finally:
        del frame


class StructuredFormatter(logging.Formatter):
    """Formatter that appends structured fields.
    Format: timestamp - hostname - logger.name - level - message [field1=value1, field2=value2]"""

    _excluded = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs',
        'message', 'pathname', 'process', 'processName',
        'relativeCreated', 'thread', 'threadName', 'exc_info',
        'exc_text', 'stack_info', 'hostname', 'asctime', 'taskName'
    }

    def __init__(self, fmt=None, datefmt=None, utc=False):
        super().__init__(fmt, datefmt)
        self.utc = utc

    def formatTime(self, record, datefmt=None):
        if self.utc:
            ct = datetime.fromtimestamp(record.created, tz=tz.utc)
        else:
            ct = datetime.fromtimestamp(record.created)

        if datefmt:
            return ct.strftime(datefmt)
        return f"{ct.strftime('%Y-%m-%d %H:%M:%S')},{int(record.msecs):03d}"

    def format(self, record):
        record.hostname = _hostname

        structuredFields = [
            f"{key}={value}" for key, value in record.__dict__.items()
            if key not in self._excluded and not key.startswith('_')
        ]

        # Work on a copy of msg so other handlers see the original
        originalMsg = record.msg
        if structuredFields:
            record.msg = f"{originalMsg} [{', '.join(structuredFields)}]"
        try:
            return super().format(record)
        finally:
            record.msg = originalMsg


def getLogger(name: Optional[str] = None, separateFile: bool = False) -> logging.Logger:
    """
    Get or create a logger with automatic hierarchy detection.

    Args:
        name: Logger name (auto-detected from call stack if None)
        separateFile: Write to '<name>.log' instead of the app-wide file

    Returns:
        logging.Logger whose debug/info/warning/error/critical accept **fields
    """
    if not _configured:
        configureLogging()

    if name is None:
        name = _autoDetectName()

    logger = logging.getLogger(name)
    logger.propagate = False

    if not logger.handlers and not hasattr(logger, '_configured_by_chronokv'):
        logger.setLevel(_config['level'])

        if _config['logDir'] is not None:
            logFilename = f"{name}.log" if separateFile else "chronokv.log"
            logPath = str(Path(_config['logDir']) / logFilename)

            if logPath not in _fileHandlers:
                fileHandler = logging.handlers.RotatingFileHandler(
                    logPath,
                    maxBytes=_config['maxBytes'],
                    backupCount=_config['backupCount'],
                    encoding='utf-8'
                )
                fileHandler.setLevel(_config['level'])
                fileHandler.setFormatter(StructuredFormatter(
                    '%(asctime)s - %(hostname)s - %(name)s - %(levelname)s - %(message)s',
                    utc=_config['utc']
                ))
                _fileHandlers[logPath] = fileHandler

            logger.addHandler(_fileHandlers[logPath])

        if _config['console']:
            consoleHandler = logging.StreamHandler()
            consoleHandler.setLevel(_config['level'])
            consoleHandler.setFormatter(StructuredFormatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                utc=_config['utc']
            ))
            logger.addHandler(consoleHandler)

        installRequestContextFilter(logger)
        logger._configured_by_chronokv = True

    return _wrapLogger(logger)


def _wrapLogger(logger: logging.Logger) -> logging.Logger:
    """
    Replace the level methods so structured fields can be passed as **kwargs.

    log.info("Stored", key=k) instead of log.info("Stored", extra={'key': k})
    """
    if hasattr(logger, '_is_wrapped'):
        return logger

    def _wrap(original):
        def logMethod(msg, *args, **kwargs):
            excInfo = kwargs.pop('exc_info', False)
            if kwargs:
                original(msg, *args, extra=kwargs, exc_info=excInfo)
            else:
                original(msg, *args, exc_info=excInfo)
        return logMethod

    logger.debug = _wrap(logger.debug)
    logger.info = _wrap(logger.info)
    logger.warning = _wrap(logger.warning)
    logger.error = _wrap(logger.error)
    logger.critical = _wrap(logger.critical)
    logger._is_wrapped = True

    return logger
