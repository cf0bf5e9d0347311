"""
chronokv logging - hierarchical structured logger.

API:
    from chronokv.logging import getLogger

    log = getLogger()
    log.info("Value stored", key='mykey', timestamp=1700000000)

    # Once at startup
    from chronokv.logging import configureLogging
    configureLogging(logDir='logs', level='DEBUG')
"""

from .logger import getLogger, configureLogging, StructuredFormatter
from .context import (
    setRequestContext,
    getRequestContext,
    clearRequestContext,
    installRequestContextFilter
)

__all__ = [
    'getLogger',
    'configureLogging',
    'StructuredFormatter',
    'setRequestContext',
    'getRequestContext',
    'clearRequestContext',
    'installRequestContextFilter'
]
