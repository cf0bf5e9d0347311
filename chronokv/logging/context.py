"""
Request-scoped logging context.

The HTTP edge sets requestId and the backend name for each request.
A filter stamps both on every record so backend log lines can be correlated
with the request that caused them.
"""

import logging
from typing import Optional
from contextvars import ContextVar

_requestId: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
_backendName: ContextVar[Optional[str]] = ContextVar('backend_name', default=None)


class RequestContextFilter(logging.Filter):
    """Adds requestId/backend to log records when set"""

    def filter(self, record):
        requestId = _requestId.get()
        backendName = _backendName.get()

        if requestId and not hasattr(record, 'requestId'):
            record.requestId = requestId
        if backendName and not hasattr(record, 'backend'):
            record.backend = backendName

        return True


def setRequestContext(requestId: Optional[str] = None, backend: Optional[str] = None):
    """
    Set context for the current task/thread.

    asyncio.to_thread copies the context, so values set in a request
    handler are visible inside backend calls made for that request.
    """
    if requestId is not None:
        _requestId.set(requestId)
    if backend is not None:
        _backendName.set(backend)


def getRequestContext() -> dict:
    return {
        'requestId': _requestId.get(),
        'backend': _backendName.get()
    }


def clearRequestContext():
    _requestId.set(None)
    _backendName.set(None)


def installRequestContextFilter(logger: logging.Logger):
    """Attach the context filter to a logger's handlers (idempotent)"""
    for handler in logger.handlers:
        if not any(isinstance(f, RequestContextFilter) for f in handler.filters):
            handler.addFilter(RequestContextFilter())
