"""
chronokv Server - HTTP edge over the versioned store engine.

Routes:
    GET  /                          API index
    POST /object                    {"<key>": <value>} -> {key, value, timestamp}
    GET  /object/{key}              latest -> {value, timestamp}
    GET  /object/{key}?timestamp=T  as of T -> {value, timestamp}
    GET  /object/{key}/history      all versions, newest first
    GET  /health                    backend liveness + stats

Architecture invariants:
- Server holds no storage state; the engine is authoritative
- Engine calls run in worker threads, so a slow backend never stalls the
  event loop or other keys
- Reads and health checks are bounded by operationTimeoutSeconds; writes
  are not, because an abandoned worker would still commit. Writes rely on
  the backend busy / socket timeouts instead
- Validation errors -> 400, not found -> 404, storage errors -> 500
- Every response carries X-Request-Id; every error body carries
  requestId and timestamp
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import orjson
from aiohttp import web

from chronokv import __version__
from chronokv.core.engine import VersionedStore
from chronokv.core.backends.base import StorageError
from chronokv.core.validators import ValidationError
from chronokv.logging import getLogger, setRequestContext


REQUEST_ID_HEADER = 'X-Request-Id'
REQUEST_ID_KEY = web.RequestKey('requestId', str)


def _dumps(data: Any) -> str:
    return orjson.dumps(data).decode('utf-8')


def _jsonResponse(data: Any, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, dumps=_dumps)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ChronoServer:
    """
    chronokv HTTP server.

    Owns the aiohttp application and listener; the engine (and through it
    the backend) is passed in and closed by whoever created it.
    """

    def __init__(self, engine: VersionedStore, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.engine = engine
        self.config = config
        self.log = getLogger()
        self.operationTimeoutSeconds = float(config.get('operationTimeoutSeconds', 30.0))
        self._startedAt = time.monotonic()

        self.app = web.Application(
            middlewares=[self._requestContextMiddleware, self._errorMiddleware],
            client_max_size=int(config.get('maxBodyBytes', 10 * 1024 * 1024))
        )
        self._setupRoutes()

        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def _setupRoutes(self):
        self.app.router.add_get('/', self.handleIndex)
        self.app.router.add_get('/health', self.handleHealth)
        self.app.router.add_post('/object', self.handleWrite)
        self.app.router.add_get('/object/{key}', self.handleRead)
        self.app.router.add_get('/object/{key}/history', self.handleHistory)

    async def start(self):
        """Bind and start listening"""
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()

        host = self.config.get('host', '0.0.0.0')
        port = self.config.get('port', 3000)

        self._site = web.TCPSite(self._runner, host, port)
        await self._site.start()

        self.log.info("Listening", host=host, port=port, backendType=self.engine.backendName)

    async def stop(self):
        """Stop accepting requests and let in-flight ones finish"""
        self.log.info("Stopping...")
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self.log.info("Stopped")

    # =========================================================================
    # Middleware
    # =========================================================================

    @web.middleware
    async def _requestContextMiddleware(self, request: web.Request, handler) -> web.StreamResponse:
        """Assign requestId, log one line per request"""
        requestId = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request[REQUEST_ID_KEY] = requestId
        setRequestContext(requestId=requestId, backend=self.engine.backendName)

        started = time.perf_counter()
        response = await handler(request)
        durationMs = round((time.perf_counter() - started) * 1000, 2)

        response.headers[REQUEST_ID_HEADER] = requestId
        self.log.info(f"{request.method} {request.path}", status=response.status, durationMs=durationMs)
        return response

    @web.middleware
    async def _errorMiddleware(self, request: web.Request, handler) -> web.StreamResponse:
        """Map exceptions to JSON error bodies"""
        try:
            return await handler(request)
        except ValidationError as e:
            return self._errorResponse(request, e.message, 400, details=e.details)
        except StorageError as e:
            self.log.error("Storage error", operation=e.operation, key=e.key, errorMsg=str(e),
                           path=request.path)
            return self._errorResponse(request, 'Internal server error', 500)
        except web.HTTPNotFound:
            return self._errorResponse(request, 'Endpoint not found', 404)
        except web.HTTPException as e:
            return self._errorResponse(request, e.reason, e.status)
        except Exception as e:
            self.log.error("Unhandled error", errorClass=type(e).__name__, errorMsg=str(e),
                           path=request.path, exc_info=True)
            return self._errorResponse(request, 'Internal server error', 500)

    def _errorResponse(self, request: web.Request, error: str, status: int,
                       details: Optional[list] = None) -> web.Response:
        body: Dict[str, Any] = {
            'error': error,
            'requestId': request.get(REQUEST_ID_KEY),
            'timestamp': _now()
        }
        if details:
            body['details'] = details
        return _jsonResponse(body, status=status)

    async def _call(self, fn: Callable, *args, bounded: bool = True) -> Any:
        """
        Run a blocking engine call in a worker thread.

        A bounded call exceeding operationTimeoutSeconds surfaces as
        StorageError; the worker thread itself runs to completion.
        """
        if not bounded:
            return await asyncio.to_thread(fn, *args)
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.operationTimeoutSeconds)
        except asyncio.TimeoutError as e:
            raise StorageError(
                f"Storage operation timed out after {self.operationTimeoutSeconds}s",
                operation=getattr(fn, '__name__', 'unknown')
            ) from e

    # =========================================================================
    # HTTP Handlers
    # =========================================================================

    async def handleIndex(self, request: web.Request) -> web.Response:
        return _jsonResponse({
            'name': 'chronokv',
            'version': __version__,
            'description': 'Versioned key-value store with point-in-time reads',
            'backend': self.engine.backendName,
            'endpoints': {
                'POST /object': 'Store a key-value pair with timestamp',
                'GET /object/{key}': 'Get the latest value for a key',
                'GET /object/{key}?timestamp=T': 'Get the value for a key as of Unix time T',
                'GET /object/{key}/history?limit=N': 'List versions of a key, newest first',
                'GET /health': 'Health check with storage stats'
            }
        })

    async def handleWrite(self, request: web.Request) -> web.Response:
        """POST /object"""
        raw = await request.read()
        try:
            body = orjson.loads(raw) if raw else None
        except orjson.JSONDecodeError:
            return self._errorResponse(request, 'Invalid JSON format', 400)

        result = await self._call(self.engine.write, body, bounded=False)
        return _jsonResponse(result)

    async def handleRead(self, request: web.Request) -> web.Response:
        """GET /object/{key}[?timestamp=T]"""
        key = request.match_info['key']
        # Empty parameter means "latest"
        timestampParam = request.query.get('timestamp') or None

        result = await self._call(self.engine.read, key, timestampParam)
        if result is None:
            if timestampParam is not None:
                return self._errorResponse(request, 'No value found for key at the specified timestamp', 404)
            return self._errorResponse(request, 'Key not found', 404)

        return _jsonResponse({'value': result['value'], 'timestamp': result['timestamp']})

    async def handleHistory(self, request: web.Request) -> web.Response:
        """GET /object/{key}/history[?limit=N]"""
        key = request.match_info['key']
        limitParam = request.query.get('limit') or None

        result = await self._call(self.engine.history, key, limitParam)
        if result is None:
            return self._errorResponse(request, 'Key not found', 404)
        return _jsonResponse(result)

    async def handleHealth(self, request: web.Request) -> web.Response:
        """GET /health - 200 when the backend answers, 503 otherwise"""
        try:
            health = await self._call(self.engine.health)
        except StorageError as e:
            health = {'status': 'unhealthy', 'backend': self.engine.backendName, 'error': str(e)}

        health['timestamp'] = _now()
        health['uptimeSeconds'] = round(time.monotonic() - self._startedAt, 3)
        status = 200 if health.get('status') == 'healthy' else 503
        return _jsonResponse(health, status=status)
