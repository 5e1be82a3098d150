"""
SpeedWatch HTTP server - JSON API edge.

Devices POST violations; dashboards and clients poll the read endpoints.
Every response body is JSON with an `ok` flag.

Endpoints:
  POST   /api/violation        <- devices post alerts here (JSON or form body)
  GET    /api/violations       <- ?limit=&tier=&device=
  GET    /api/violations/{id}  <- single violation
  GET    /api/stats            <- summary statistics + device rollups
  GET    /api/devices          <- device rollups
  DELETE /api/violations       <- ?key=ADMIN_KEY, clears every record
  GET    /health

Architecture invariants:
- Server holds no state of its own; the injected RecordStore is authoritative
- Store failures are logged with detail, clients only ever see "Database error"
- No request can take the process down: the error middleware answers everything

Property of Uncompromising Sensors LLC.
"""

import orjson
from aiohttp import web
from typing import Any, Dict, Optional

from speedwatch.core.ingest import Ingest, IngestError
from speedwatch.core.query import QueryService
from speedwatch.core.recordStore import NotFoundError, RecordStore, StoreError
from speedwatch.core.validator import ValidationError
from speedwatch.logging import getLogger
from speedwatch.server.auth import AdminAuth, UnauthorizedError


_FORM_TYPES = ('application/x-www-form-urlencoded', 'multipart/form-data')


def jsonResponse(data: Dict[str, Any], status: int = 200) -> web.Response:
    """JSON response encoded with orjson"""
    return web.Response(body=orjson.dumps(data), status=status, content_type='application/json')


class SpeedWatchServer:
    """
    SpeedWatch HTTP server.

    Wires the aiohttp routes to the ingest and query services built on a
    single shared RecordStore.
    """

    def __init__(self, config: Dict[str, Any], store: RecordStore):
        self.config = config
        self.log = getLogger()

        self.store = store
        self.ingest = Ingest(store)
        self.queryService = QueryService(store)
        self.auth = AdminAuth(config.get('adminKey', 'changeme'))

        self.app = web.Application(middlewares=[self._errorMiddleware])
        self._setupRoutes()

        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def _setupRoutes(self):
        self.app.router.add_get('/health', self.handleHealth)

        self.app.router.add_post('/api/violation', self.handleCreateViolation)
        self.app.router.add_get('/api/violations', self.handleListViolations)
        self.app.router.add_delete('/api/violations', self.handleDeleteViolations)
        self.app.router.add_get('/api/violations/{id}', self.handleGetViolation)
        self.app.router.add_get('/api/stats', self.handleStats)
        self.app.router.add_get('/api/devices', self.handleDevices)

    async def start(self):
        """Start listening"""
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()

        host = self.config.get('host', '0.0.0.0')
        port = self.config.get('port', 3000)

        self._site = web.TCPSite(self._runner, host, port)
        await self._site.start()

        self.log.info(f"[Server] Listening on {host}:{port}")

    async def stop(self):
        """Stop listening. The RecordStore is closed by its owner."""
        self.log.info("[Server] Stopping...")
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self.log.info("[Server] Stopped")

    # =========================================================================
    # Middleware
    # =========================================================================

    @web.middleware
    async def _errorMiddleware(self, request: web.Request, handler) -> web.StreamResponse:
        """Map routing misses, store failures and unexpected errors to JSON responses"""
        try:
            return await handler(request)
        except (web.HTTPNotFound, web.HTTPMethodNotAllowed):
            return jsonResponse({
                'ok': False,
                'error': f"Route {request.method} {request.path} not found"
            }, status=404)
        except web.HTTPException as e:
            return jsonResponse({'ok': False, 'error': e.reason}, status=e.status)
        except (StoreError, IngestError) as e:
            self.log.error(f"[Server] Database error on {request.method} {request.path}: {e}")
            return jsonResponse({'ok': False, 'error': 'Database error'}, status=500)
        except Exception as e:
            self.log.error(f"[Server] Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
            return jsonResponse({'ok': False, 'error': 'Internal server error'}, status=500)

    # =========================================================================
    # HTTP Handlers
    # =========================================================================

    async def handleHealth(self, request: web.Request) -> web.Response:
        return jsonResponse({'ok': True, 'status': 'ok'})

    async def _readPayload(self, request: web.Request) -> Any:
        """Decode the request body: form fields or JSON (empty body reads as {})"""
        if request.content_type in _FORM_TYPES:
            return dict(await request.post())

        raw = await request.read()
        if not raw.strip():
            return {}
        return orjson.loads(raw)

    async def handleCreateViolation(self, request: web.Request) -> web.Response:
        """
        Ingest one violation from a device.

        201 {ok, id} | 400 {ok:false, errors} | 500 {ok:false, error}
        """
        try:
            payload = await self._readPayload(request)
        except orjson.JSONDecodeError:
            return jsonResponse({'ok': False, 'errors': ['body must be valid JSON']}, status=400)

        try:
            recordId = self.ingest.submit(payload)
        except ValidationError as e:
            self.log.debug(f"[Server] Rejected violation: {e}")
            return jsonResponse({'ok': False, 'errors': e.errors}, status=400)
        except IngestError as e:
            return jsonResponse({'ok': False, 'error': str(e)}, status=500)

        return jsonResponse({'ok': True, 'id': recordId}, status=201)

    async def handleListViolations(self, request: web.Request) -> web.Response:
        """GET /api/violations?limit=100&tier=SEVERE&device=ESP32-01"""
        violations = self.queryService.listViolations(request.query)
        return jsonResponse({'ok': True, 'count': len(violations), 'violations': violations})

    async def handleGetViolation(self, request: web.Request) -> web.Response:
        try:
            violation = self.queryService.getViolation(request.match_info['id'])
        except NotFoundError:
            return jsonResponse({'ok': False, 'error': 'Not found'}, status=404)
        return jsonResponse({'ok': True, 'violation': violation})

    async def handleStats(self, request: web.Request) -> web.Response:
        result = self.queryService.stats()
        return jsonResponse({'ok': True, 'stats': result['stats'], 'devices': result['devices']})

    async def handleDevices(self, request: web.Request) -> web.Response:
        return jsonResponse({'ok': True, 'devices': self.queryService.devices()})

    async def handleDeleteViolations(self, request: web.Request) -> web.Response:
        """Clear every record. Requires ?key= matching the admin key."""
        try:
            self.auth.requireAdmin(request.query.get('key'), remote=request.remote)
        except UnauthorizedError:
            return jsonResponse({'ok': False, 'error': 'Unauthorized'}, status=401)

        deleted = self.ingest.clearAll()
        return jsonResponse({'ok': True, 'message': 'All violations deleted', 'deleted': deleted})
