"""Read-only query API for ScreenText.

Provides:
- Discovery document and OpenAPI description
- Health check endpoint
- Store status with the permission snapshot
- Full-text search
- Screen-recording probe

``APIResponder`` maps one ``HTTPRequest`` to one ``HTTPResponse`` and never
raises; listeners (raw socket or Flask) only move bytes.
"""

import logging
from typing import Callable, Dict, List

from screentext import SERVICE_NAME, __version__
from screentext.server.database import SQLStore
from screentext.server.openapi import OPENAPI_YAML
from screentext.server.protocol import HTTPRequest, HTTPResponse, error_response, json_response
from screentext.shared import permissions as permission_probes
from screentext.shared.errors import ValidationError
from screentext.shared.models import PermissionSnapshot, ScreenRecordingProbe

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 200

ROUTES = [
    "/",
    "/health",
    "/status",
    "/search",
    "/screen-recording/probe",
    "/openapi.yaml",
]


def resolve_limit(raw: str | None) -> int:
    """Effective search limit: default when absent or unparsable, else clamped."""
    if raw is None:
        return DEFAULT_SEARCH_LIMIT
    try:
        parsed = int(raw.strip())
    except ValueError:
        return DEFAULT_SEARCH_LIMIT
    return min(max(parsed, 1), MAX_SEARCH_LIMIT)


class APIResponder:
    def __init__(
        self,
        store: SQLStore,
        permissions: Callable[[], PermissionSnapshot] = permission_probes.snapshot,
        screen_probe: Callable[[], ScreenRecordingProbe] = permission_probes.probe_screen_recording,
    ):
        self.store = store
        self.permissions = permissions
        self.screen_probe = screen_probe
        self._handlers: Dict[str, Callable[[HTTPRequest], HTTPResponse]] = {
            "/": self._discovery,
            "/docs": self._discovery,
            "/openapi": self._discovery,
            "/openapi.yaml": self._openapi,
            "/health": self._health,
            "/status": self._status,
            "/search": self._search,
            "/screen-recording/probe": self._screen_recording_probe,
        }

    def respond(self, request: HTTPRequest) -> HTTPResponse:
        if request.method != "GET":
            return error_response(405, "method_not_allowed", "Only GET is supported.")

        handler = self._handlers.get(request.path)
        if handler is None:
            return error_response(404, "not_found", "Route not found.")

        try:
            return handler(request)
        except ValidationError as e:
            logger.debug(f"Rejected {request.path}: {e.code} {e.message}")
            return error_response(e.status_code, e.code, e.message)
        except Exception as e:
            logger.error(f"Request {request.method} {request.path} failed: {e}")
            return error_response(500, "internal_error", str(e))

    # =========================================================================
    # Routes
    # =========================================================================

    def _discovery(self, request: HTTPRequest) -> HTTPResponse:
        return json_response(
            200,
            {
                "service": SERVICE_NAME,
                "version": __version__,
                "openapi": "/openapi.yaml",
                "routes": ROUTES,
            },
        )

    def _openapi(self, request: HTTPRequest) -> HTTPResponse:
        return HTTPResponse(
            status_code=200,
            reason_phrase="OK",
            body=OPENAPI_YAML.encode("utf-8"),
            content_type="application/yaml; charset=utf-8",
        )

    def _health(self, request: HTTPRequest) -> HTTPResponse:
        return json_response(200, {"ok": True, "service": SERVICE_NAME, "version": __version__})

    def _status(self, request: HTTPRequest) -> HTTPResponse:
        status = self.store.status()
        snapshot = self.permissions()
        return json_response(
            200,
            {
                "record_count": status.record_count,
                "last_capture_at": status.last_capture_at,
                "database_bytes": status.database_bytes,
                "accessibility_granted": snapshot.accessibility_granted,
                "screen_recording_granted": snapshot.screen_recording_granted,
            },
        )

    def _search(self, request: HTTPRequest) -> HTTPResponse:
        query = request.query.get("q")
        if not query:
            raise ValidationError("missing_query", "Expected query parameter 'q'.")

        limit = resolve_limit(request.query.get("limit"))
        app_name = request.query.get("app") or None

        results = self.store.search(query, limit=limit, app_name=app_name)
        serialized: List[dict] = [result.model_dump() for result in results]
        return json_response(200, {"query": query, "count": len(serialized), "results": serialized})

    def _screen_recording_probe(self, request: HTTPRequest) -> HTTPResponse:
        probe = self.screen_probe()
        return json_response(200, probe.model_dump())
