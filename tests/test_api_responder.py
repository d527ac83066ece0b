"""Tests for APIResponder routing, validation and error mapping."""

import pytest

from screentext.server.api import APIResponder, resolve_limit
from screentext.server.protocol import HTTPRequest
from screentext.shared.errors import QueryError
from screentext.shared.models import PermissionSnapshot, ScreenRecordingProbe


def _get(path, **query):
    return HTTPRequest(method="GET", path=path, query={k: str(v) for k, v in query.items()})


class SpyStore:
    """Records the arguments of the last search."""

    def __init__(self):
        self.calls = []

    def search(self, query, limit=20, app_name=None):
        self.calls.append({"query": query, "limit": limit, "app_name": app_name})
        return []

    def status(self):
        raise QueryError("database is locked")


@pytest.fixture
def probe():
    return ScreenRecordingProbe(granted=True, width=1920, height=1080, byte_count=6220800, sample_hash="ab" * 32)


@pytest.fixture
def responder(store, probe):
    return APIResponder(
        store,
        permissions=lambda: PermissionSnapshot(accessibility_granted=True, screen_recording_granted=False),
        screen_probe=lambda: probe,
    )


class TestMethodAndRouting:
    def test_non_get_is_method_not_allowed(self, responder):
        response = responder.respond(HTTPRequest(method="POST", path="/health"))

        assert response.status_code == 405
        assert response.reason_phrase == "Method Not Allowed"
        assert response.json()["error"] == "method_not_allowed"

    def test_non_get_on_unknown_path_is_still_405(self, responder):
        assert responder.respond(HTTPRequest(method="DELETE", path="/nope")).status_code == 405

    def test_unknown_path_is_not_found(self, responder):
        response = responder.respond(_get("/nope"))

        assert response.status_code == 404
        assert response.json() == {"error": "not_found", "message": "Route not found."}

    @pytest.mark.parametrize("path", ["/", "/docs", "/openapi"])
    def test_discovery_document(self, responder, path):
        response = responder.respond(_get(path))

        assert response.status_code == 200
        payload = response.json()
        assert payload["service"] == "agent-watch"
        assert payload["version"] == "0.1.0"
        assert payload["openapi"] == "/openapi.yaml"
        assert "/search" in payload["routes"]
        assert "/screen-recording/probe" in payload["routes"]

    def test_openapi_yaml(self, responder):
        response = responder.respond(_get("/openapi.yaml"))

        assert response.status_code == 200
        assert response.content_type == "application/yaml; charset=utf-8"
        text = response.body.decode("utf-8")
        assert text.startswith("openapi: 3.1.0")
        assert "/search:" in text

    def test_health(self, responder):
        response = responder.respond(_get("/health"))

        assert response.status_code == 200
        assert response.json() == {"ok": True, "service": "agent-watch", "version": "0.1.0"}

    def test_body_keys_are_sorted(self, responder):
        body = responder.respond(_get("/health")).body.decode("utf-8")

        assert body.index('"ok"') < body.index('"service"') < body.index('"version"')


class TestStatus:
    def test_status_combines_store_and_permissions(self, responder, store, make_record):
        store.insert(make_record("status check", offset_seconds=0))

        response = responder.respond(_get("/status"))

        assert response.status_code == 200
        payload = response.json()
        assert payload["record_count"] == 1
        assert payload["last_capture_at"] == "2024-03-01T12:00:00.000000+00:00"
        assert payload["database_bytes"] > 0
        assert payload["accessibility_granted"] is True
        assert payload["screen_recording_granted"] is False

    def test_store_failure_is_internal_error(self):
        responder = APIResponder(
            SpyStore(),
            permissions=lambda: PermissionSnapshot(),
            screen_probe=lambda: ScreenRecordingProbe(),
        )

        response = responder.respond(_get("/status"))

        assert response.status_code == 500
        assert response.json() == {"error": "internal_error", "message": "database is locked"}


class TestSearch:
    @pytest.fixture
    def spy(self):
        return SpyStore()

    @pytest.fixture
    def spy_responder(self, spy):
        return APIResponder(spy, permissions=lambda: PermissionSnapshot(), screen_probe=lambda: ScreenRecordingProbe())

    def test_missing_query_is_client_error(self, responder):
        response = responder.respond(_get("/search"))

        assert response.status_code == 400
        assert response.json()["error"] == "missing_query"

    def test_empty_query_is_client_error(self, responder):
        response = responder.respond(_get("/search", q=""))

        assert response.status_code == 400
        assert response.json()["error"] == "missing_query"

    @pytest.mark.parametrize(
        "raw, expected",
        [("0", 1), ("1", 1), ("500", 200), ("200", 200), ("-7", 1), ("abc", 20), ("", 20)],
    )
    def test_limit_is_clamped(self, spy, spy_responder, raw, expected):
        spy_responder.respond(_get("/search", q="x", limit=raw))

        assert spy.calls[-1]["limit"] == expected

    def test_absent_limit_defaults_to_20(self, spy, spy_responder):
        spy_responder.respond(_get("/search", q="x"))

        assert spy.calls[-1]["limit"] == 20

    def test_resolve_limit(self):
        assert resolve_limit(None) == 20
        assert resolve_limit(" 50 ") == 50

    def test_app_filter_is_forwarded(self, spy, spy_responder):
        spy_responder.respond(_get("/search", q="x", app="Safari"))

        assert spy.calls[-1]["app_name"] == "Safari"

    def test_blank_app_filter_is_ignored(self, spy, spy_responder):
        spy_responder.respond(_get("/search", q="x", app=""))

        assert spy.calls[-1]["app_name"] is None

    def test_invoice_scenario(self, responder, store, make_record):
        stored = store.insert(make_record("invoice number 4832", app_name="Mail"))
        store.insert(make_record("unrelated text", app_name="Notes"))

        response = responder.respond(_get("/search", q="invoice"))

        assert response.status_code == 200
        payload = response.json()
        assert payload["query"] == "invoice"
        assert payload["count"] == 1
        result = payload["results"][0]
        assert result["id"] == stored.id
        assert result["app_name"] == "Mail"
        assert result["source"] == "accessibility"
        assert result["trigger"] == "manual"
        assert "[invoice]" in result["snippet"]
        assert result["timestamp"] == "2024-03-01T12:00:00.000000+00:00"

    def test_malformed_fts_query_is_internal_error(self, responder):
        response = responder.respond(_get("/search", q='"open'))

        assert response.status_code == 500
        assert response.json()["error"] == "internal_error"


class TestScreenRecordingProbe:
    def test_probe_payload(self, responder):
        response = responder.respond(_get("/screen-recording/probe"))

        assert response.status_code == 200
        assert response.json() == {
            "granted": True,
            "width": 1920,
            "height": 1080,
            "byte_count": 6220800,
            "sample_hash": "ab" * 32,
        }

    def test_probe_failure_is_internal_error(self, store):
        def broken_probe():
            raise RuntimeError("capture service crashed")

        responder = APIResponder(store, permissions=lambda: PermissionSnapshot(), screen_probe=broken_probe)

        response = responder.respond(_get("/screen-recording/probe"))

        assert response.status_code == 500
        assert response.json()["message"] == "capture service crashed"
