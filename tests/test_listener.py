"""End-to-end tests for the raw-socket APIServer."""

import socket
import threading

import pytest
import requests

from screentext.server import listener
from screentext.server.api import APIResponder
from screentext.server.listener import APIServer
from screentext.shared.models import PermissionSnapshot, ScreenRecordingProbe


def _read_until_close(conn: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = conn.recv(4096)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


def _raw_exchange(port: int, payload: bytes) -> bytes:
    with socket.create_connection(("127.0.0.1", port), timeout=5) as conn:
        conn.sendall(payload)
        return _read_until_close(conn)


@pytest.fixture
def server(store):
    responder = APIResponder(
        store,
        permissions=lambda: PermissionSnapshot(),
        screen_probe=lambda: ScreenRecordingProbe(),
    )
    api_server = APIServer(("127.0.0.1", 0), responder)
    thread = threading.Thread(target=api_server.serve_forever, daemon=True)
    thread.start()
    yield api_server
    api_server.shutdown()
    api_server.server_close()
    thread.join(timeout=5)


@pytest.fixture
def base_url(server):
    return f"http://127.0.0.1:{server.port}"


class TestAPIServer:
    def test_server_settings(self, server):
        assert server.request_queue_size == 64
        assert server.daemon_threads is True
        assert server.allow_reuse_address is True

    def test_health_over_http(self, base_url):
        response = requests.get(f"{base_url}/health", timeout=5)

        assert response.status_code == 200
        assert response.headers["Content-Type"] == "application/json; charset=utf-8"
        assert response.headers["Connection"] == "close"
        assert response.json()["ok"] is True

    def test_search_over_http(self, base_url, store, make_record):
        store.insert(make_record("invoice number 4832", app_name="Mail"))

        response = requests.get(f"{base_url}/search", params={"q": "invoice"}, timeout=5)

        payload = response.json()
        assert payload["count"] == 1
        assert payload["results"][0]["app_name"] == "Mail"

    def test_missing_query_over_http(self, base_url):
        response = requests.get(f"{base_url}/search", timeout=5)

        assert response.status_code == 400
        assert response.json()["error"] == "missing_query"

    def test_post_is_method_not_allowed(self, base_url):
        response = requests.post(f"{base_url}/health", timeout=5)

        assert response.status_code == 405

    def test_malformed_request_line_is_bad_request(self, server):
        raw = _raw_exchange(server.port, b"GARBAGE\r\n\r\n")

        head, body = raw.split(b"\r\n\r\n", 1)
        assert head.startswith(b"HTTP/1.1 400 Bad Request")
        assert body == b'{"error": "bad_request", "message": "Malformed HTTP request."}'

    def test_request_line_alone_gets_answer(self, server):
        with socket.create_connection(("127.0.0.1", server.port), timeout=3) as conn:
            conn.sendall(b"GET /health HTTP/1.1\r\n")
            raw = _read_until_close(conn)

        assert raw.startswith(b"HTTP/1.1 200 OK")

    def test_silent_client_times_out_with_bad_request(self, server, monkeypatch):
        monkeypatch.setattr(listener, "READ_TIMEOUT_SECONDS", 0.2)

        with socket.create_connection(("127.0.0.1", server.port), timeout=3) as conn:
            raw = _read_until_close(conn)

        assert raw.startswith(b"HTTP/1.1 400 Bad Request")

    def test_one_request_per_connection(self, server):
        raw = _raw_exchange(
            server.port,
            b"GET /health HTTP/1.1\r\n\r\nGET /status HTTP/1.1\r\n\r\n",
        )

        assert raw.count(b"HTTP/1.1 ") == 1
        assert b'"ok": true' in raw

    def test_concurrent_clients(self, base_url):
        results = []
        lock = threading.Lock()

        def fetch():
            status = requests.get(f"{base_url}/health", timeout=5).status_code
            with lock:
                results.append(status)

        threads = [threading.Thread(target=fetch) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert results == [200] * 10
