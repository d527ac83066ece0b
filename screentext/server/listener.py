"""Raw-socket listener for the query API.

Each accepted connection carries exactly one request: read up to the end
of the request line, answer, close. No keep-alive and no pipelining.
"""

import logging
import socket
import socketserver
from typing import Tuple

from screentext.server.api import APIResponder
from screentext.server.protocol import error_response, parse_request

logger = logging.getLogger(__name__)

MAX_REQUEST_BYTES = 65536
REQUEST_LINE_TERMINATOR = b"\r\n"
READ_TIMEOUT_SECONDS = 5.0


class _RequestHandler(socketserver.BaseRequestHandler):
    server: "APIServer"

    def setup(self):
        self.request.settimeout(READ_TIMEOUT_SECONDS)

    def _read_head(self) -> bytes:
        # Only the request line is parsed; headers that arrive with it are ignored
        data = b""
        while len(data) < MAX_REQUEST_BYTES:
            try:
                chunk = self.request.recv(4096)
            except socket.timeout:
                logger.debug(f"Read from {self.client_address} timed out")
                break
            if not chunk:
                break
            data += chunk
            if REQUEST_LINE_TERMINATOR in data:
                break
        return data[:MAX_REQUEST_BYTES]

    def handle(self):
        try:
            data = self._read_head()
        except OSError as e:
            logger.debug(f"Read from {self.client_address} failed: {e}")
            return

        request = parse_request(data)
        if request is None:
            response = error_response(400, "bad_request", "Malformed HTTP request.")
        else:
            response = self.server.responder.respond(request)
            logger.debug(f"{request.method} {request.path} -> {response.status_code}")

        try:
            self.request.sendall(response.serialized())
        except OSError as e:
            logger.debug(f"Write to {self.client_address} failed: {e}")


class APIServer(socketserver.ThreadingTCPServer):
    """Threaded TCP listener answering one request per connection."""

    allow_reuse_address = True
    daemon_threads = True
    request_queue_size = 64

    def __init__(self, address: Tuple[str, int], responder: APIResponder):
        self.responder = responder
        super().__init__(address, _RequestHandler)

    @property
    def port(self) -> int:
        return self.server_address[1]
