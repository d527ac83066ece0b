"""Minimal HTTP/1.1 framing for the query API.

One request per connection: a request line with an optional query string
in, a status line, three headers and a body out. Nothing else of HTTP is
supported.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel

from screentext.shared.utils import format_timestamp

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


@dataclass
class HTTPRequest:
    method: str
    path: str
    query: Dict[str, str] = field(default_factory=dict)


@dataclass
class HTTPResponse:
    status_code: int
    reason_phrase: str
    body: bytes
    content_type: str = JSON_CONTENT_TYPE

    def serialized(self) -> bytes:
        head = (
            f"HTTP/1.1 {self.status_code} {self.reason_phrase}\r\n"
            f"Content-Type: {self.content_type}\r\n"
            f"Content-Length: {len(self.body)}\r\n"
            "Connection: close\r\n"
            "\r\n"
        )
        return head.encode("utf-8") + self.body

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))


def parse_request(data: bytes) -> Optional[HTTPRequest]:
    """Parse the request line of ``data``; None when it is not one.

    Repeated query keys keep their last value and blank values are kept.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return None

    request_line = text.split("\r\n", 1)[0]
    parts = request_line.split(" ")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None

    method = parts[0].upper()
    target = urlsplit(parts[1])
    query = dict(parse_qsl(target.query, keep_blank_values=True))
    return HTTPRequest(method=method, path=target.path or "/", query=query)


def _encode_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_body(payload: Any) -> bytes:
    """Encode ``payload`` with sorted keys; datetimes become ISO-8601 UTC."""
    return json.dumps(payload, sort_keys=True, default=_encode_default).encode("utf-8")


def json_response(status_code: int, payload: Any) -> HTTPResponse:
    return HTTPResponse(
        status_code=status_code,
        reason_phrase=HTTPStatus(status_code).phrase,
        body=json_body(payload),
    )


def error_response(status_code: int, error: str, message: str) -> HTTPResponse:
    return json_response(status_code, {"error": error, "message": message})
