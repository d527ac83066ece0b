"""Flask binding for the query API.

Serves the same ``APIResponder`` as the raw-socket listener behind a WSGI
server. Every path and method is routed to the responder so that its
405 and 404 handling applies unchanged.
"""

import logging

from flask import Flask, Response, request

from screentext.server.api import APIResponder
from screentext.server.protocol import HTTPRequest

logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(responder: APIResponder) -> Flask:
    app = Flask(__name__)
    app.config["RESPONDER"] = responder

    @app.route("/", defaults={"path": ""}, methods=ALL_METHODS, provide_automatic_options=False)
    @app.route("/<path:path>", methods=ALL_METHODS, provide_automatic_options=False)
    def dispatch(path):
        api_request = HTTPRequest(
            method=request.method.upper(),
            path=request.path,
            # Last value wins for repeated keys
            query={key: values[-1] for key, values in request.args.lists()},
        )
        api_response = app.config["RESPONDER"].respond(api_request)
        return Response(
            api_response.body,
            status=api_response.status_code,
            content_type=api_response.content_type,
        )

    return app
