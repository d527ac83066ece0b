"""ScreenText query server entry point.

Launch with: python -m screentext.server

Serves the read-only query API over the record store written by the
capture daemon. ``SCREENTEXT_SERVER_BACKEND`` picks the listener:
``socket`` (built-in HTTP/1.1 framing) or ``flask`` (WSGI).
"""

import signal
import sys
import threading

from screentext.shared.config import settings
from screentext.shared.logging_config import configure_logging

logger = configure_logging("screentext.server")

from screentext.server.api import APIResponder
from screentext.server.database import SQLStore
from screentext.server.listener import APIServer
from screentext.shared.errors import InitializationError


def _serve_socket(responder: APIResponder) -> None:
    server = APIServer((settings.host, settings.port), responder)

    def shutdown_handler(signum, frame):
        logger.info("Received shutdown signal, stopping server...")
        # shutdown() must not run on the serve_forever thread
        threading.Thread(target=server.shutdown, daemon=True).start()

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    try:
        server.serve_forever()
    finally:
        server.server_close()
        logger.info("Server shutdown complete")


def _serve_flask(responder: APIResponder) -> None:
    from screentext.server.app import create_app

    app = create_app(responder)
    try:
        app.run(
            host=settings.host,
            port=settings.port,
            debug=settings.debug,
            use_reloader=False,
            threaded=True,
        )
    except KeyboardInterrupt:
        pass
    logger.info("Server shutdown complete")


def main():
    """Start the ScreenText query server."""
    logger.info("=" * 50)
    logger.info("ScreenText Query Server Starting")
    logger.info("=" * 50)
    logger.info(f"Debug mode: {'ON' if settings.debug else 'OFF'}")
    logger.info(f"Data folder: {settings.data_dir}")
    logger.info(f"Database: {settings.db_path}")
    logger.info(f"Bind: {settings.host}:{settings.port}")
    logger.info(f"Backend: {settings.server_backend}")
    logger.info("=" * 50)

    try:
        store = SQLStore(settings.db_path)
    except InitializationError as e:
        logger.error(f"Cannot open record store: {e}")
        sys.exit(1)

    responder = APIResponder(store)
    if settings.server_backend == "flask":
        _serve_flask(responder)
    else:
        _serve_socket(responder)


if __name__ == "__main__":
    main()
