"""Liveness endpoint for orchestration health checks."""

import logging
import threading
from typing import Callable

from flask import Flask
from werkzeug.serving import make_server

logger = logging.getLogger(__name__)

ALIVE_BODY = "Alive!"

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class HealthServerError(Exception):
    """The liveness endpoint could not be served."""


def create_health_app() -> Flask:
    app = Flask(__name__)

    @app.route("/", defaults={"path": ""}, methods=ALL_METHODS)
    @app.route("/<path:path>", methods=ALL_METHODS)
    def alive(path):
        return ALIVE_BODY, 200, {"Content-Type": "text/plain; charset=utf-8"}

    return app


class HealthServer:
    """Serves the liveness app on a background thread.

    Binding happens in ``start()`` so a taken port is reported to the caller.
    Errors after that go to ``on_error``.
    """

    def __init__(self, host: str, port: int, on_error: Callable[[Exception], None] | None = None):
        self._host = host
        self._port = port
        self._on_error = on_error
        self._server = None
        self._thread: threading.Thread | None = None
        self.server_address = None

    def start(self):
        app = create_health_app()
        try:
            self._server = make_server(self._host, self._port, app, threaded=True)
        except (OSError, SystemExit) as exc:
            # werkzeug reports bind failures by exiting.
            raise HealthServerError(f"could not start HTTP server on {self._host}:{self._port}") from exc

        self.server_address = (self._host, self._server.server_port)
        self._thread = threading.Thread(target=self._serve, name="health", daemon=True)
        self._thread.start()
        logger.info("Liveness endpoint listening on %s:%d", *self.server_address)

    def stop(self):
        if self._server is None:
            return
        self._server.shutdown()
        if self._thread:
            self._thread.join(timeout=5)
        self._server.server_close()
        self._server = None

    def _serve(self):
        try:
            self._server.serve_forever()
        except Exception as exc:
            logger.error("Liveness endpoint failed: %s", exc)
            if self._on_error is not None:
                self._on_error(HealthServerError(str(exc)))
