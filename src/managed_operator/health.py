"""Metrics and health check endpoints for the operator."""

from __future__ import annotations

import threading
from typing import Any, Callable

from prometheus_client import make_wsgi_app
from werkzeug.serving import make_server
from werkzeug.wrappers import Response


def create_combined_wsgi_app(ready: Callable[[], bool] | None = None) -> Any:
    """Create a WSGI app that combines metrics and health check endpoints.

    Args:
        ready: Optional callable reporting readiness; ``/readyz`` answers 503
            while it returns False

    Returns:
        Combined WSGI application
    """
    metrics_app = make_wsgi_app()

    def combined_app(environ: dict[str, Any], start_response: Any) -> Any:
        """Route /healthz and /readyz, delegate everything else to prometheus."""
        path = environ.get("PATH_INFO", "")

        if path == "/healthz":
            response = Response('{"status":"ok"}', mimetype="application/json", status=200)
            return response(environ, start_response)
        if path == "/readyz":
            if ready is not None and not ready():
                response = Response(
                    '{"status":"not ready"}', mimetype="application/json", status=503
                )
            else:
                response = Response('{"status":"ready"}', mimetype="application/json", status=200)
            return response(environ, start_response)
        return metrics_app(environ, start_response)

    return combined_app


def start_metrics_server(port: int, ready: Callable[[], bool] | None = None) -> Any:
    """Serve metrics and health endpoints from a background thread.

    Args:
        port: Port to listen on
        ready: Optional readiness callable passed to the combined app

    Returns:
        The werkzeug server, so callers can shut it down
    """
    server = make_server("", port, create_combined_wsgi_app(ready), threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server
