"""Serve the latest raw metrics document as JSON."""

from __future__ import annotations

import logging
import threading
from http.server import BaseHTTPRequestHandler
from typing import Any
from urllib.parse import urlsplit

from garagemetrics.prometheus import _Server, _Server6, _split_hostport
from garagemetrics.publisher import _encode

CONTENT_TYPE = "application/json"

_LOG = logging.getLogger(__name__)


class ExpvarServer:
    """HTTP endpoint that hands out the last published metrics unchanged."""

    def __init__(
        self,
        host: str,
        route: str = "/metrics",
        read_timeout: float = 5.0,
        write_timeout: float = 10.0,
        idle_timeout: float = 120.0,
        *,
        log: logging.Logger | None = None,
    ) -> None:
        self._log = log or _LOG
        self._route = route
        self._data: dict[str, Any] | None = None
        self._lock = threading.Lock()
        self._stopped = False
        owner = self

        class _Handler(BaseHTTPRequestHandler):
            protocol_version = "HTTP/1.1"
            timeout = read_timeout or None

            def _serve(self) -> None:
                owner._handle(self, write_timeout, idle_timeout)

            do_GET = do_POST = do_PUT = do_DELETE = do_HEAD = _serve

            def log_message(self, fmt: str, *args: Any) -> None:
                owner._log.debug(fmt, *args)

        bind_host, port = _split_hostport(host)
        server_cls = _Server6 if ":" in bind_host else _Server
        self._server = server_cls((bind_host, port), _Handler)
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="expvar", daemon=True
        )
        self._thread.start()
        self._log.info("expvar status=API listening host=%s", host)

    @property
    def address(self) -> tuple[str, int]:
        """The bound (host, port) of the server."""
        host, port = self._server.server_address[:2]
        return host, port

    def _matches(self, path: str) -> bool:
        if self._route.endswith("/"):
            return path.startswith(self._route)
        return path == self._route

    def _handle(
        self, request: BaseHTTPRequestHandler, write_timeout: float, idle_timeout: float
    ) -> None:
        path = urlsplit(request.path).path
        if self._matches(path):
            with self._lock:
                data = self._data
            try:
                body = (_encode(data) + "\n").encode()
            except (TypeError, ValueError) as exc:
                self._log.error("expvar status=encoding data err=%s", exc)
                body = b""
            status, content_type = 200, CONTENT_TYPE
        else:
            status, content_type = 404, "text/plain; charset=utf-8"
            body = b"404 page not found\n"

        if write_timeout:
            request.connection.settimeout(write_timeout)
        request.send_response(status)
        request.send_header("Content-Type", content_type)
        request.send_header("Content-Length", str(len(body)))
        request.end_headers()
        if request.command != "HEAD":
            request.wfile.write(body)
        if idle_timeout:
            request.connection.settimeout(idle_timeout)

        if status == 200:
            self._log.info(
                "expvar metrics=(%d) : %s %s -> %s",
                status,
                request.command,
                path,
                request.client_address[0],
            )

    def publish(self, data: dict[str, Any]) -> None:
        """Keep the data to serve on the next request."""
        with self._lock:
            self._data = data

    def stop(self, shutdown_timeout: float = 5.0) -> None:
        """Shut the server down, forcing it closed after the timeout."""
        if self._stopped:
            return
        self._stopped = True
        self._log.info("expvar status=start shutdown...")
        stopper = threading.Thread(target=self._server.shutdown, daemon=True)
        stopper.start()
        stopper.join(shutdown_timeout)
        if stopper.is_alive():
            self._log.error(
                "expvar status=graceful shutdown did not complete shutdownTimeout=%s",
                shutdown_timeout,
            )
        try:
            self._server.server_close()
        except OSError as exc:
            self._log.error("expvar status=could not stop http server err=%s", exc)
        self._log.info("expvar: Completed")

    def __enter__(self) -> "ExpvarServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()