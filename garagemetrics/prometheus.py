"""Serve collected metrics in the Prometheus text format."""

from __future__ import annotations

import logging
import math
import socket
import socketserver
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import urlsplit

CONTENT_TYPE = "text/plain; version=0.0.4"

_LOG = logging.getLogger(__name__)


def deep_copy_map(source: dict[str, Any] | None) -> dict[str, Any]:
    """Copy numeric and nested values as floats; drop everything else."""
    result: dict[str, Any] = {}
    for key, value in (source or {}).items():
        if isinstance(value, dict):
            result[key] = deep_copy_map(value)
        elif isinstance(value, bool):
            result[key] = 1.0 if value else 0.0
        elif isinstance(value, (int, float)):
            result[key] = float(value)
    return result


def _format_number(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return f"{value:.0f}"


def render_metrics(data: dict[str, Any], prefix: str = "") -> str:
    """Render a copied metrics map as one "name value" line per metric."""
    if prefix:
        prefix += "_"
    lines = []
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            lines.append(render_metrics(value, name))
        elif isinstance(value, float):
            lines.append(f"{name} {_format_number(value)}\n")
    return "".join(lines)


def _split_hostport(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")
    return host.strip("[]"), int(port)


class _Server(ThreadingHTTPServer):
    daemon_threads = True

    def server_bind(self) -> None:
        socketserver.TCPServer.server_bind(self)
        host, port = self.server_address[:2]
        self.server_name = str(host)
        self.server_port = port


class _Server6(_Server):
    address_family = socket.AF_INET6


class Exporter:
    """HTTP endpoint exposing the latest published metrics."""

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
        self._data: dict[str, Any] = {}
        self._lock = threading.Lock()
        self._stopped = False
        exporter = self

        class _Handler(BaseHTTPRequestHandler):
            protocol_version = "HTTP/1.1"
            timeout = read_timeout or None

            def _serve(self) -> None:
                exporter._handle(self, write_timeout, idle_timeout)

            do_GET = do_POST = do_PUT = do_DELETE = do_HEAD = _serve

            def log_message(self, fmt: str, *args: Any) -> None:
                exporter._log.debug(fmt, *args)

        bind_host, port = _split_hostport(host)
        server_cls = _Server6 if ":" in bind_host else _Server
        self._server = server_cls((bind_host, port), _Handler)
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="prometheus", daemon=True
        )
        self._thread.start()
        self._log.info("prometheus status=API listening host=%s", host)

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
                data = deep_copy_map(self._data)
            status, content_type = 200, CONTENT_TYPE
            body = render_metrics(data).encode()
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
                "prometheus metrics=expvar : (%d) : %s %s -> %s",
                status,
                request.command,
                path,
                request.client_address[0],
            )

    def publish(self, data: dict[str, Any]) -> None:
        """Store a copy of the data for serving."""
        copied = deep_copy_map(data)
        with self._lock:
            self._data = copied

    def stop(self, shutdown_timeout: float = 5.0) -> None:
        """Shut the server down, forcing it closed after the timeout."""
        if self._stopped:
            return
        self._stopped = True
        self._log.info("prometheus status=start shutdown...")
        stopper = threading.Thread(target=self._server.shutdown, daemon=True)
        stopper.start()
        stopper.join(shutdown_timeout)
        if stopper.is_alive():
            self._log.error(
                "prometheus status=graceful shutdown did not complete shutdownTimeout=%s",
                shutdown_timeout,
            )
        try:
            self._server.server_close()
        except OSError as exc:
            self._log.error("prometheus status=could not stop http server err=%s", exc)
        self._log.info("prometheus: Completed")

    def __enter__(self) -> "Exporter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()