"""Publish numeric metrics to a Datadog series endpoint."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Any

_LOG = logging.getLogger(__name__)

_HTML_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


class DatadogError(Exception):
    """Raised when Datadog does not accept the metrics."""


def _json_number(value: int | float) -> int | float:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return int(value)
    return value


def marshal_datadog(data: dict[str, Any]) -> bytes:
    """Build the Datadog series document for every numeric value in data."""
    host = data.get("host")
    if not isinstance(host, str):
        host = "unknown"
    env = "dev" if host == "localhost" else "prod"
    env_tag = f"environment:{env}"

    series = [
        {
            "metric": f"{env}.{key}",
            "points": [["$currenttime", _json_number(value)]],
            "type": "gauge",
            "host": host,
            "tags": [env_tag],
        }
        for key, value in data.items()
        if isinstance(value, (int, float)) and not isinstance(value, bool)
    ]

    text = json.dumps(
        {"series": series or None},
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    for char, escape in _HTML_ESCAPES:
        text = text.replace(char, escape)
    return text.encode()


class Datadog:
    """Sends metric documents to Datadog."""

    def __init__(
        self,
        api_key: str,
        host: str,
        timeout: float = 1.0,
        *,
        log: logging.Logger | None = None,
    ) -> None:
        self.api_key = api_key
        self.host = host
        self.timeout = timeout
        self._log = log or _LOG

    def _send(self, document: bytes) -> None:
        url = f"{self.host}?api_key={self.api_key}"
        request = urllib.request.Request(
            url,
            data=document,
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                status = response.status
                response.read()
        except urllib.error.HTTPError as exc:
            with exc:
                exc.read()
            raise DatadogError(f"status[{exc.code}]") from exc
        if status != 202:
            raise DatadogError(f"status[{status}]")

    def publish(self, data: dict[str, Any]) -> None:
        """Convert and send the metrics, logging any failure."""
        try:
            document = marshal_datadog(data)
            self._send(document)
        except (ValueError, OSError, DatadogError) as exc:
            self._log.error("datadog.publish : %s", exc)
            return
        self._log.info("datadog.publish : published : %s", document.decode())