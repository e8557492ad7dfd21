"""Collect metrics from a service's expvar endpoint."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Any


class CollectError(Exception):
    """Raised when metrics could not be collected."""


class ExpvarCollector:
    """Fetches the expvar JSON document from a host."""

    def __init__(self, host: str, timeout: float = 1.0) -> None:
        self.host = host
        self.timeout = timeout

    def collect(self) -> dict[str, Any]:
        """Fetch the metrics document and return it as a dict."""
        request = urllib.request.Request(self.host, method="GET")
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                status = response.status
                body = response.read()
        except urllib.error.HTTPError as exc:
            with exc:
                message = exc.read().decode("utf-8", "replace")
            raise CollectError(message) from exc
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise CollectError(str(exc)) from exc

        if status != 200:
            raise CollectError(body.decode("utf-8", "replace"))

        try:
            data = json.loads(body)
        except ValueError as exc:
            raise CollectError(f"decoding metrics: {exc}") from exc
        if not isinstance(data, dict):
            raise CollectError("decoding metrics: expected a JSON object")
        return data