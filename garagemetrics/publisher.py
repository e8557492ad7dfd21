"""Collect metrics on an interval and hand them to publishers."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Protocol

TYPE_STDOUT = "stdout"
TYPE_DATADOG = "datadog"

_LOG = logging.getLogger(__name__)

Publisher = Callable[[dict[str, Any]], None]


class Collector(Protocol):
    """Anything that can produce a metrics document."""

    def collect(self) -> dict[str, Any]: ...


def _encode(data: Any) -> str:
    """Compact JSON with sorted keys and HTML-safe escaping."""
    text = json.dumps(
        data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False
    )
    for char, escape in (
        ("<", "\\u003c"),
        (">", "\\u003e"),
        ("&", "\\u0026"),
        ("\u2028", "\\u2028"),
        ("\u2029", "\\u2029"),
    ):
        text = text.replace(char, escape)
    return text


class Publish:
    """Runs a background thread that collects and publishes metrics."""

    def __init__(
        self,
        collector: Collector,
        interval: float,
        *publishers: Publisher,
        log: logging.Logger | None = None,
    ) -> None:
        self._log = log or _LOG
        self._collector = collector
        self._publishers = list(publishers)
        self._interval = interval
        self._shutdown = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="publisher", daemon=True)
        self._thread.start()

    def _loop(self) -> None:
        while not self._shutdown.wait(self._interval):
            self._update()

    def _update(self) -> None:
        try:
            data = self._collector.collect()
        except Exception as exc:
            self._log.error("publish status=collect data err=%s", exc)
            return
        for publisher in self._publishers:
            publisher(data)

    def stop(self) -> None:
        """Stop the collecting thread and wait for it to finish."""
        self._shutdown.set()
        self._thread.join()

    def __enter__(self) -> "Publish":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


class Stdout:
    """Publishes a trimmed metrics document to the log."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or _LOG

    def publish(self, data: dict[str, Any]) -> str | None:
        """Log the metrics with the heap size lifted out; return what was logged."""
        try:
            document = json.loads(_encode(data))
        except TypeError as exc:
            self._log.error("stdout status=marshal data err=%s", exc)
            return None
        except ValueError as exc:
            self._log.error("stdout status=unmarshal data err=%s", exc)
            return None

        memstats = document.get("memstats")
        if isinstance(memstats, dict):
            document["heap"] = memstats.get("Alloc")

        document.pop("memstats", None)
        document.pop("cmdline", None)

        out = _encode(document)
        self._log.info("stdout data=%s", out)
        return out