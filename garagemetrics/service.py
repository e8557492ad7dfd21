"""The metrics service: collect expvar data and republish it."""

from __future__ import annotations

import argparse
import logging
import os
import re
import signal
import sys
import threading
from contextlib import ExitStack
from dataclasses import dataclass, field, fields
from typing import Any

from garagemetrics.collector import ExpvarCollector
from garagemetrics.expvarsrv import ExpvarServer
from garagemetrics.prometheus import Exporter
from garagemetrics.publisher import Publish, Stdout

BUILD = "develop"
DESC = "copyright information here"
ENV_PREFIX = "METRICS"

_LOG = logging.getLogger(__name__)

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "\u00b5s": 1e-6,
    "\u03bcs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_PART = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|\u00b5s|\u03bcs|ms|s|m|h)"
_DURATION = re.compile(rf"([+-]?)((?:{_PART})+)")


class ConfigError(Exception):
    """Raised when the configuration cannot be parsed."""


def _duration_field(default: float) -> Any:
    return field(default=default, metadata={"duration": True})


@dataclass
class Config:
    """Settings for the metrics service; durations are in seconds."""

    web_debug_host: str = "0.0.0.0:4010"
    expvar_host: str = "0.0.0.0:4000"
    expvar_route: str = "/metrics"
    expvar_read_timeout: float = _duration_field(5.0)
    expvar_write_timeout: float = _duration_field(10.0)
    expvar_idle_timeout: float = _duration_field(120.0)
    expvar_shutdown_timeout: float = _duration_field(5.0)
    prometheus_host: str = "0.0.0.0:4020"
    prometheus_route: str = "/metrics"
    prometheus_read_timeout: float = _duration_field(5.0)
    prometheus_write_timeout: float = _duration_field(10.0)
    prometheus_idle_timeout: float = _duration_field(120.0)
    prometheus_shutdown_timeout: float = _duration_field(5.0)
    collect_from: str = "http://localhost:3010/debug/vars"
    publish_to: str = "console"
    publish_interval: float = _duration_field(5.0)


def _parse_duration(text: str) -> float:
    """Parse a duration such as 5s, 1m30s or 250ms into seconds."""
    if text in ("0", "+0", "-0"):
        return 0.0
    match = _DURATION.fullmatch(text)
    if not match:
        raise argparse.ArgumentTypeError(f"invalid duration {text!r}")
    seconds = sum(
        float(number) * _UNITS[unit] for number, unit in re.findall(_PART, match.group(2))
    )
    return -seconds if match.group(1) == "-" else seconds


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> Any:
        raise ConfigError(message)


def _build_parser() -> _Parser:
    parser = _Parser(prog="metrics", description=DESC)
    parser.add_argument(
        "--version", action="version", version=f"Version: {BUILD}\n{DESC}"
    )
    for item in fields(Config):
        env_name = f"{ENV_PREFIX}_{item.name.upper()}"
        parse = _parse_duration if item.metadata.get("duration") else str
        parser.add_argument(
            "--" + item.name.replace("_", "-"),
            dest=item.name,
            type=parse,
            default=os.environ.get(env_name, item.default),
            help=f"default {item.default} (env {env_name})",
        )
    return parser


def parse_config(argv: list[str] | None = None) -> Config:
    """Build the configuration from defaults, environment and flags."""
    args = _build_parser().parse_args(argv)
    return Config(**vars(args))


def _describe(cfg: Config) -> str:
    return "\n".join(
        f"--{item.name.replace('_', '-')}={getattr(cfg, item.name)}" for item in fields(cfg)
    )


def run(cfg: Config) -> signal.Signals:
    """Run the service until SIGINT or SIGTERM; return the signal received."""
    _LOG.info("starting service version=%s", BUILD)
    _LOG.info("startup config=%s", _describe(cfg))

    stop = threading.Event()
    received: list[signal.Signals] = []

    def _on_signal(signum: int, _frame: Any) -> None:
        received.append(signal.Signals(signum))
        stop.set()

    previous = {
        sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        with ExitStack() as stack:
            prom = Exporter(
                cfg.prometheus_host,
                cfg.prometheus_route,
                cfg.prometheus_read_timeout,
                cfg.prometheus_write_timeout,
                cfg.prometheus_idle_timeout,
            )
            stack.callback(prom.stop, cfg.prometheus_shutdown_timeout)

            exp = ExpvarServer(
                cfg.expvar_host,
                cfg.expvar_route,
                cfg.expvar_read_timeout,
                cfg.expvar_write_timeout,
                cfg.expvar_idle_timeout,
            )
            stack.callback(exp.stop, cfg.expvar_shutdown_timeout)

            collector = ExpvarCollector(cfg.collect_from)
            stdout = Stdout()
            publish = Publish(
                collector, cfg.publish_interval, prom.publish, exp.publish, stdout.publish
            )
            stack.callback(publish.stop)

            while not stop.wait(0.2):
                pass
            _LOG.info("shutdown status=shutdown started signal=%s", received[0].name)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    _LOG.info("shutdown status=shutdown complete")
    return received[0]


def main(argv: list[str] | None = None) -> int:
    """Command entry point; returns the process exit status."""
    if not logging.getLogger().handlers:
        logging.basicConfig(
            stream=sys.stdout,
            level=logging.INFO,
            format="%(asctime)s %(levelname)s METRICS %(name)s: %(message)s",
        )
    try:
        cfg = parse_config(argv)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0
    except ConfigError as exc:
        _LOG.error("startup err=parsing config: %s", exc)
        return 1

    try:
        run(cfg)
    except Exception as exc:
        _LOG.error("startup err=%s", exc)
        return 1
    _LOG.info("shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())