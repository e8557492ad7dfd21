"""Turn structured JSON log lines into a compact, readable form."""

from __future__ import annotations

import argparse
import json
import math
import signal
import sys
from decimal import Decimal
from typing import Any, Iterable, Iterator

DEFAULT_TRACE_ID = "00000000-0000-0000-0000-000000000000"

_HEADER_KEYS = ("service", "time", "file", "level", "trace_id", "msg")


def _format_float(value: float) -> str:
    """Format a float the way a %v verb renders a 64-bit float."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"

    sign, digit_tuple, exponent = Decimal(repr(value)).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    count = len(digits)
    point = count + exponent
    exp = point - 1
    prefix = "-" if sign else ""

    if exp < -4 or exp >= 6:
        mantissa = digits[0] + ("." + digits[1:] if count > 1 else "")
        return f"{prefix}{mantissa}e{'+' if exp >= 0 else '-'}{abs(exp):02d}"
    if point <= 0:
        return f"{prefix}0.{'0' * -point}{digits}"
    if point >= count:
        return f"{prefix}{digits}{'0' * (point - count)}"
    return f"{prefix}{digits[:point]}.{digits[point:]}"


def _format_value(value: Any) -> str:
    """Render a decoded JSON value like the %v verb."""
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return _format_float(float(value))
    if isinstance(value, dict):
        inner = " ".join(f"{k}:{_format_value(v)}" for k, v in sorted(value.items()))
        return f"map[{inner}]"
    if isinstance(value, list):
        return "[" + " ".join(_format_value(v) for v in value) + "]"
    return str(value)


def _format_string(value: Any) -> str:
    """Render a decoded JSON value like the %s verb."""
    if value is None:
        return "%!s(<nil>)"
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return f"%!s(bool={_format_value(value)})"
    if isinstance(value, (int, float)):
        return f"%!s(float64={_format_value(value)})"
    return _format_value(value)


def format_line(line: str, service: str = "") -> str | None:
    """Reformat one log line; return None when the line is filtered out."""
    service = service.lower()

    try:
        record = json.loads(line, parse_int=float)
    except ValueError:
        record = None
    if not isinstance(record, dict):
        return None if service else line

    if service:
        name = record.get("service")
        if not isinstance(name, str) or name.lower() != service:
            return None

    trace_id = DEFAULT_TRACE_ID
    if "trace_id" in record:
        trace_id = _format_value(record["trace_id"])

    parts = [
        _format_string(record.get("service")),
        _format_string(record.get("time")),
        _format_string(record.get("file")),
        _format_string(record.get("level")),
        trace_id,
        _format_string(record.get("msg")),
    ]
    parts.extend(
        f"{key}[{_format_value(value)}]"
        for key, value in record.items()
        if key not in _HEADER_KEYS
    )
    return ": ".join(parts)


def _format_stream(lines: Iterable[str], service: str) -> Iterator[str]:
    for raw in lines:
        line = raw[:-1] if raw.endswith("\n") else raw
        if line.endswith("\r"):
            line = line[:-1]
        out = format_line(line, service)
        if out is not None:
            yield out


def main(argv: list[str] | None = None) -> int:
    """Read log lines from stdin and print them in readable form."""
    parser = argparse.ArgumentParser(
        prog="logfmt", description="Make structured log output readable."
    )
    parser.add_argument(
        "-service", "--service", default="", help="filter which service to see"
    )
    args = parser.parse_args(argv)

    try:
        previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    except ValueError:
        previous = None

    try:
        for out in _format_stream(sys.stdin, args.service):
            print(out)
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)
    return 0


if __name__ == "__main__":
    sys.exit(main())