"""Metrics collection and republishing, JSON log formatting, Datadog encoding and RSA key generation."""

__version__ = "0.1.0"
__all__ = [
    "collector",
    "datadog",
    "expvarsrv",
    "genkey",
    "logfmt",
    "prometheus",
    "publisher",
    "service",
]