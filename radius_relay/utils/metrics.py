from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from prometheus_client import REGISTRY, Counter, Gauge, Histogram

NAMESPACE = "radius_relay"


def _fullname(name: str, namespace: str | None) -> str:
    return f"{namespace}_{name}" if namespace else name


def _get_existing(fullname: str) -> Any | None:
    # Re-importing a module (tests, reloads) must not register collectors twice
    reg = getattr(REGISTRY, "_names_to_collectors", {})
    if isinstance(reg, dict):
        return reg.get(fullname)
    return None


def safe_counter(
    name: str,
    documentation: str,
    labelnames: list[str] | None = None,
    namespace: str | None = None,
):
    existing = _get_existing(_fullname(name, namespace))
    if existing is not None:
        return existing
    return Counter(name, documentation, labelnames or [], namespace=namespace or "")


def safe_histogram(
    name: str,
    documentation: str,
    buckets: list[float] | None = None,
    namespace: str | None = None,
):
    existing = _get_existing(_fullname(name, namespace))
    if existing is not None:
        return existing
    bks: Sequence[float | str] = tuple(buckets) if buckets else Histogram.DEFAULT_BUCKETS
    return Histogram(name, documentation, buckets=bks, namespace=namespace or "")


def safe_gauge(name: str, documentation: str, namespace: str | None = None):
    existing = _get_existing(_fullname(name, namespace))
    if existing is not None:
        return existing
    return Gauge(name, documentation, namespace=namespace or "")


relay_datagrams_total = safe_counter(
    "datagrams_total",
    "Datagrams received by the relay",
    ["direction"],
    namespace=NAMESPACE,
)
relay_forwarded_total = safe_counter(
    "forwarded_total",
    "Datagrams forwarded by the relay",
    ["direction"],
    namespace=NAMESPACE,
)
relay_drops_total = safe_counter(
    "drops_total",
    "Datagrams dropped by the relay",
    ["reason"],
    namespace=NAMESPACE,
)
relay_endpoints = safe_gauge(
    "endpoints",
    "Live client endpoints held by the relay",
    namespace=NAMESPACE,
)
relay_handle_seconds = safe_histogram(
    "handle_seconds",
    "Time spent handling one datagram in the central loop",
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5],
    namespace=NAMESPACE,
)
