"""Relay statistics and Prometheus metrics"""

import threading
import time
from typing import Any

from radius_relay.utils import metrics

from .session import Direction

DROP_REASONS = (
    "no_endpoint",
    "decode_failed",
    "denied",
    "interceptor_error",
    "encode_failed",
    "send_failed",
)


def _initial_stats() -> dict[str, int]:
    stats = {
        "datagrams_upstream": 0,
        "datagrams_downstream": 0,
        "forwarded_upstream": 0,
        "forwarded_downstream": 0,
        "endpoints_created": 0,
        "endpoints_evicted": 0,
        "endpoints_active": 0,
    }
    for reason in DROP_REASONS:
        stats[f"dropped_{reason}"] = 0
    return stats


class RelayStats:
    """Counters written by the central loop and readable from any thread."""

    def __init__(self):
        self._stats_lock = threading.Lock()
        self.stats = _initial_stats()
        self.start_time = time.time()

    def _inc(self, key: str, amount: int = 1) -> None:
        with self._stats_lock:
            self.stats[key] = self.stats.get(key, 0) + amount

    def received(self, direction: Direction) -> None:
        self._inc(f"datagrams_{direction.value}")
        metrics.relay_datagrams_total.labels(direction=direction.value).inc()

    def forwarded(self, direction: Direction) -> None:
        self._inc(f"forwarded_{direction.value}")
        metrics.relay_forwarded_total.labels(direction=direction.value).inc()

    def dropped(self, reason: str) -> None:
        self._inc(f"dropped_{reason}")
        metrics.relay_drops_total.labels(reason=reason).inc()

    def endpoints_changed(self, active: int, created: int = 0, evicted: int = 0) -> None:
        with self._stats_lock:
            self.stats["endpoints_active"] = active
            self.stats["endpoints_created"] += created
            self.stats["endpoints_evicted"] += evicted
        metrics.relay_endpoints.set(active)

    def get_all(self) -> dict[str, Any]:
        with self._stats_lock:
            snapshot: dict[str, Any] = dict(self.stats)
        snapshot["dropped_total"] = sum(
            snapshot[f"dropped_{reason}"] for reason in DROP_REASONS
        )
        snapshot["uptime_seconds"] = round(time.time() - self.start_time, 3)
        return snapshot

    def reset(self) -> None:
        with self._stats_lock:
            active = self.stats["endpoints_active"]
            self.stats = _initial_stats()
            self.stats["endpoints_active"] = active
