"""In-process telemetry for the knowledge pipeline.

Counters, gauges and timing summaries, keyed by metric name plus optional
tags. Each ``RuntimeState`` owns one sink.
"""

from __future__ import annotations

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, replace
from threading import Lock
from typing import Any, Iterator

Tags = tuple[tuple[str, str], ...]
MetricKey = tuple[str, Tags]


@dataclass
class TimingSummary:
    """Running summary of observed durations in milliseconds."""
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def add(self, value_ms: float) -> None:
        self.count += 1
        self.total_ms += value_ms
        self.max_ms = max(self.max_ms, value_ms)

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def to_dict(self) -> dict[str, float]:
        return {"count": self.count, "avg_ms": round(self.avg_ms, 2), "max_ms": round(self.max_ms, 2)}


class MetricsSink:
    """Thread-safe counters, gauges and timings."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[MetricKey, int] = defaultdict(int)
        self._gauges: dict[MetricKey, float] = {}
        self._timings: dict[MetricKey, TimingSummary] = defaultdict(TimingSummary)

    def incr(self, name: str, count: int = 1, tags: dict[str, Any] | None = None) -> None:
        with self._lock:
            self._counters[_key(name, tags)] += count

    def set_gauge(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        with self._lock:
            self._gauges[_key(name, tags)] = value

    def observe(self, name: str, value_ms: float, tags: dict[str, Any] | None = None) -> None:
        """Record one duration sample."""
        with self._lock:
            self._timings[_key(name, tags)].add(value_ms)

    @contextmanager
    def timer(self, name: str, tags: dict[str, Any] | None = None) -> Iterator[None]:
        """Time the enclosed block, failures included."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, (time.perf_counter() - start) * 1000, tags)

    def counter(self, name: str, tags: dict[str, Any] | None = None) -> int:
        with self._lock:
            return self._counters.get(_key(name, tags), 0)

    def gauge(self, name: str, tags: dict[str, Any] | None = None) -> float | None:
        with self._lock:
            return self._gauges.get(_key(name, tags))

    def timing(self, name: str, tags: dict[str, Any] | None = None) -> TimingSummary:
        """Copy of the summary for ``name`` (empty if never observed)."""
        with self._lock:
            summary = self._timings.get(_key(name, tags))
            return replace(summary) if summary else TimingSummary()

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": {_render(k): v for k, v in self._counters.items()},
                "gauges": {_render(k): v for k, v in self._gauges.items()},
                "timings": {_render(k): t.to_dict() for k, t in self._timings.items()},
            }


def _key(name: str, tags: dict[str, Any] | None) -> MetricKey:
    if not tags:
        return (name, ())
    return (name, tuple(sorted((str(k), str(v)) for k, v in tags.items())))


def _render(key: MetricKey) -> str:
    name, tags = key
    if not tags:
        return name
    return name + "|" + ",".join(f"{k}={v}" for k, v in tags)
