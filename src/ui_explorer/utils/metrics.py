"""
In-process counters and latency timings.

Explorers and the decision engine report here so a run can be
summarised without a metrics backend. Counter names in use:
``exploration_steps``, ``heuristic_decisions``, ``llm_calls`` and
``llm_fallbacks``; LLM round-trips are timed as ``llm_latency_ms``.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, ClassVar, Iterator


@dataclass
class TimingStats:
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def record(self, duration_ms: float) -> None:
        self.count += 1
        self.total_ms += duration_ms
        if duration_ms < self.min_ms:
            self.min_ms = duration_ms
        if duration_ms > self.max_ms:
            self.max_ms = duration_ms

    def to_dict(self) -> dict[str, float]:
        return {
            "count": self.count,
            "total_ms": round(self.total_ms, 2),
            "avg_ms": round(self.avg_ms, 2),
            "min_ms": round(self.min_ms, 2) if self.count else 0.0,
            "max_ms": round(self.max_ms, 2),
        }


class Metrics:
    """
    Process-wide metrics collector.

    Access it through ``Metrics.get()``; all updates are guarded by a
    lock so concurrent runs in one process can share it.

    Example:
        >>> Metrics.get().increment("exploration_steps")
        >>> with Metrics.get().timer("llm_latency_ms"):
        ...     reply = await client.complete(system, user)
        >>> print(Metrics.get().summary())
    """

    _instance: ClassVar["Metrics | None"] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._timings: dict[str, TimingStats] = {}

    @classmethod
    def get(cls) -> "Metrics":
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Zero every counter and timing on the shared instance."""
        metrics = cls.get()
        with metrics._lock:
            metrics._counters.clear()
            metrics._timings.clear()

    def increment(self, name: str, value: int = 1) -> int:
        """Add ``value`` to counter ``name`` and return the new total."""
        with self._lock:
            total = self._counters.get(name, 0) + value
            self._counters[name] = total
            return total

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def observe(self, name: str, duration_ms: float) -> None:
        with self._lock:
            self._timings.setdefault(name, TimingStats()).record(duration_ms)

    def get_timing(self, name: str) -> TimingStats | None:
        """Copy of the stats for ``name``, or None if nothing was observed."""
        with self._lock:
            stats = self._timings.get(name)
            return replace(stats) if stats is not None else None

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, (time.perf_counter() - started) * 1000)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {name: s.to_dict() for name, s in self._timings.items()},
            }

    def summary(self) -> str:
        snap = self.snapshot()
        lines = ["=== Run Metrics ==="]

        if snap["counters"]:
            lines.append("Counters:")
            lines.extend(
                f"  {name}: {value:,}" for name, value in sorted(snap["counters"].items())
            )

        if snap["timings"]:
            lines.append("Timings:")
            for name, t in sorted(snap["timings"].items()):
                lines.append(
                    f"  {name}: {t['count']} calls, avg={t['avg_ms']:.1f}ms, "
                    f"min={t['min_ms']:.1f}ms, max={t['max_ms']:.1f}ms"
                )

        return "\n".join(lines)


def increment_exploration_steps(count: int = 1) -> None:
    Metrics.get().increment("exploration_steps", count)


def increment_heuristic_decisions(count: int = 1) -> None:
    """Count decisions the heuristic tier settled without the LLM."""
    Metrics.get().increment("heuristic_decisions", count)


def increment_llm_fallbacks(count: int = 1) -> None:
    """Count LLM escalations that ended on the heuristic fallback."""
    Metrics.get().increment("llm_fallbacks", count)


@contextmanager
def time_llm_call() -> Iterator[None]:
    """Count one LLM call and time it as ``llm_latency_ms``."""
    metrics = Metrics.get()
    metrics.increment("llm_calls")
    with metrics.timer("llm_latency_ms"):
        yield
