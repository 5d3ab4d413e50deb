"""Thread-safe processing counters."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from threading import Lock


@dataclass(frozen=True, slots=True)
class StatsSnapshot:
    """Immutable copy of the processor counters."""

    requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    errors: int = 0
    total_time_ms: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


class ProcessingStats:
    """Monotonic counters guarded by their own lock."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._requests = 0
        self._cache_hits = 0
        self._cache_misses = 0
        self._errors = 0
        self._total_time_ms = 0.0

    def record_request(self) -> None:
        with self._lock:
            self._requests += 1

    def record_cache_hit(self) -> None:
        with self._lock:
            self._cache_hits += 1

    def record_cache_miss(self) -> None:
        with self._lock:
            self._cache_misses += 1

    def record_error(self) -> None:
        with self._lock:
            self._errors += 1

    def record_duration(self, milliseconds: float) -> None:
        with self._lock:
            self._total_time_ms += max(milliseconds, 0.0)

    def snapshot(self) -> StatsSnapshot:
        """Return a consistent copy of every counter."""
        with self._lock:
            return StatsSnapshot(
                requests=self._requests,
                cache_hits=self._cache_hits,
                cache_misses=self._cache_misses,
                errors=self._errors,
                total_time_ms=self._total_time_ms,
            )


__all__ = ["ProcessingStats", "StatsSnapshot"]
