"""Per-model attempt, failure and rate-limit counters.

The tracker is shared by every request the orchestrator serves. Counters are
guarded by a single lock; updates are small, so one lock is enough.

Only rate-limit failures start a cooldown. Ordinary failures are counted but
the model is tried again on the next request.

Examples:
    >>> tracker = ModelStatsTracker(cooldown_seconds=60)
    >>> tracker.record_attempt("gemini-2.0-flash")
    >>> tracker.record_failure("gemini-2.0-flash", is_rate_limit=True)
    >>> tracker.is_cooling_down("gemini-2.0-flash")
    True

Tests:
    - tests/unit/test_stats.py
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

# Default cooldown after a rate-limit failure, in seconds
DEFAULT_COOLDOWN_SECONDS = 60.0


@dataclass
class ModelStats:
    """Counters for one model.

    Invariant: rate_limit_hits <= failures <= attempts.

    Attributes:
        attempts: Provider calls started
        failures: Provider calls that failed
        rate_limit_hits: Failures classified as rate limits
        last_failure_at: Clock reading of the last rate-limit failure
    """

    attempts: int = 0
    failures: int = 0
    rate_limit_hits: int = 0
    last_failure_at: float | None = None

    @property
    def success_rate(self) -> float | None:
        if self.attempts == 0:
            return None
        return (self.attempts - self.failures) / self.attempts


class ModelStatsTracker:
    """Thread-safe counters keyed by model name.

    Attributes:
        cooldown_seconds: How long a rate-limited model is skipped
    """

    def __init__(
        self,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the tracker.

        Args:
            cooldown_seconds: Cooldown window after a rate-limit failure.
            clock: Monotonic clock, injectable for tests.
        """
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._stats: dict[str, ModelStats] = {}
        self._lock = threading.Lock()

    def _get(self, name: str) -> ModelStats:
        # Caller must hold the lock
        stats = self._stats.get(name)
        if stats is None:
            stats = self._stats[name] = ModelStats()
        return stats

    def now(self) -> float:
        return self._clock()

    def record_attempt(self, name: str) -> None:
        """Count a provider call about to be made."""
        with self._lock:
            self._get(name).attempts += 1

    def discard_attempt(self, name: str) -> None:
        """Undo an attempt whose call was abandoned before it finished."""
        with self._lock:
            stats = self._get(name)
            if stats.attempts > stats.failures:
                stats.attempts -= 1

    def record_failure(self, name: str, is_rate_limit: bool = False) -> None:
        """Count a failed call; rate limits also start the cooldown.

        Args:
            name: Model name.
            is_rate_limit: Whether the failure was classified as a rate limit.
        """
        with self._lock:
            stats = self._get(name)
            # A failure always belongs to an attempt
            if stats.failures >= stats.attempts:
                stats.attempts = stats.failures + 1
            stats.failures += 1
            if is_rate_limit:
                stats.rate_limit_hits += 1
                stats.last_failure_at = self._clock()

    def is_cooling_down(self, name: str, now: float | None = None) -> bool:
        """Check whether a model is inside its post-rate-limit window.

        Args:
            name: Model name.
            now: Clock reading to test against (defaults to the tracker clock).

        Returns:
            True if the last rate-limit failure is younger than the cooldown.
        """
        return self.cooldown_remaining(name, now) > 0

    def cooldown_remaining(self, name: str, now: float | None = None) -> float:
        """Seconds left in a model's cooldown (0.0 when not cooling down)."""
        with self._lock:
            stats = self._stats.get(name)
            if stats is None or stats.last_failure_at is None:
                return 0.0
            last = stats.last_failure_at
        current = self._clock() if now is None else now
        return max(0.0, self.cooldown_seconds - (current - last))

    def get(self, name: str) -> ModelStats:
        """Copy of one model's counters (zeroes if never seen)."""
        with self._lock:
            stats = self._stats.get(name, ModelStats())
            return ModelStats(
                attempts=stats.attempts,
                failures=stats.failures,
                rate_limit_hits=stats.rate_limit_hits,
                last_failure_at=stats.last_failure_at,
            )

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Observability view of every tracked model.

        Returns:
            name -> {attempts, failures, rate_limit_hits, success_rate, cooling_down}
        """
        with self._lock:
            names = list(self._stats)
        view: dict[str, dict[str, Any]] = {}
        for name in names:
            stats = self.get(name)
            view[name] = {
                "attempts": stats.attempts,
                "failures": stats.failures,
                "rate_limit_hits": stats.rate_limit_hits,
                "success_rate": stats.success_rate,
                "cooling_down": self.is_cooling_down(name),
            }
        return view

    def reset(self) -> None:
        """Forget all counters and cooldowns."""
        with self._lock:
            self._stats.clear()
