"""Timing helpers for analytics runs."""
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional
import logging

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Current time in milliseconds from the high-resolution timer."""
    return time.perf_counter() * 1000


class Stopwatch:
    """Elapsed time of a timed block; `elapsed_ms` is final once the block exits."""

    def __init__(self) -> None:
        self.started_ms = now_ms()
        self.elapsed_ms: float = 0.0

    def stop(self) -> float:
        self.elapsed_ms = now_ms() - self.started_ms
        return self.elapsed_ms


@contextmanager
def time_operation(
    label: str,
    log_fn: Optional[Callable[[str], None]] = None,
    min_ms: float = 0.0,
) -> Iterator[Stopwatch]:
    """
    Time a block and log how long it took.

    Args:
        label: Name of the operation
        log_fn: Logging function (defaults to logger.debug)
        min_ms: Skip logging below this duration

    Example:
        with time_operation("genre_demand", logger.info) as watch:
            recs = analyzers.genre_demand()
        watch.elapsed_ms
    """
    watch = Stopwatch()
    try:
        yield watch
    finally:
        elapsed = watch.stop()
        if elapsed >= min_ms:
            (log_fn or logger.debug)(f"{label}: {elapsed:.2f}ms")


def log_elapsed(start_ms: float, label: str, log_fn: Optional[Callable[[str], None]] = None) -> float:
    """
    Log time since start_ms and return the current time, for chaining steps.

    Example:
        t = now_ms()
        t = log_elapsed(t, "metrics")
        t = log_elapsed(t, "recommendations")
    """
    elapsed = now_ms() - start_ms
    (log_fn or logger.debug)(f"{label}: {elapsed:.2f}ms")
    return now_ms()
