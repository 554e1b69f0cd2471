"""
Observability hook for the data service.

The service reports counters (cache hits, misses, invalidations, store
errors) and durations (aggregate rebuilds) through a MetricsHook, so a
deployment can forward them to whatever backend it uses.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple

log = logging.getLogger(__name__)


class MetricsHook:
    """Counter/duration callback interface. The base class ignores everything."""

    def increment(self, name: str, **tags: Any) -> None:
        pass

    def observe(self, name: str, seconds: float, **tags: Any) -> None:
        pass

    @contextmanager
    def timer(self, name: str, **tags: Any) -> Iterator[None]:
        """Observes the wall-clock duration of the wrapped block, even if it raises."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, time.perf_counter() - started, **tags)


class NullMetrics(MetricsHook):
    pass


class LoggingMetrics(MetricsHook):
    def increment(self, name: str, **tags: Any) -> None:
        log.debug(f"metric {name} +1 {tags}")

    def observe(self, name: str, seconds: float, **tags: Any) -> None:
        log.debug(f"metric {name} {seconds * 1000:.1f}ms {tags}")


class RecordingMetrics(MetricsHook):
    """Keeps every reported value in memory; handy for tests and diagnostics."""

    def __init__(self):
        self.counters: Dict[str, int] = {}
        self.observations: List[Tuple[str, float, Dict[str, Any]]] = []

    def increment(self, name: str, **tags: Any) -> None:
        self.counters[name] = self.counters.get(name, 0) + 1

    def observe(self, name: str, seconds: float, **tags: Any) -> None:
        self.observations.append((name, seconds, tags))

    def count(self, name: str) -> int:
        return self.counters.get(name, 0)
