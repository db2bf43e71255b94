"""
Per-service failure tracking with exponential backoff.

Services that fail repeatedly are skipped for a growing window during
refresh passes. A service is never excluded permanently: once its window
elapses it is contacted again, and a single success clears its history.

Backoff: base * 2 ** (failures - threshold), capped at max.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable

import structlog

from apicatalog.domain.models import ServiceIdentity

logger = structlog.get_logger()

DEFAULT_MAX_FAILURES = 3
DEFAULT_BASE_BACKOFF_SECONDS = 60.0
DEFAULT_MAX_BACKOFF_SECONDS = 3600.0

# 2**32 * any sane base already exceeds any sane cap
_MAX_EXPONENT = 32


@dataclass(frozen=True, slots=True)
class FailureRecord:
    count: int
    last_failure: float


class BackoffGate:
    """Decides whether a service is currently in failure backoff."""

    def __init__(
        self,
        max_failures: int = DEFAULT_MAX_FAILURES,
        base_backoff_seconds: float = DEFAULT_BASE_BACKOFF_SECONDS,
        max_backoff_seconds: float = DEFAULT_MAX_BACKOFF_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_failures = max_failures if max_failures > 0 else DEFAULT_MAX_FAILURES
        self._base = (
            base_backoff_seconds if base_backoff_seconds > 0 else DEFAULT_BASE_BACKOFF_SECONDS
        )
        self._max = max_backoff_seconds if max_backoff_seconds > 0 else DEFAULT_MAX_BACKOFF_SECONDS
        self._clock = clock
        self._failures: dict[ServiceIdentity, FailureRecord] = {}
        self._lock = threading.Lock()

    @property
    def max_failures(self) -> int:
        return self._max_failures

    @property
    def base_backoff_seconds(self) -> float:
        return self._base

    @property
    def max_backoff_seconds(self) -> float:
        return self._max

    def record_failure(self, identity: ServiceIdentity) -> int:
        """Count one more failure for ``identity`` and return the new count."""
        now = self._clock()
        with self._lock:
            previous = self._failures.get(identity)
            count = previous.count + 1 if previous else 1
            self._failures[identity] = FailureRecord(count, now)

        if count >= self._max_failures:
            logger.warning(
                "service_backoff_started",
                service=str(identity),
                failures=count,
                backoff_seconds=self.backoff_seconds(count),
            )
        return count

    def record_success(self, identity: ServiceIdentity) -> None:
        with self._lock:
            removed = self._failures.pop(identity, None)

        if removed is not None and removed.count >= self._max_failures:
            logger.info("service_recovered", service=str(identity), failures=removed.count)

    def should_skip(self, identity: ServiceIdentity) -> bool:
        record = self._failures.get(identity)
        if record is None or record.count < self._max_failures:
            return False

        backoff_until = record.last_failure + self.backoff_seconds(record.count)
        if self._clock() < backoff_until:
            logger.debug(
                "service_in_backoff",
                service=str(identity),
                failures=record.count,
                remaining_seconds=round(backoff_until - self._clock(), 1),
            )
            return True
        return False

    def failure_count(self, identity: ServiceIdentity) -> int:
        record = self._failures.get(identity)
        return record.count if record else 0

    def backoff_seconds(self, failure_count: int) -> float:
        """Backoff window for a service with ``failure_count`` failures."""
        if failure_count < self._max_failures:
            return 0.0
        exponent = min(failure_count - self._max_failures, _MAX_EXPONENT)
        return min(self._base * (2**exponent), self._max)

    def prune(
        self,
        keep: Iterable[ServiceIdentity],
        namespaces: Iterable[str] | None = None,
    ) -> int:
        """Drop counters of services outside ``keep``; returns how many were dropped.

        With ``namespaces`` only counters in those namespaces are considered.
        """
        keep = set(keep)
        scoped = set(namespaces) if namespaces else None
        with self._lock:
            stale = [
                identity
                for identity in self._failures
                if identity not in keep and (scoped is None or identity.namespace in scoped)
            ]
            for identity in stale:
                del self._failures[identity]
        return len(stale)
