"""Tests for the per-service failure backoff gate."""

import pytest

from apicatalog.catalog.backoff import BackoffGate
from apicatalog.domain.models import ServiceIdentity

SERVICE = ServiceIdentity("default", "users")
OTHER = ServiceIdentity("default", "orders")


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def test_untracked_service_is_never_skipped(clock):
    gate = BackoffGate(clock=clock)

    assert gate.failure_count(SERVICE) == 0
    assert gate.should_skip(SERVICE) is False


def test_failures_below_threshold_do_not_skip(clock):
    gate = BackoffGate(max_failures=3, clock=clock)

    assert gate.record_failure(SERVICE) == 1
    assert gate.record_failure(SERVICE) == 2
    assert gate.should_skip(SERVICE) is False


def test_threshold_reached_skips_for_base_window(clock):
    gate = BackoffGate(max_failures=3, base_backoff_seconds=60, clock=clock)
    for _ in range(3):
        gate.record_failure(SERVICE)

    assert gate.should_skip(SERVICE) is True

    clock.advance(59)
    assert gate.should_skip(SERVICE) is True

    clock.advance(1)
    assert gate.should_skip(SERVICE) is False


def test_window_doubles_per_extra_failure(clock):
    gate = BackoffGate(max_failures=3, base_backoff_seconds=60, clock=clock)
    for _ in range(5):
        gate.record_failure(SERVICE)

    clock.advance(239)
    assert gate.should_skip(SERVICE) is True
    clock.advance(1)
    assert gate.should_skip(SERVICE) is False


def test_success_clears_history(clock):
    gate = BackoffGate(max_failures=1, clock=clock)
    gate.record_failure(SERVICE)
    assert gate.should_skip(SERVICE) is True

    gate.record_success(SERVICE)

    assert gate.failure_count(SERVICE) == 0
    assert gate.should_skip(SERVICE) is False


def test_counters_are_per_service(clock):
    gate = BackoffGate(max_failures=1, clock=clock)
    gate.record_failure(SERVICE)

    assert gate.should_skip(SERVICE) is True
    assert gate.should_skip(OTHER) is False


@pytest.mark.parametrize(
    ("count", "expected"),
    [(0, 0.0), (1, 60.0), (2, 120.0), (3, 240.0), (7, 3600.0), (12, 3600.0), (10_000, 3600.0)],
)
def test_backoff_seconds_capped(count, expected):
    gate = BackoffGate(max_failures=1, base_backoff_seconds=60, max_backoff_seconds=3600)

    assert gate.backoff_seconds(count) == expected


@pytest.mark.parametrize(
    ("args", "expected"),
    [
        ((0, 0, 0), (3, 60.0, 3600.0)),
        ((-1, -5, -10), (3, 60.0, 3600.0)),
        ((5, 10, 100), (5, 10, 100)),
    ],
)
def test_non_positive_configuration_uses_defaults(args, expected):
    gate = BackoffGate(*args)

    assert (gate.max_failures, gate.base_backoff_seconds, gate.max_backoff_seconds) == expected


def test_prune_drops_counters_of_missing_services(clock):
    gate = BackoffGate(clock=clock)
    gate.record_failure(SERVICE)
    gate.record_failure(OTHER)

    assert gate.prune({SERVICE}) == 1

    assert gate.failure_count(SERVICE) == 1
    assert gate.failure_count(OTHER) == 0


def test_prune_limited_to_namespaces(clock):
    payments = ServiceIdentity("payments", "ledger")
    gate = BackoffGate(clock=clock)
    gate.record_failure(OTHER)
    gate.record_failure(payments)

    assert gate.prune(set(), namespaces=["payments"]) == 1

    assert gate.failure_count(OTHER) == 1
    assert gate.failure_count(payments) == 0
