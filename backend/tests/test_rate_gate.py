"""
VoiceBrief Backend: Rate Gate Unit Tests
========================================

Uses a fake monotonic clock so window expiry is tested without waiting.
"""

import pytest

from voicebrief.exceptions import RateLimitExceededError
from voicebrief.services.rate_gate import (
    InMemoryCounterStore,
    OperationClass,
    RateGate,
    RatePolicy,
    default_policies,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_gate(clock, general=5, upload=2, email=3, window=60):
    policies = {
        OperationClass.GENERAL: RatePolicy(general, window, "general limit"),
        OperationClass.UPLOAD: RatePolicy(upload, window, "upload limit"),
        OperationClass.EMAIL: RatePolicy(email, window, "email limit"),
    }
    return RateGate(policies=policies, clock=clock)


class TestDefaultPolicies:

    def test_defaults_match_configured_quotas(self):
        policies = default_policies()
        assert policies[OperationClass.GENERAL].quota == 100
        assert policies[OperationClass.GENERAL].window_seconds == 900
        assert policies[OperationClass.UPLOAD].quota == 10
        assert policies[OperationClass.UPLOAD].window_seconds == 900
        assert policies[OperationClass.EMAIL].quota == 20
        assert policies[OperationClass.EMAIL].window_seconds == 3600


class TestRateGate:

    def test_admits_up_to_quota_then_denies(self):
        gate = make_gate(FakeClock(), upload=2)

        assert gate.admit("1.2.3.4", OperationClass.UPLOAD)
        assert gate.admit("1.2.3.4", OperationClass.UPLOAD)
        assert not gate.admit("1.2.3.4", OperationClass.UPLOAD)
        assert not gate.admit("1.2.3.4", OperationClass.UPLOAD)

    def test_remaining_counts_down(self):
        gate = make_gate(FakeClock(), email=3)

        remaining = [gate.check("c", OperationClass.EMAIL).remaining for _ in range(4)]
        assert remaining == [2, 1, 0, 0]

    def test_window_resets_after_elapsed(self):
        clock = FakeClock()
        gate = make_gate(clock, upload=1, window=60)

        assert gate.admit("c", OperationClass.UPLOAD)
        assert not gate.admit("c", OperationClass.UPLOAD)

        clock.advance(59.9)
        assert not gate.admit("c", OperationClass.UPLOAD)

        clock.advance(0.1)
        assert gate.admit("c", OperationClass.UPLOAD)

    def test_classes_are_independent(self):
        gate = make_gate(FakeClock(), upload=1, email=1)

        assert gate.admit("c", OperationClass.UPLOAD)
        assert not gate.admit("c", OperationClass.UPLOAD)
        assert gate.admit("c", OperationClass.EMAIL)
        assert gate.admit("c", OperationClass.GENERAL)

    def test_clients_are_independent(self):
        gate = make_gate(FakeClock(), upload=1)

        assert gate.admit("alice", OperationClass.UPLOAD)
        assert not gate.admit("alice", OperationClass.UPLOAD)
        assert gate.admit("bob", OperationClass.UPLOAD)

    def test_denial_reports_time_until_reset(self):
        clock = FakeClock()
        gate = make_gate(clock, upload=1, window=60)

        gate.check("c", OperationClass.UPLOAD)
        clock.advance(20.5)
        decision = gate.check("c", OperationClass.UPLOAD)

        assert not decision.allowed
        assert decision.reset_after == pytest.approx(39.5)
        assert decision.retry_after == 40

    def test_retry_after_is_never_zero(self):
        clock = FakeClock()
        gate = make_gate(clock, upload=1, window=60)

        gate.check("c", OperationClass.UPLOAD)
        clock.advance(59.99)
        assert gate.check("c", OperationClass.UPLOAD).retry_after == 1

    def test_enforce_raises_with_policy_message(self):
        gate = make_gate(FakeClock(), email=1)
        gate.enforce("c", OperationClass.EMAIL)

        with pytest.raises(RateLimitExceededError, match="email limit") as exc_info:
            gate.enforce("c", OperationClass.EMAIL)

        assert exc_info.value.operation_class == "email"
        assert exc_info.value.retry_after == 60


class TestInMemoryCounterStore:

    def test_denied_request_does_not_increment(self):
        store = InMemoryCounterStore()
        store.acquire(("upload", "c"), 1, 60, now=0)
        state = store.acquire(("upload", "c"), 1, 60, now=1)

        assert not state.admitted
        assert state.count == 1

    def test_purges_expired_windows(self):
        store = InMemoryCounterStore(purge_interval=3)
        store.acquire(("general", "a"), 10, 60, now=0)
        store.acquire(("general", "b"), 10, 60, now=0)
        assert len(store) == 2

        # Third acquisition triggers a purge; a and b have expired by now=100
        store.acquire(("general", "c"), 10, 60, now=100)
        assert len(store) == 1

    def test_reset_clears_everything(self):
        store = InMemoryCounterStore()
        store.acquire(("general", "a"), 1, 60, now=0)
        store.reset()

        assert len(store) == 0
        assert store.acquire(("general", "a"), 1, 60, now=1).admitted
