"""
VoiceBrief Backend: Rate Gate
=============================

What:  Per-operation-class admission control keyed by client identity.
How:   Fixed-window counting. Each (operation class, client) pair owns a
       window start and a count; a request is admitted while the count is
       below quota, and admission increments the count. Once the window
       has elapsed the next request opens a fresh window at count zero.
Who:   RateLimitMiddleware (general class, every route) and the
       `require_admission` route dependency (upload and email classes).

Operation classes (defaults, per client):
    general  100 requests / 15 minutes   all routes
    upload    10 requests / 15 minutes   POST /api/transcribe
    email     20 requests / 60 minutes   POST /api/send-email

Fixed window vs sliding log:
    Memory is bounded to one small record per active (class, client) pair.
    The cost is that a client can burst up to 2x quota across a window
    boundary.

Counter Store:
    Window state lives in a CounterStore passed into the gate. The in-memory
    store guards its map with a lock so check-and-increment is atomic even if
    the gate is shared across threads. A multi-instance deployment swaps in
    a shared store implementing the same `acquire()` contract.
"""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from voicebrief.config import settings
from voicebrief.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class OperationClass(str, Enum):
    GENERAL = "general"
    UPLOAD = "upload"
    EMAIL = "email"


@dataclass(frozen=True)
class RatePolicy:
    """Quota and window length for one operation class."""

    quota: int
    window_seconds: float
    message: str


@dataclass(frozen=True)
class WindowState:
    """Snapshot of one client's window, as returned by `CounterStore.acquire`."""

    count: int
    window_start: float
    admitted: bool


@dataclass(frozen=True)
class AdmissionDecision:
    """
    Outcome of one admission check.

    Attributes:
        allowed:      Whether the request was admitted (and counted)
        limit:        Quota of the operation class
        remaining:    Admissions left in the current window
        reset_after:  Seconds until the current window ends
    """

    allowed: bool
    operation_class: OperationClass
    limit: int
    remaining: int
    reset_after: float

    @property
    def retry_after(self) -> int:
        """Whole seconds a denied client should wait (never below 1)."""
        return max(1, math.ceil(self.reset_after))


def default_policies() -> Dict[OperationClass, RatePolicy]:
    """Build the three gate policies from settings."""
    return {
        OperationClass.GENERAL: RatePolicy(
            quota=settings.rate_limit_general_requests,
            window_seconds=settings.rate_limit_general_window,
            message="Too many requests from this IP, please try again later.",
        ),
        OperationClass.UPLOAD: RatePolicy(
            quota=settings.rate_limit_upload_requests,
            window_seconds=settings.rate_limit_upload_window,
            message="Too many upload requests, please try again later.",
        ),
        OperationClass.EMAIL: RatePolicy(
            quota=settings.rate_limit_email_requests,
            window_seconds=settings.rate_limit_email_window,
            message="Too many email requests, please try again later.",
        ),
    }


class CounterStore(ABC):
    """Storage contract for rate windows. `acquire` must be atomic per key."""

    @abstractmethod
    def acquire(
        self,
        key: Tuple[str, str],
        quota: int,
        window_seconds: float,
        now: float,
    ) -> WindowState:
        """
        Check-and-increment the window for `key`.

        Opens a new window when none exists or the previous one has elapsed.
        Increments the count only if it is below `quota`.
        """
        ...

    @abstractmethod
    def reset(self) -> None:
        """Forget every window."""
        ...


class InMemoryCounterStore(CounterStore):
    """
    Process-local counter store.

    Expired windows are purged every `purge_interval` acquisitions so the map
    does not grow with every client ever seen.
    """

    def __init__(self, purge_interval: int = 1000):
        self._windows: Dict[Tuple[str, str], Tuple[int, float, float]] = {}
        self._lock = threading.Lock()
        self._purge_interval = purge_interval
        self._acquisitions = 0

    def acquire(
        self,
        key: Tuple[str, str],
        quota: int,
        window_seconds: float,
        now: float,
    ) -> WindowState:
        with self._lock:
            count, window_start, length = self._windows.get(key, (0, now, window_seconds))
            if now - window_start >= length:
                count, window_start = 0, now

            admitted = count < quota
            if admitted:
                count += 1
            self._windows[key] = (count, window_start, window_seconds)

            self._acquisitions += 1
            if self._acquisitions % self._purge_interval == 0:
                self._purge_expired(now)

            return WindowState(count=count, window_start=window_start, admitted=admitted)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._acquisitions = 0

    def _purge_expired(self, now: float) -> None:
        """Drop windows that have fully elapsed. Caller holds the lock."""
        expired = [
            key for key, (_, start, length) in self._windows.items()
            if now - start >= length
        ]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("Purged %d expired rate windows", len(expired))

    def __len__(self) -> int:
        return len(self._windows)


class RateGate:
    """
    Admission control for the three operation classes.

    Args:
        policies: Per-class quota/window (default_policies() when omitted)
        store:    CounterStore holding window state (in-memory by default)
        clock:    Monotonic seconds source, injectable for tests
    """

    def __init__(
        self,
        policies: Optional[Dict[OperationClass, RatePolicy]] = None,
        store: Optional[CounterStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.policies = policies or default_policies()
        self.store = store or InMemoryCounterStore()
        self._clock = clock

    def check(self, client_id: str, operation_class: OperationClass) -> AdmissionDecision:
        """Run one admission check and describe the resulting window."""
        policy = self.policies[operation_class]
        now = self._clock()
        state = self.store.acquire(
            (operation_class.value, client_id),
            policy.quota,
            policy.window_seconds,
            now,
        )
        reset_after = max(0.0, state.window_start + policy.window_seconds - now)

        if not state.admitted:
            logger.warning(
                "Rate gate '%s' denied client %s: %d/%d in %ss window",
                operation_class.value,
                client_id,
                state.count,
                policy.quota,
                policy.window_seconds,
            )

        return AdmissionDecision(
            allowed=state.admitted,
            operation_class=operation_class,
            limit=policy.quota,
            remaining=max(0, policy.quota - state.count),
            reset_after=reset_after,
        )

    def admit(self, client_id: str, operation_class: OperationClass) -> bool:
        return self.check(client_id, operation_class).allowed

    def enforce(self, client_id: str, operation_class: OperationClass) -> AdmissionDecision:
        """
        Like check(), but raises RateLimitExceededError on denial.

        Used by route dependencies so the global 429 handler renders the
        rejection.
        """
        decision = self.check(client_id, operation_class)
        if not decision.allowed:
            raise RateLimitExceededError(
                message=self.policies[operation_class].message,
                retry_after=decision.retry_after,
                operation_class=operation_class.value,
            )
        return decision
