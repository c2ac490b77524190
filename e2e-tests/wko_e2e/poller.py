"""Condition polling for E2E waits.

A ``Condition`` pairs a fallible query against the system under test with a
pure predicate over the observed state. ``ConditionPoller.poll`` evaluates it
under a ``PollPolicy`` until the predicate is satisfied, a permanent failure
is detected, the policy's bounds run out, or the caller cancels.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from .exceptions import ConditionNotMet, ConfigurationError, PermanentFailure, TransientError

MAX_JITTER = 0.2


class Verdict(Enum):
    """Outcome of evaluating a condition against observed state."""

    SATISFIED = "satisfied"
    NOT_YET_SATISFIED = "not-yet-satisfied"
    PERMANENT_FAILURE = "permanent-failure"


@dataclass(frozen=True)
class Check:
    """A verdict with an optional reason (used for permanent failures)."""

    verdict: Verdict
    reason: str = ""

    @classmethod
    def satisfied(cls) -> "Check":
        return cls(Verdict.SATISFIED)

    @classmethod
    def not_yet(cls, reason: str = "") -> "Check":
        return cls(Verdict.NOT_YET_SATISFIED, reason)

    @classmethod
    def failed(cls, reason: str) -> "Check":
        return cls(Verdict.PERMANENT_FAILURE, reason)


@dataclass(frozen=True)
class Condition:
    """What to poll and how to judge it.

    Attributes:
        description: Human readable name used in logs and failures
        query: Fetches the current observed state; may raise
        evaluate: Pure predicate over the observed state
        classify_error: Optional hook deciding whether a query exception is
            permanent. It may return PERMANENT_FAILURE, NOT_YET_SATISFIED or
            None (unclassified, hence transient). ``TransientError`` is never
            passed to it.
    """

    description: str
    query: Callable[[], Any]
    evaluate: Callable[[Any], "Check | Verdict"]
    classify_error: Callable[[Exception], "Check | Verdict | None"] | None = None


class Backoff(Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class PollPolicy:
    """Immutable polling bounds.

    At least one of ``max_attempts`` and ``timeout`` must be set; an
    unbounded wait is a configuration error.
    """

    interval: float
    max_attempts: int | None = None
    timeout: float | None = None
    backoff: Backoff = Backoff.FIXED
    max_interval: float | None = None
    jitter: float = 0.0

    def validate(self) -> "PollPolicy":
        """Check the policy, returning it unchanged.

        Raises:
            ConfigurationError: If the policy cannot be polled with
        """
        if self.max_attempts is None and self.timeout is None:
            raise ConfigurationError("poll policy needs max_attempts or timeout")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")
        if self.interval < 0:
            raise ConfigurationError(f"interval must not be negative, got {self.interval}")
        if not 0 <= self.jitter <= MAX_JITTER:
            raise ConfigurationError(
                f"jitter must be within [0, {MAX_JITTER}], got {self.jitter}"
            )
        if self.backoff is Backoff.EXPONENTIAL and self.max_interval is None:
            raise ConfigurationError("exponential backoff needs max_interval")
        if self.max_interval is not None and self.max_interval < self.interval:
            raise ConfigurationError(
                f"max_interval must be >= interval, got {self.max_interval} < {self.interval}"
            )
        return self

    def interval_for(self, attempt: int) -> float:
        """Base wait after the given (1-based) attempt, before jitter."""
        if self.backoff is Backoff.FIXED:
            return self.interval
        # Cap the exponent so huge attempt counts cannot overflow
        exponent = min(max(attempt - 1, 0), 62)
        return min(self.interval * (2**exponent), self.max_interval)

    def delay_for(self, attempt: int, rng: random.Random | None = None) -> float:
        """Actual wait after an attempt: base interval with jitter, capped."""
        base = self.interval_for(attempt)
        if self.jitter and rng is not None:
            base += base * rng.uniform(-self.jitter, self.jitter)
        if self.max_interval is not None:
            base = min(base, self.max_interval)
        return max(base, 0.0)


class PollStatus(Enum):
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed-out"
    FAILED = "failed"


@dataclass(frozen=True)
class PollResult:
    """Terminal outcome of one ``poll`` call."""

    status: PollStatus
    attempts: int
    elapsed: float
    description: str = ""
    reason: str | None = None
    last_observed: Any = None

    @property
    def succeeded(self) -> bool:
        return self.status is PollStatus.SUCCEEDED

    def describe(self) -> str:
        text = (
            f"{self.description or 'condition'}: {self.status.value} after "
            f"{self.attempts} attempt(s) in {self.elapsed:.1f}s"
        )
        if self.reason:
            text += f" ({self.reason})"
        if self.last_observed is not None:
            text += f"; last observed: {self.last_observed!r}"
        return text

    def raise_for_status(self) -> "PollResult":
        """Raise ``ConditionNotMet`` unless the poll succeeded."""
        if not self.succeeded:
            raise ConditionNotMet(self.describe())
        return self


class CancellationToken:
    """Cooperative cancellation, checked by the poller between attempts."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ConditionPoller:
    """Blocking retry loop over a ``Condition``.

    One poll never overlaps itself: the query runs, the verdict is taken,
    and only then does the poller sleep. Clock, sleep and random source are
    injectable so tests can drive time.
    """

    def __init__(
        self,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
        logger: logging.Logger | None = None,
    ):
        self.sleep = sleep
        self.clock = clock
        self.rng = rng or random.Random()
        self.logger = logger or logging.getLogger(__name__)

    def poll(
        self,
        condition: Condition,
        policy: PollPolicy,
        cancel: CancellationToken | None = None,
    ) -> PollResult:
        """Poll ``condition`` until it resolves.

        Args:
            condition: Query and predicate to evaluate
            policy: Interval, bounds and backoff
            cancel: Optional token checked between attempts

        Returns:
            PollResult (never raises for non-satisfaction)

        Raises:
            ConfigurationError: Invalid policy or cancellation token
        """
        policy.validate()
        if cancel is not None and not isinstance(cancel, CancellationToken):
            raise ConfigurationError(
                f"cancel must be a CancellationToken, got {type(cancel).__name__}"
            )

        start = self.clock()
        attempts = 0
        observed: Any = None

        def result(status: PollStatus, reason: str | None = None) -> PollResult:
            return PollResult(
                status=status,
                attempts=attempts,
                elapsed=self.clock() - start,
                description=condition.description,
                reason=reason,
                last_observed=observed,
            )

        while True:
            if cancel is not None and cancel.cancelled:
                self.logger.info("Wait for %s cancelled", condition.description)
                return result(PollStatus.FAILED, "cancelled")

            attempts += 1
            check = self._attempt(condition)
            if check.observed is not None:
                observed = check.observed

            if check.verdict is Verdict.SATISFIED:
                self.logger.info(
                    "%s satisfied after %d attempt(s)", condition.description, attempts
                )
                return result(PollStatus.SUCCEEDED)
            if check.verdict is Verdict.PERMANENT_FAILURE:
                self.logger.warning(
                    "%s failed permanently: %s", condition.description, check.reason
                )
                return result(PollStatus.FAILED, check.reason or "permanent failure")

            self.logger.debug(
                "%s not yet satisfied (attempt %d)%s",
                condition.description,
                attempts,
                f": {check.reason}" if check.reason else "",
            )

            if policy.max_attempts is not None and attempts >= policy.max_attempts:
                break
            delay = policy.delay_for(attempts, self.rng)
            if policy.timeout is not None:
                remaining = policy.timeout - (self.clock() - start)
                if remaining <= 0:
                    break
                delay = min(delay, remaining)
            if delay > 0:
                self.sleep(delay)

        self.logger.warning(
            "Timed out waiting for %s after %d attempt(s)", condition.description, attempts
        )
        return result(PollStatus.TIMED_OUT, check.reason or None)

    def _attempt(self, condition: Condition) -> "_Attempt":
        try:
            state = condition.query()
        except PermanentFailure as e:
            return _Attempt(Verdict.PERMANENT_FAILURE, str(e) or "permanent failure")
        except TransientError as e:
            return _Attempt(Verdict.NOT_YET_SATISFIED, f"transient error: {e}")
        except Exception as e:  # transport errors are transient unless classified
            classified = condition.classify_error(e) if condition.classify_error else None
            if classified is not None:
                check = _as_check(classified)
                if check.verdict is Verdict.SATISFIED:
                    raise TypeError(
                        f"classify_error returned {classified!r} for {e!r}; "
                        "a failed query cannot satisfy a condition"
                    ) from e
                if check.verdict is Verdict.PERMANENT_FAILURE:
                    return _Attempt(check.verdict, check.reason or str(e))
            return _Attempt(Verdict.NOT_YET_SATISFIED, f"query error: {e}")

        check = _as_check(condition.evaluate(state))
        return _Attempt(check.verdict, check.reason, observed=state)


@dataclass(frozen=True)
class _Attempt:
    verdict: Verdict
    reason: str = ""
    observed: Any = None


def _as_check(value: "Check | Verdict") -> Check:
    if isinstance(value, Check):
        return value
    if isinstance(value, Verdict):
        return Check(value)
    raise TypeError(f"condition returned {value!r}, expected Check or Verdict")
