"""
harness/wait.py — Polling gate for target readiness.

Polls the readiness probe (pg_isready, or SELECT 1 for direct sessions) until
it passes or the configured timeout elapses. Replaces the fixed
sleep-and-count shell loop; the counters that loop kept in globals live in
RetryPolicy and in locals here.
"""

from __future__ import annotations

import _thread
import logging
import signal
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from harness import ErrorKind, Outcome, Probe, ProbeResult
from harness.target import TargetError

if TYPE_CHECKING:
    from harness.target import Target

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    timeout_seconds: float
    interval_seconds: float
    progress_every_seconds: float

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if self.progress_every_seconds <= 0:
            raise ValueError("progress_every_seconds must be > 0")
        if self.interval_seconds > self.timeout_seconds:
            raise ValueError("interval_seconds must not exceed timeout_seconds")


class CancelToken:
    """Cooperative cancellation shared by the waiter and the runner."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason = "cancelled"

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; wakes early and returns True once cancelled."""
        return self._event.wait(seconds)

    def interrupt(self, reason: str = "interrupted") -> None:
        """Cancel, then raise KeyboardInterrupt in the main thread.

        Callable from any thread. The signal breaks the main thread out of a
        blocking call (a running psql child or a socket read), so the probe in
        flight stops instead of running to its own timeout.
        """
        self.cancel(reason)
        if hasattr(signal, "pthread_kill"):
            signal.pthread_kill(threading.main_thread().ident, signal.SIGINT)
        else:
            _thread.interrupt_main()


def cancelled_result(name: str, probe: Probe, elapsed: float, reason: str) -> ProbeResult:
    return ProbeResult(
        name=name,
        kind=probe.kind,
        outcome=Outcome.FAIL,
        message=f"{name} not completed: run cancelled ({reason})",
        elapsed_seconds=elapsed,
        error_kind=ErrorKind.CANCELLED,
    )


def wait_until_ready(
    probe: Probe,
    policy: RetryPolicy,
    target: Target,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], object] | None = None,
    on_progress: Callable[[float, float], None] | None = None,
    cancel: CancelToken | None = None,
) -> ProbeResult:
    """Poll `probe` until it passes or `policy.timeout_seconds` elapses.

    Each attempt is a fresh invocation bounded by the probe's own timeout
    (default: the poll interval), clamped so the loop never runs past
    timeout + interval. Progress is reported every
    `policy.progress_every_seconds` of elapsed time, not every attempt.

    Returns a PASS result as soon as the predicate passes, or a FAIL result
    tagged ReadinessTimeout carrying the elapsed time and the last error.
    """
    cancel = cancel or CancelToken()
    if sleep is None:
        sleep = cancel.wait

    start = clock()
    next_progress = policy.progress_every_seconds
    last_error: str | None = None
    attempts = 0

    while True:
        elapsed = clock() - start
        if cancel.cancelled:
            return cancelled_result(probe.name, probe, elapsed, cancel.reason)

        remaining = max(policy.timeout_seconds - elapsed, 0.0)
        bound = min(
            probe.timeout_seconds or policy.interval_seconds,
            remaining + policy.interval_seconds,
        )
        attempts += 1
        outcome: Outcome | None = None
        value: object = None
        try:
            value = probe.action(target, bound)
            outcome = probe.predicate(value)
        except TargetError as exc:
            last_error = exc.detail
        except Exception as exc:  # noqa: BLE001
            last_error = f"{type(exc).__name__}: {exc}"

        elapsed = clock() - start
        if outcome is Outcome.PASS:
            logger.info("%s ready after %d attempt(s), %.1fs", probe.name, attempts, elapsed)
            return ProbeResult(
                name=probe.name,
                kind=probe.kind,
                outcome=Outcome.PASS,
                message=probe.render(probe.on_pass_message, value=value, elapsed=elapsed),
                elapsed_seconds=elapsed,
            )
        if outcome is not None:
            last_error = probe.render(probe.on_fail_message, value=value)
        logger.debug("%s not ready (attempt %d, %.1fs): %s", probe.name, attempts, elapsed, last_error)

        if elapsed >= policy.timeout_seconds:
            return ProbeResult(
                name=probe.name,
                kind=probe.kind,
                outcome=Outcome.FAIL,
                message=(
                    f"{probe.name} failed: not ready after {elapsed:.0f}s "
                    f"(timeout {policy.timeout_seconds:g}s, {attempts} attempt(s))"
                ),
                detail=f"last error: {last_error}" if last_error else None,
                elapsed_seconds=elapsed,
                error_kind=ErrorKind.READINESS_TIMEOUT,
            )

        if elapsed >= next_progress:
            if on_progress is not None:
                on_progress(elapsed, policy.timeout_seconds)
            while next_progress <= elapsed:
                next_progress += policy.progress_every_seconds

        sleep(min(policy.interval_seconds, policy.timeout_seconds - elapsed))
