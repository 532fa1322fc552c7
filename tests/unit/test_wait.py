"""Unit tests for the readiness polling gate (harness.wait)."""

import pytest

from harness import ErrorKind, Outcome, Probe, ProbeKind
from harness.target import TargetError
from harness.wait import CancelToken, RetryPolicy, wait_until_ready


def _ready_after(clock, ready_at: float):
    def action(target, timeout):
        if clock() >= ready_at:
            return True
        raise TargetError(f"no response at t={clock():g}")

    return action


def _probe(action):
    return Probe(
        name="database connection",
        kind=ProbeKind.READINESS,
        action=action,
        on_pass_message="Database connection successful",
    )


POLICY = RetryPolicy(timeout_seconds=60, interval_seconds=2, progress_every_seconds=10)


def test_ready_at_ten_seconds_passes_within_one_interval(clock):
    result = wait_until_ready(
        _probe(_ready_after(clock, 10)), POLICY, target=None, clock=clock, sleep=clock.sleep
    )
    assert result.outcome is Outcome.PASS
    assert 10 <= result.elapsed_seconds < 12
    assert result.message == "Database connection successful"


def test_immediately_ready_does_not_sleep(clock):
    result = wait_until_ready(
        _probe(lambda target, timeout: True), POLICY, target=None, clock=clock, sleep=clock.sleep
    )
    assert result.outcome is Outcome.PASS
    assert clock.sleeps == []


def test_timeout_reports_elapsed_and_last_error(clock):
    result = wait_until_ready(
        _probe(_ready_after(clock, 1_000)), POLICY, target=None, clock=clock, sleep=clock.sleep
    )
    assert result.outcome is Outcome.FAIL
    assert result.error_kind is ErrorKind.READINESS_TIMEOUT
    assert result.elapsed_seconds >= 60
    assert "not ready after 60s" in result.message
    assert result.detail == "last error: no response at t=60"


def test_never_blocks_past_timeout_plus_interval(clock):
    policy = RetryPolicy(timeout_seconds=7, interval_seconds=3, progress_every_seconds=5)
    result = wait_until_ready(
        _probe(_ready_after(clock, 1_000)), policy, target=None, clock=clock, sleep=clock.sleep
    )
    assert result.outcome is Outcome.FAIL
    assert clock() <= 7 + 3
    # last sleep is clamped to the remaining window
    assert clock.sleeps == [3, 3, 1]


def test_progress_every_ten_seconds_not_every_attempt(clock):
    progress = []
    wait_until_ready(
        _probe(_ready_after(clock, 25)),
        POLICY,
        target=None,
        clock=clock,
        sleep=clock.sleep,
        on_progress=lambda elapsed, timeout: progress.append((elapsed, timeout)),
    )
    assert progress == [(10, 60), (20, 60)]


def test_failed_predicate_counts_as_not_ready(clock):
    probe = Probe(
        name="database connection",
        kind=ProbeKind.READINESS,
        action=lambda target, timeout: clock() >= 4,
        predicate=lambda ok: Outcome.PASS if ok else Outcome.FAIL,
        on_fail_message="server still starting",
    )
    policy = RetryPolicy(timeout_seconds=3, interval_seconds=1, progress_every_seconds=10)
    result = wait_until_ready(probe, policy, target=None, clock=clock, sleep=clock.sleep)
    assert result.outcome is Outcome.FAIL
    assert result.detail == "last error: server still starting"


def test_unexpected_exception_is_retried_not_raised(clock):
    calls = []

    def flaky(target, timeout):
        calls.append(clock())
        if len(calls) < 3:
            raise RuntimeError("docker daemon restarting")
        return True

    result = wait_until_ready(_probe(flaky), POLICY, target=None, clock=clock, sleep=clock.sleep)
    assert result.outcome is Outcome.PASS
    assert calls == [0, 2, 4]


def test_each_attempt_is_bounded_by_interval_by_default(clock):
    bounds = []

    def action(target, timeout):
        bounds.append(timeout)
        return True

    wait_until_ready(_probe(action), POLICY, target=None, clock=clock, sleep=clock.sleep)
    assert bounds == [2]


def test_cancel_returns_cancelled_result(clock):
    token = CancelToken()

    def action(target, timeout):
        token.cancel("operator interrupt")
        raise TargetError("no response")

    result = wait_until_ready(
        _probe(action), POLICY, target=None, clock=clock, sleep=clock.sleep, cancel=token
    )
    assert result.outcome is Outcome.FAIL
    assert result.error_kind is ErrorKind.CANCELLED
    assert "operator interrupt" in result.message


def test_cancel_token_wakes_sleep():
    token = CancelToken()
    token.cancel()
    assert token.wait(30) is True


class TestRetryPolicy:
    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError, match="timeout_seconds"):
            RetryPolicy(timeout_seconds=0, interval_seconds=1, progress_every_seconds=1)

    def test_rejects_interval_longer_than_timeout(self):
        with pytest.raises(ValueError, match="interval_seconds"):
            RetryPolicy(timeout_seconds=5, interval_seconds=10, progress_every_seconds=1)
