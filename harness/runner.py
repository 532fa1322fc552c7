"""
harness/runner.py — Executes an ordered probe list against one target.

The first polling READINESS probe goes through the gate in harness.wait;
everything else (including a one-shot READINESS preflight such as the docker
daemon check) runs once, in order, each bounded by its own timeout.

Severity by kind:
  READINESS      failure is fatal: stop, fetch container logs once, no more probes
  ASSERTION      failure is recorded and the run continues
  INFORMATIONAL  any non-pass is recorded as WARN and never fails the run

run() never raises: target errors, predicate bugs, timeouts and operator
interrupts all end up as entries in the returned RunResult.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from harness import (
    ErrorKind,
    Outcome,
    Probe,
    ProbeKind,
    ProbeResult,
    RunResult,
    RunState,
)
from harness.target import TargetError, TargetTimeout
from harness.wait import CancelToken, RetryPolicy, cancelled_result, wait_until_ready

if TYPE_CHECKING:
    from config.settings import Settings
    from harness.target import Target

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 30.0
DEFAULT_LOG_TAIL_LINES = 20


def _failure_outcome(kind: ProbeKind) -> Outcome:
    return Outcome.WARN if kind is ProbeKind.INFORMATIONAL else Outcome.FAIL


def _failure_kind(kind: ProbeKind) -> ErrorKind:
    return ErrorKind.SOFT_WARNING if kind is ProbeKind.INFORMATIONAL else ErrorKind.ASSERTION_FAILURE


class ProbeRunner:
    def __init__(
        self,
        target: Target,
        policy: RetryPolicy,
        *,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        log_tail_lines: int = DEFAULT_LOG_TAIL_LINES,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], object] | None = None,
        cancel: CancelToken | None = None,
        on_result: Callable[[ProbeResult], None] | None = None,
        on_progress: Callable[[float, float], None] | None = None,
    ) -> None:
        self.target = target
        self.policy = policy
        self.probe_timeout = probe_timeout
        self.log_tail_lines = log_tail_lines
        self.clock = clock
        self.sleep = sleep
        self.cancel = cancel or CancelToken()
        self.on_result = on_result
        self.on_progress = on_progress

    @classmethod
    def from_settings(cls, cfg: Settings, target: Target, **kwargs) -> ProbeRunner:
        return cls(
            target,
            cfg.retry_policy,
            probe_timeout=cfg.PROBE_TIMEOUT_SECONDS,
            log_tail_lines=cfg.LOG_TAIL_LINES,
            **kwargs,
        )

    def run(self, probes: Sequence[Probe]) -> RunResult:
        result = RunResult()
        current: Probe | None = None
        started = self.clock()
        waited = False
        try:
            for probe in probes:
                current = probe
                started = self.clock()
                if self.cancel.cancelled:
                    self._record(result, cancelled_result(probe.name, probe, 0.0, self.cancel.reason))
                    result.cancelled = True
                    break

                if probe.kind is ProbeKind.READINESS and probe.polls and not waited:
                    waited = True
                    result.state = RunState.WAITING_FOR_READINESS
                    outcome = wait_until_ready(
                        probe,
                        self.policy,
                        self.target,
                        clock=self.clock,
                        sleep=self.sleep,
                        on_progress=self.on_progress,
                        cancel=self.cancel,
                    )
                else:
                    result.state = RunState.RUNNING_PROBES
                    outcome = self.execute(probe)

                self._record(result, outcome)
                if outcome.error_kind is ErrorKind.CANCELLED:
                    result.cancelled = True
                    break
                if probe.kind is ProbeKind.READINESS and outcome.outcome is Outcome.FAIL:
                    result.diagnostics = self._fetch_diagnostics(result)
                    return result.finalize(RunState.FAILED_FATAL)
                result.state = RunState.RUNNING_PROBES
        except KeyboardInterrupt:
            logger.info("interrupted during %s", current.name if current else "startup")
            already_marked = bool(result.per_probe) and result.per_probe[-1].error_kind is ErrorKind.CANCELLED
            if current is not None and not already_marked:
                reason = self.cancel.reason if self.cancel.cancelled else "interrupted"
                self._record(
                    result,
                    cancelled_result(current.name, current, self.clock() - started, reason),
                )
            result.cancelled = True
        return result.finalize()

    def execute(self, probe: Probe) -> ProbeResult:
        """Run one probe once, converting every failure into a ProbeResult."""
        timeout = probe.timeout_seconds or self.probe_timeout
        started = self.clock()

        def _result(outcome: Outcome, message: str, **extra) -> ProbeResult:
            return ProbeResult(
                name=probe.name,
                kind=probe.kind,
                outcome=outcome,
                message=message,
                elapsed_seconds=self.clock() - started,
                **extra,
            )

        try:
            value = probe.action(self.target, timeout)
        except TargetTimeout as exc:
            logger.debug("%s timed out: %s", probe.name, exc.detail)
            return _result(
                _failure_outcome(probe.kind),
                f"{probe.name} timed out after {timeout:g}s",
                detail=exc.detail,
                error_kind=ErrorKind.EXECUTION_TIMEOUT,
            )
        except TargetError as exc:
            return _result(
                _failure_outcome(probe.kind),
                probe.render(probe.on_error_message, error=exc.detail),
                detail=exc.detail,
                error_kind=_failure_kind(probe.kind),
            )
        except Exception as exc:  # noqa: BLE001
            logger.debug("%s action raised", probe.name, exc_info=True)
            error = f"{type(exc).__name__}: {exc}"
            return _result(
                _failure_outcome(probe.kind),
                probe.render(probe.on_error_message, error=error),
                detail=error,
                error_kind=_failure_kind(probe.kind),
            )

        try:
            verdict = probe.predicate(value)
        except Exception as exc:  # noqa: BLE001
            error = f"could not evaluate result {value!r}: {type(exc).__name__}: {exc}"
            return _result(
                _failure_outcome(probe.kind),
                probe.render(probe.on_fail_message, value=value),
                detail=error,
                error_kind=_failure_kind(probe.kind),
            )

        if verdict is Outcome.PASS:
            return _result(Outcome.PASS, probe.render(probe.on_pass_message, value=value))

        outcome = Outcome.WARN if verdict is Outcome.WARN else _failure_outcome(probe.kind)
        return _result(
            outcome,
            probe.render(probe.on_fail_message, value=value),
            error_kind=ErrorKind.SOFT_WARNING if outcome is Outcome.WARN else ErrorKind.ASSERTION_FAILURE,
        )

    def _record(self, result: RunResult, probe_result: ProbeResult) -> None:
        result.append(probe_result)
        if self.on_result is not None:
            self.on_result(probe_result)

    def _fetch_diagnostics(self, result: RunResult) -> str:
        try:
            return self.target.logs(self.log_tail_lines, self.probe_timeout)
        except KeyboardInterrupt:
            # the fatal entry is already recorded; keep the run fatal
            result.cancelled = True
            return "container log fetch interrupted"
        except TargetError as exc:
            return f"could not fetch container logs: {exc.detail}"
        except Exception as exc:  # noqa: BLE001
            return f"could not fetch container logs: {exc}"
