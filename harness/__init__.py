"""
harness — Readiness & diagnostic probe runner for the PostgreSQL tuning demo.

A Probe is one named, read-only check against the target database. Probe
suites in harness/probes/ build ordered lists of them; runner.ProbeRunner
executes a list and returns a RunResult; report.render turns that into text.

Usage:
    from harness import Probe, ProbeKind, Outcome
    from harness.runner import ProbeRunner
    from harness.suites import build_suite

    probes = build_suite("setup", cfg)
    result = ProbeRunner.from_settings(cfg, target).run(probes)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from harness.target import Target


class Outcome(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


class ProbeKind(str, Enum):
    READINESS = "readiness"
    ASSERTION = "assertion"
    INFORMATIONAL = "informational"


class ErrorKind(str, Enum):
    READINESS_TIMEOUT = "ReadinessTimeout"
    ASSERTION_FAILURE = "AssertionFailure"
    SOFT_WARNING = "SoftWarning"
    EXECUTION_TIMEOUT = "ExecutionTimeout"
    CANCELLED = "Cancelled"


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    WAITING_FOR_READINESS = "waiting_for_readiness"
    RUNNING_PROBES = "running_probes"
    FAILED_FATAL = "failed_fatal"
    COMPLETED_SUCCESS = "completed_success"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    COMPLETED_FAILED = "completed_failed"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {
        RunState.FAILED_FATAL,
        RunState.COMPLETED_SUCCESS,
        RunState.COMPLETED_WITH_WARNINGS,
        RunState.COMPLETED_FAILED,
    }
)


class Aggregate(str, Enum):
    SUCCESS = "success"
    WITH_WARNINGS = "with_warnings"
    FAILED = "failed"


def _frozen_mapping(value: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(value or {}))


def passes(_: Any) -> Outcome:
    """Predicate for probes whose action succeeding is the whole check."""
    return Outcome.PASS


@dataclass(frozen=True)
class Probe:
    name: str
    kind: ProbeKind
    action: Callable[[Target, float], Any]
    predicate: Callable[[Any], Outcome] = passes
    on_pass_message: str = "{name}: {value}"
    on_fail_message: str = "{name}: unexpected result {value}"
    on_error_message: str = "{name}: {error}"
    context: Mapping[str, Any] = field(default_factory=dict)
    timeout_seconds: float | None = None
    # READINESS only: False runs the check once instead of polling it
    polls: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "context", _frozen_mapping(self.context))

    def render(self, template: str, **values: Any) -> str:
        try:
            return template.format(**{"name": self.name, **self.context, **values})
        except (KeyError, IndexError, ValueError):
            return f"{template} {values}"


@dataclass
class ProbeResult:
    name: str
    kind: ProbeKind
    outcome: Outcome
    message: str
    detail: str | None = None
    elapsed_seconds: float = 0.0
    error_kind: ErrorKind | None = None

    @property
    def status(self) -> str:
        """Report vocabulary: success | error | warning."""
        if self.outcome is Outcome.PASS:
            return "success"
        if self.outcome is Outcome.WARN:
            return "warning"
        return "error"

    def __str__(self) -> str:
        label = {Outcome.PASS: "PASS", Outcome.WARN: "WARN", Outcome.FAIL: "FAIL"}[self.outcome]
        line = f"  [{label}] {self.name}: {self.message}"
        if self.detail and self.outcome is not Outcome.PASS:
            line += f"\n         {self.detail}"
        return line


@dataclass
class RunResult:
    per_probe: list[ProbeResult] = field(default_factory=list)
    state: RunState = RunState.NOT_STARTED
    cancelled: bool = False
    diagnostics: str | None = None
    _finalized: bool = field(default=False, repr=False)

    def append(self, result: ProbeResult) -> None:
        if self._finalized:
            raise RuntimeError("RunResult is finalized; no further results may be appended")
        self.per_probe.append(result)

    def finalize(self, state: RunState | None = None) -> RunResult:
        if state is None:
            state = {
                Aggregate.SUCCESS: RunState.COMPLETED_SUCCESS,
                Aggregate.WITH_WARNINGS: RunState.COMPLETED_WITH_WARNINGS,
                Aggregate.FAILED: RunState.COMPLETED_FAILED,
            }[self.aggregate]
        if not state.terminal:
            raise ValueError(f"cannot finalize a run in non-terminal state {state.value}")
        self.state = state
        self._finalized = True
        return self

    @property
    def finalized(self) -> bool:
        return self._finalized

    def count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.per_probe if r.outcome is outcome)

    @property
    def aggregate(self) -> Aggregate:
        if self.cancelled or self.count(Outcome.FAIL):
            return Aggregate.FAILED
        if self.count(Outcome.WARN):
            return Aggregate.WITH_WARNINGS
        return Aggregate.SUCCESS

    @property
    def succeeded(self) -> bool:
        return self.aggregate is not Aggregate.FAILED

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1
