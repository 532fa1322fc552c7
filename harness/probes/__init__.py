"""
harness/probes — Probe tables for each diagnostic concern.

Each module exposes build_probes(cfg) returning an ordered list of Probe
objects. harness.suites strings them together into runnable suites.

The helpers below build the read-only actions and predicates those tables
share. An action takes (target, timeout) and returns a value; a predicate
maps that value to an Outcome.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from harness import Outcome

if TYPE_CHECKING:
    from harness.target import Target

Action = Callable[["Target", float], Any]


def readiness(target: Target, timeout: float) -> bool:
    return target.is_ready(timeout)


def scalar(sql: str) -> Action:
    def action(target: Target, timeout: float) -> Any:
        return target.scalar(sql, timeout)

    return action


def rows(sql: str) -> Action:
    def action(target: Target, timeout: float) -> list[tuple[Any, ...]]:
        return target.query(sql, timeout)

    return action


def executes(sql: str) -> Action:
    """Action that only cares whether `sql` runs; the rows are discarded."""

    def action(target: Target, timeout: float) -> bool:
        target.query(sql, timeout)
        return True

    return action


def as_int(value: Any) -> int:
    return int(str(value).strip())


def at_least(minimum: int) -> Callable[[Any], Outcome]:
    def predicate(value: Any) -> Outcome:
        return Outcome.PASS if as_int(value) >= minimum else Outcome.FAIL

    return predicate


def not_blank(value: Any) -> Outcome:
    return Outcome.PASS if value is not None and str(value).strip() else Outcome.FAIL
