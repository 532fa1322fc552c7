"""
tests/conftest.py — Shared fixtures and path setup for all tests.

Adds the project root to sys.path so unit tests can import:
    from config.settings import Settings
    from harness.runner import ProbeRunner
    from harness.probes import database

Fixtures:
    clock           FakeClock whose sleep() advances time instantly
    scripted_target factory for a Target that answers SQL from a dict
"""
import pathlib
import sys

import pytest

# Make project root importable without installing as a package
PROJECT_ROOT = pathlib.Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from harness.target import TargetError  # noqa: E402


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return False


class ScriptedTarget:
    """Answers queries from `answers`; an Exception value is raised instead."""

    def __init__(
        self, answers=None, ready=True, logs="", resources="12MiB / 1GiB, 0.5%", engine="27.1.1"
    ):
        self.answers = answers or {}
        self.ready = ready
        self.log_text = logs
        self.resources = resources
        self.engine = engine
        self.queries: list[str] = []
        self.log_calls = 0

    def _answer(self, sql):
        self.queries.append(sql)
        for fragment, value in self.answers.items():
            if fragment in sql:
                if isinstance(value, Exception):
                    raise value
                return value
        raise TargetError(f"no scripted answer for: {sql}")

    def is_ready(self, timeout):
        if isinstance(self.ready, BaseException):
            raise self.ready
        if not self.ready:
            raise TargetError("pg_isready exited 2: no response")
        return True

    def query(self, sql, timeout):
        value = self._answer(sql)
        return value if isinstance(value, list) else [(value,)]

    def scalar(self, sql, timeout):
        value = self._answer(sql)
        return value[0][0] if isinstance(value, list) else value

    def logs(self, tail, timeout):
        self.log_calls += 1
        if isinstance(self.log_text, BaseException):
            raise self.log_text
        return self.log_text

    def resource_usage(self, timeout):
        if isinstance(self.resources, Exception):
            raise self.resources
        return self.resources

    def engine_version(self, timeout):
        if isinstance(self.engine, Exception):
            raise self.engine
        return self.engine


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scripted_target():
    return ScriptedTarget
