"""
harness/probes/container.py — Docker daemon preflight and container resources.

Only meaningful with TRANSPORT=docker; for direct sessions both are left out
rather than reported as a warning on every run.

The daemon check is a one-shot READINESS probe: with Docker down there is
nothing to poll for, so it fails the run straight away instead of letting the
pg_isready wait spin until its timeout.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from harness import Probe, ProbeKind

if TYPE_CHECKING:
    from config.settings import Settings
    from harness.target import Target


def _engine_version(target: Target, timeout: float) -> str:
    return target.engine_version(timeout)


def _resources(target: Target, timeout: float) -> str:
    return target.resource_usage(timeout)


def preflight_probes(cfg: Settings) -> list[Probe]:
    if cfg.TRANSPORT != "docker":
        return []
    return [
        Probe(
            name="docker daemon",
            kind=ProbeKind.READINESS,
            action=_engine_version,
            polls=False,
            on_pass_message="Docker is running (engine {value})",
            on_error_message="Docker is not running. Please start Docker first.",
        )
    ]


def build_probes(cfg: Settings) -> list[Probe]:
    if cfg.TRANSPORT != "docker":
        return []
    return [
        Probe(
            name="container resources",
            kind=ProbeKind.INFORMATIONAL,
            action=_resources,
            on_pass_message="Container resources: {value}",
            on_error_message="Could not read resources for {container}: {error}",
            context={"container": cfg.CONTAINER_NAME},
        )
    ]
