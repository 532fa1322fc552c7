"""
harness/probes/files.py — Demo SQL files on the host.

These are local filesystem checks; the target is never touched. A missing
tutorial file is a warning.
"""

from __future__ import annotations

import pathlib
from typing import TYPE_CHECKING

from harness import Outcome, Probe, ProbeKind

if TYPE_CHECKING:
    from config.settings import Settings
    from harness.target import Target


def _exists(path: pathlib.Path):
    def action(target: Target, timeout: float) -> bool:  # noqa: ARG001
        return path.is_file()

    return action


def _found(value: bool) -> Outcome:
    return Outcome.PASS if value else Outcome.FAIL


def demo_file_probe(demo_dir: pathlib.Path, filename: str) -> Probe:
    path = demo_dir / filename
    return Probe(
        name=f"{demo_dir.name}/{filename}",
        kind=ProbeKind.INFORMATIONAL,
        action=_exists(path),
        predicate=_found,
        on_pass_message="Found {path}",
        on_fail_message="Missing {path}",
        context={"path": f"{demo_dir.name}/{filename}"},
    )


def build_probes(cfg: Settings) -> list[Probe]:
    demo_dir = pathlib.Path(cfg.DEMO_DATA_DIR)
    return [demo_file_probe(demo_dir, name) for name in cfg.demo_files]
