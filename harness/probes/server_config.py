"""
harness/probes/server_config.py — Tuning parameters the tutorials discuss.

Values are shown, not judged: a setting that cannot be read is a warning.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from harness import Probe, ProbeKind
from harness.probes import not_blank, scalar

if TYPE_CHECKING:
    from config.settings import Settings

SHOWN_SETTINGS = ("work_mem", "shared_buffers")


def setting_probe(name: str) -> Probe:
    return Probe(
        name=name,
        kind=ProbeKind.INFORMATIONAL,
        action=scalar(f"SHOW {name}"),
        predicate=not_blank,
        on_pass_message="{setting}: {value}",
        on_fail_message="Could not retrieve {setting} setting",
        on_error_message="Could not retrieve {setting} setting: {error}",
        context={"setting": name},
    )


def build_probes(cfg: Settings) -> list[Probe]:  # noqa: ARG001
    return [setting_probe(name) for name in SHOWN_SETTINGS]
