"""
harness/suites.py — Named probe suites.

  setup    docker daemon → connection → schema/rows/queries → settings → demo files → resources
  buffers  connection → buffer cache observations

Order is part of the contract: later probes assume the ones before them
(row counts assume the connection, queries assume the tables).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from harness.probes import buffers as buffer_probes
from harness.probes import container as container_probes
from harness.probes import database as database_probes
from harness.probes import files as file_probes
from harness.probes import server_config as config_probes

if TYPE_CHECKING:
    from config.settings import Settings
    from harness import Probe


def setup_suite(cfg: Settings) -> list[Probe]:
    probes: list[Probe] = []
    probes.extend(container_probes.preflight_probes(cfg))
    probes.extend(database_probes.build_probes(cfg))
    probes.extend(config_probes.build_probes(cfg))
    probes.extend(file_probes.build_probes(cfg))
    probes.extend(container_probes.build_probes(cfg))
    return probes


def buffers_suite(cfg: Settings) -> list[Probe]:
    return buffer_probes.build_probes(cfg)


SUITES: dict[str, Callable[[Settings], list[Probe]]] = {
    "setup": setup_suite,
    "buffers": buffers_suite,
}


def build_suite(name: str, cfg: Settings) -> list[Probe]:
    try:
        builder = SUITES[name]
    except KeyError:
        raise ValueError(f"unknown suite '{name}' (expected one of: {', '.join(SUITES)})") from None
    return builder(cfg)
