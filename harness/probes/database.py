"""
harness/probes/database.py — Connection, schema, and query checks.

The demo seed creates its tables in `public`; performance_test and
user_orders are the two the tutorials lean on, so both must hold rows.
A missing table and an empty table produce different messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from harness import Probe, ProbeKind
from harness.probes import at_least, executes, readiness, scalar

if TYPE_CHECKING:
    from config.settings import Settings
    from harness.target import Target

SEEDED_TABLES = ("performance_test", "user_orders")

# pg_stat_checkpointer split out of pg_stat_bgwriter in PostgreSQL 17
CHECKPOINTER_MIN_VERSION = 170000


def connection_probe(cfg: Settings) -> Probe:
    return Probe(
        name="database connection",
        kind=ProbeKind.READINESS,
        action=readiness,
        on_pass_message="Database connection successful",
        on_fail_message="Database connection to {database} failed",
        context={"database": cfg.PGDATABASE},
    )


def _short_version(target: Target, timeout: float) -> str:
    full = str(target.scalar("SELECT version()", timeout))
    return " ".join(full.split()[:2])


def checkpoint_stats(target: Target, timeout: float) -> list[tuple[Any, ...]]:
    version = int(str(target.scalar("SHOW server_version_num", timeout)).strip())
    if version >= CHECKPOINTER_MIN_VERSION:
        sql = "SELECT num_timed, num_requested FROM pg_stat_checkpointer"
    else:
        sql = "SELECT checkpoints_timed, checkpoints_req FROM pg_stat_bgwriter"
    return target.query(sql, timeout)


def row_count_probe(table: str) -> Probe:
    return Probe(
        name=f"{table} rows",
        kind=ProbeKind.ASSERTION,
        action=scalar(f"SELECT COUNT(*) FROM {table}"),
        predicate=at_least(1),
        on_pass_message="{table} table: {value} records",
        on_fail_message="{table} table is empty (0 rows)",
        on_error_message="{table} table is missing or unreadable: {error}",
        context={"table": table},
    )


def build_probes(cfg: Settings) -> list[Probe]:
    probes = [
        connection_probe(cfg),
        Probe(
            name="PostgreSQL version",
            kind=ProbeKind.INFORMATIONAL,
            action=_short_version,
            on_pass_message="Server version: {value}",
            on_error_message="Could not read PostgreSQL version: {error}",
        ),
        Probe(
            name="demo tables exist",
            kind=ProbeKind.ASSERTION,
            action=scalar("SELECT COUNT(*) FROM pg_tables WHERE schemaname = 'public'"),
            predicate=at_least(cfg.MIN_DEMO_TABLES),
            on_pass_message="Found {value} demo tables",
            on_fail_message="Expected at least {expected} tables, found {value}",
            on_error_message="Could not count demo tables: {error}",
            context={"expected": cfg.MIN_DEMO_TABLES},
        ),
    ]
    probes.extend(row_count_probe(table) for table in SEEDED_TABLES)
    probes.extend(
        [
            Probe(
                name="sample query",
                kind=ProbeKind.ASSERTION,
                action=executes(
                    "SELECT 'Query test successful' AS result, COUNT(*) AS total_users "
                    "FROM performance_test"
                ),
                on_pass_message="Sample query executed successfully",
                on_error_message="Sample query failed: {error}",
            ),
            Probe(
                name="monitoring queries",
                kind=ProbeKind.ASSERTION,
                action=executes(
                    "SELECT schemaname || '.' || relname AS table_name, seq_scan "
                    "FROM pg_stat_user_tables LIMIT 1"
                ),
                on_pass_message="Monitoring queries work correctly",
                on_error_message="Monitoring queries failed: {error}",
            ),
            Probe(
                name="troubleshooting queries",
                kind=ProbeKind.ASSERTION,
                action=checkpoint_stats,
                on_pass_message="Troubleshooting queries work correctly",
                on_error_message="Troubleshooting queries failed: {error}",
            ),
        ]
    )
    return probes
