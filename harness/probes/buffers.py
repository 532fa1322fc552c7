"""
harness/probes/buffers.py — Buffer cache observations for shared_buffers tuning.

Read-only snapshot of what the pgbench shared_buffers scenarios look at after
each workload: the configured pool size, database size, heap hit ratio over
the public schema, ungranted locks, and whether pg_buffercache is installed.
Running the workloads themselves (pgbench -i, pg_stat_reset) writes to the
target and is left to the operator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from harness import Outcome, Probe, ProbeKind
from harness.probes import as_int, not_blank, scalar
from harness.probes.database import connection_probe

if TYPE_CHECKING:
    from config.settings import Settings
    from harness.target import Target

SHARED_BUFFERS_SQL = (
    "SELECT setting || ' blocks (' "
    "|| pg_size_pretty(setting::bigint * current_setting('block_size')::bigint) || ')' "
    "FROM pg_settings WHERE name = 'shared_buffers'"
)

HIT_RATIO_SQL = (
    "SELECT COALESCE(sum(heap_blks_hit), 0), COALESCE(sum(heap_blks_read), 0) "
    "FROM pg_statio_user_tables WHERE schemaname = 'public'"
)

TABLE_SIZES_SQL = (
    "SELECT relname, pg_size_pretty(pg_total_relation_size(relid)) "
    "FROM pg_stat_user_tables WHERE schemaname = 'public' "
    "ORDER BY pg_total_relation_size(relid) DESC LIMIT {limit}"
)


@dataclass(frozen=True)
class HitRatio:
    hits: int
    reads: int

    @property
    def percent(self) -> float | None:
        total = self.hits + self.reads
        if total == 0:
            return None
        return round(self.hits * 100.0 / total, 2)

    def __str__(self) -> str:
        if self.percent is None:
            return "n/a (no heap blocks hit or read yet)"
        return f"{self.percent:.2f}% ({self.hits:,} hits / {self.reads:,} reads)"


def hit_ratio(target: Target, timeout: float) -> HitRatio:
    rows = target.query(HIT_RATIO_SQL, timeout)
    hits, reads = rows[0][:2] if rows else (0, 0)
    return HitRatio(hits=int(hits or 0), reads=int(reads or 0))


def hit_ratio_at_least(minimum: float):
    def predicate(value: HitRatio) -> Outcome:
        if value.percent is None:
            return Outcome.WARN
        return Outcome.PASS if value.percent >= minimum else Outcome.FAIL

    return predicate


def _truthy(value: Any) -> Outcome:
    return Outcome.PASS if str(value).strip().lower() in {"t", "true", "1"} else Outcome.FAIL


def _no_lock_waits(value: Any) -> Outcome:
    return Outcome.PASS if as_int(value) == 0 else Outcome.FAIL


def largest_tables(limit: int = 5):
    sql = TABLE_SIZES_SQL.format(limit=int(limit))

    def action(target: Target, timeout: float) -> str:
        return ", ".join(f"{name} {size}" for name, size in target.query(sql, timeout))

    return action


def build_probes(cfg: Settings) -> list[Probe]:
    return [
        connection_probe(cfg),
        Probe(
            name="shared_buffers setting",
            kind=ProbeKind.INFORMATIONAL,
            action=scalar(SHARED_BUFFERS_SQL),
            predicate=not_blank,
            on_pass_message="Current shared_buffers: {value}",
            on_error_message="Could not read shared_buffers: {error}",
        ),
        Probe(
            name="database size",
            kind=ProbeKind.INFORMATIONAL,
            action=scalar("SELECT pg_size_pretty(pg_database_size(current_database()))"),
            predicate=not_blank,
            on_pass_message="Database size: {value}",
            on_error_message="Could not read database size: {error}",
        ),
        Probe(
            name="largest tables",
            kind=ProbeKind.INFORMATIONAL,
            action=largest_tables(),
            predicate=not_blank,
            on_pass_message="Largest tables: {value}",
            on_fail_message="No user tables in the public schema",
            on_error_message="Could not list table sizes: {error}",
        ),
        Probe(
            name="buffer hit ratio",
            kind=ProbeKind.INFORMATIONAL,
            action=hit_ratio,
            predicate=hit_ratio_at_least(cfg.MIN_BUFFER_HIT_RATIO),
            on_pass_message="Buffer hit ratio: {value}",
            on_fail_message="Buffer hit ratio {value} is below {minimum:g}%; consider raising shared_buffers",
            on_error_message="Could not read buffer statistics: {error}",
            context={"minimum": cfg.MIN_BUFFER_HIT_RATIO},
        ),
        Probe(
            name="lock waits",
            kind=ProbeKind.INFORMATIONAL,
            action=scalar("SELECT COUNT(*) FROM pg_locks WHERE NOT granted"),
            predicate=_no_lock_waits,
            on_pass_message="No lock waits",
            on_fail_message="{value} lock request(s) waiting",
            on_error_message="Could not read pg_locks: {error}",
        ),
        Probe(
            name="pg_buffercache extension",
            kind=ProbeKind.INFORMATIONAL,
            action=scalar(
                "SELECT EXISTS (SELECT 1 FROM pg_extension WHERE extname = 'pg_buffercache')"
            ),
            predicate=_truthy,
            on_pass_message="pg_buffercache extension: available",
            on_fail_message=(
                "pg_buffercache extension not installed "
                "(CREATE EXTENSION pg_buffercache for per-relation buffer analysis)"
            ),
            on_error_message="Could not check pg_extension: {error}",
        ),
    ]
