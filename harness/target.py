"""
harness/target.py — Transports for talking to the target PostgreSQL instance.

DockerPsqlTarget execs pg_isready / psql inside the demo container, the same
commands an operator would type. DirectTarget opens a libpq session with
psycopg2 for setups where the database is not a local container.

Every call is independent (fresh process or fresh connection), read-only, and
bounded by the timeout the caller passes in. Failures surface as TargetError;
an exceeded bound surfaces as TargetTimeout.
"""

from __future__ import annotations

import logging
import subprocess
from typing import TYPE_CHECKING, Any, Protocol

import psycopg2
import psycopg2.extensions

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

# psql unaligned output; unit separator never appears in catalog values
FIELD_SEPARATOR = "\x1f"


class TargetError(Exception):
    """A command, connection, or query against the target failed."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class TargetTimeout(TargetError):
    """A single call exceeded its execution bound."""


class Target(Protocol):
    def is_ready(self, timeout: float) -> bool: ...

    def query(self, sql: str, timeout: float) -> list[tuple[Any, ...]]: ...

    def scalar(self, sql: str, timeout: float) -> Any: ...

    def logs(self, tail: int, timeout: float) -> str: ...

    def resource_usage(self, timeout: float) -> str: ...

    def engine_version(self, timeout: float) -> str: ...


def first_value(rows: list[tuple[Any, ...]], sql: str) -> Any:
    if not rows or not rows[0]:
        raise TargetError(f"query returned no rows: {sql.strip()[:80]}")
    return rows[0][0]


def _short(text: str, limit: int = 500) -> str:
    return " ".join(text.split())[:limit]


class DockerPsqlTarget:
    def __init__(self, container: str, user: str, database: str) -> None:
        self.container = container
        self.user = user
        self.database = database

    @classmethod
    def from_settings(cls, cfg: Settings) -> DockerPsqlTarget:
        return cls(cfg.CONTAINER_NAME, cfg.PGUSER, cfg.PGDATABASE)

    def _run(self, args: list[str], timeout: float) -> subprocess.CompletedProcess:
        logger.debug("exec (timeout %ss): %s", timeout, " ".join(args))
        try:
            return subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise TargetTimeout(f"timed out ({timeout:g}s): {' '.join(args[:4])}") from exc
        except OSError as exc:
            raise TargetError(f"could not run {args[0]}: {exc}") from exc

    def _exec(self, *command: str) -> list[str]:
        return ["docker", "exec", self.container, *command]

    def is_ready(self, timeout: float) -> bool:
        result = self._run(
            self._exec("pg_isready", "-U", self.user, "-d", self.database),
            timeout,
        )
        if result.returncode != 0:
            output = _short(result.stdout + " " + result.stderr)
            raise TargetError(
                f"pg_isready exited {result.returncode}" + (f": {output}" if output else "")
            )
        return True

    def query(self, sql: str, timeout: float) -> list[tuple[Any, ...]]:
        result = self._run(
            self._exec(
                "psql",
                "-X",
                "-q",
                "-A",
                "-t",
                "-v",
                "ON_ERROR_STOP=1",
                "-F",
                FIELD_SEPARATOR,
                "-U",
                self.user,
                "-d",
                self.database,
                "-c",
                sql,
            ),
            timeout,
        )
        if result.returncode != 0:
            raise TargetError(_short(result.stderr) or f"psql exited {result.returncode}")
        return parse_psql_rows(result.stdout)

    def scalar(self, sql: str, timeout: float) -> Any:
        return first_value(self.query(sql, timeout), sql)

    def logs(self, tail: int, timeout: float) -> str:
        result = self._run(["docker", "logs", self.container, "--tail", str(tail)], timeout)
        if result.returncode != 0:
            raise TargetError(_short(result.stderr) or f"docker logs exited {result.returncode}")
        # postgres writes its log to stderr
        return (result.stdout + result.stderr).strip()

    def resource_usage(self, timeout: float) -> str:
        result = self._run(
            [
                "docker",
                "stats",
                self.container,
                "--no-stream",
                "--format",
                "{{.MemUsage}}\t{{.CPUPerc}}",
            ],
            timeout,
        )
        if result.returncode != 0:
            raise TargetError(_short(result.stderr) or f"docker stats exited {result.returncode}")
        lines = [ln.strip() for ln in result.stdout.splitlines() if ln.strip()]
        if not lines:
            raise TargetError("docker stats returned no data")
        mem, _, cpu = lines[-1].partition("\t")
        return f"memory {mem.strip()}, CPU {cpu.strip()}" if cpu else lines[-1]

    def engine_version(self, timeout: float) -> str:
        """Docker daemon version; fails when the daemon is down or docker is missing."""
        result = self._run(["docker", "info", "--format", "{{.ServerVersion}}"], timeout)
        version = result.stdout.strip()
        if result.returncode != 0 or not version:
            raise TargetError(_short(result.stderr) or f"docker info exited {result.returncode}")
        return version


def parse_psql_rows(stdout: str) -> list[tuple[str, ...]]:
    """Split `psql -A -t` output into rows of string fields."""
    # a NULL single-column row prints as an empty line; keep it
    return [tuple(line.split(FIELD_SEPARATOR)) for line in stdout.splitlines()]


class DirectTarget:
    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str | None,
    ) -> None:
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password

    @classmethod
    def from_settings(cls, cfg: Settings) -> DirectTarget:
        return cls(cfg.PGHOST, cfg.PGPORT, cfg.PGDATABASE, cfg.PGUSER, cfg.PGPASSWORD)

    def _connect(self, timeout: float) -> psycopg2.extensions.connection:
        statement_ms = max(1, int(timeout * 1000))
        try:
            conn = psycopg2.connect(
                host=self.host,
                port=self.port,
                dbname=self.database,
                user=self.user,
                password=self.password,
                # libpq treats values below 2 as 2
                connect_timeout=max(2, int(timeout)),
                options=f"-c statement_timeout={statement_ms} -c default_transaction_read_only=on",
            )
        except psycopg2.OperationalError as exc:
            message = _short(str(exc))
            if "timeout expired" in message:
                raise TargetTimeout(f"connect timed out ({timeout:g}s)") from exc
            raise TargetError(message) from exc
        conn.set_session(readonly=True, autocommit=True)
        return conn

    def query(self, sql: str, timeout: float) -> list[tuple[Any, ...]]:
        logger.debug("query %s:%s/%s (timeout %ss): %s", self.host, self.port, self.database, timeout, sql)
        conn = self._connect(timeout)
        try:
            with conn.cursor() as cur:
                cur.execute(sql)
                if cur.description is None:
                    return []
                return [tuple(row) for row in cur.fetchall()]
        except psycopg2.extensions.QueryCanceledError as exc:
            raise TargetTimeout(f"statement timed out ({timeout:g}s)") from exc
        except psycopg2.Error as exc:
            raise TargetError(_short(str(exc))) from exc
        finally:
            conn.close()

    def is_ready(self, timeout: float) -> bool:
        self.query("SELECT 1", timeout)
        return True

    def scalar(self, sql: str, timeout: float) -> Any:
        return first_value(self.query(sql, timeout), sql)

    def logs(self, tail: int, timeout: float) -> str:  # noqa: ARG002
        raise TargetError("server logs are only available with TRANSPORT=docker")

    def resource_usage(self, timeout: float) -> str:  # noqa: ARG002
        raise TargetError("container resources are only available with TRANSPORT=docker")

    def engine_version(self, timeout: float) -> str:  # noqa: ARG002
        raise TargetError("docker engine checks are only available with TRANSPORT=docker")


def build_target(cfg: Settings) -> Target:
    if cfg.TRANSPORT == "direct":
        return DirectTarget.from_settings(cfg)
    return DockerPsqlTarget.from_settings(cfg)
