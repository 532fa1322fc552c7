"""
config/settings.py — Canonical configuration contract for pg_tuning_probe.

Uses pydantic-settings to load, validate, and type-check all environment
variables the probe runner consumes: where the target lives, how to reach it,
and how long to wait for it.

Two usage modes:
  Production / CLI:
      cfg = load_settings()              # reads from .env + os.environ
      cfg = load_settings("env/ci.env")  # override env file path

  Tests (isolated — no env file, no os.environ bleed):
      cfg = Settings(TRANSPORT="direct", PGPASSWORD="secret", ...)
      # All values come exclusively from kwargs → clean, reproducible.
"""
from __future__ import annotations

import os
import re
from typing import Literal

from pydantic import ValidationInfo, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from harness.wait import RetryPolicy

DEFAULT_DEMO_FILES = (
    "step-by-step-tutorial.sql,"
    "tuning-queries.sql,"
    "monitoring-dashboard.sql,"
    "performance-benchmarks.sql,"
    "advanced-tuning-queries.sql,"
    "query-analysis.sql,"
    "log-analysis-pgbadger.sql"
)


class Settings(BaseSettings):
    # Settings() reads purely from kwargs. load_settings() is the explicit
    # production entry point that merges the env file and os.environ.
    model_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)

    # -------------------------------------------------------------------------
    # Transport: docker exec into the demo container, or a direct TCP session
    # -------------------------------------------------------------------------
    TRANSPORT: Literal["docker", "direct"] = "docker"
    CONTAINER_NAME: str = "pg-tuning-demo"

    # -------------------------------------------------------------------------
    # Connection (libpq-style names, same as the compose file exports)
    # -------------------------------------------------------------------------
    PGHOST: str = "localhost"
    PGPORT: int = 5432
    PGDATABASE: str = "tuning_demo"
    PGUSER: str = "demo_user"
    PGPASSWORD: str | None = "demo_pass"

    # -------------------------------------------------------------------------
    # Readiness wait
    # -------------------------------------------------------------------------
    READY_TIMEOUT_SECONDS: int = 60
    READY_POLL_SECONDS: int = 2
    READY_PROGRESS_SECONDS: int = 10

    # -------------------------------------------------------------------------
    # Per-probe bounds and diagnostics
    # -------------------------------------------------------------------------
    PROBE_TIMEOUT_SECONDS: int = 30
    LOG_TAIL_LINES: int = 20

    # -------------------------------------------------------------------------
    # Expectations
    # -------------------------------------------------------------------------
    MIN_DEMO_TABLES: int = 5
    MIN_BUFFER_HIT_RATIO: float = 90.0
    DEMO_DATA_DIR: str = "demo-data"
    DEMO_FILES: str = DEFAULT_DEMO_FILES

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"

    # -------------------------------------------------------------------------
    # Convenience properties
    # -------------------------------------------------------------------------

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            timeout_seconds=self.READY_TIMEOUT_SECONDS,
            interval_seconds=self.READY_POLL_SECONDS,
            progress_every_seconds=self.READY_PROGRESS_SECONDS,
        )

    @property
    def demo_files(self) -> list[str]:
        return [name.strip() for name in self.DEMO_FILES.split(",") if name.strip()]

    @property
    def psql_command(self) -> str:
        """Interactive psql command a user can paste after a successful run."""
        if self.TRANSPORT == "docker":
            return f"docker exec -it {self.CONTAINER_NAME} psql -U {self.PGUSER} -d {self.PGDATABASE}"
        return f"psql -h {self.PGHOST} -p {self.PGPORT} -U {self.PGUSER} -d {self.PGDATABASE}"

    @property
    def connection_summary(self) -> list[tuple[str, str]]:
        return [
            ("Host", self.PGHOST),
            ("Port", str(self.PGPORT)),
            ("Database", self.PGDATABASE),
            ("Username", self.PGUSER),
            ("Password", self.PGPASSWORD or "<not set>"),
        ]

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    @field_validator("TRANSPORT", "LOG_LEVEL", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Strip trailing whitespace that GNU make leaves after include .env."""
        return v.strip() if isinstance(v, str) else v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @field_validator(
        "READY_TIMEOUT_SECONDS",
        "READY_POLL_SECONDS",
        "READY_PROGRESS_SECONDS",
        "PROBE_TIMEOUT_SECONDS",
        "LOG_TAIL_LINES",
    )
    @classmethod
    def must_be_positive(cls, v: int, info: ValidationInfo) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @field_validator("MIN_DEMO_TABLES")
    @classmethod
    def must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("MIN_DEMO_TABLES must be >= 0")
        return v

    @field_validator("MIN_BUFFER_HIT_RATIO")
    @classmethod
    def ratio_in_range(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError("MIN_BUFFER_HIT_RATIO must be between 0 and 100")
        return v

    @model_validator(mode="after")
    def validate_combo(self) -> Settings:
        if self.READY_POLL_SECONDS >= self.READY_TIMEOUT_SECONDS:
            raise ValueError(
                "READY_POLL_SECONDS must be less than READY_TIMEOUT_SECONDS"
            )
        if self.TRANSPORT == "direct" and not self.PGPASSWORD:
            raise ValueError(
                "TRANSPORT=direct requires PGPASSWORD. "
                "Set it in .env or use TRANSPORT=docker to exec into the container."
            )
        return self


def load_settings(env_file: str = ".env") -> Settings:
    """Load and validate settings from an env file + os.environ.

    os.environ takes precedence over env file values — same behaviour as
    Makefile's `include .env` + `export`. A missing env file is not an error;
    defaults match the demo docker-compose stack.

    Raises:
        ValidationError: if any value is invalid.
        ValueError: if the combination is incompatible (e.g. direct without a password).
    """
    file_vals: dict[str, str] = {}
    try:
        with open(env_file, encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                k, _, v = line.partition("=")
                k = k.strip()
                # Strip inline comments: "docker   # docker | direct" → "docker"
                v = re.sub(r"\s+#.*$", "", v.strip())
                if k:
                    file_vals[k] = v
    except FileNotFoundError:
        pass
    merged = {**file_vals, **os.environ}  # os.environ wins
    known = {k: v for k, v in merged.items() if k in Settings.model_fields}
    return Settings(**known)
