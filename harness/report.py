"""
harness/report.py — Human-readable rendering of probe results.

Status vocabulary is fixed: success | error | warning | info, each with one
glyph and one ANSI color. Nothing here talks to the target; render() is a pure
function of a RunResult.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from typing import TextIO

from harness import Aggregate, Outcome, ProbeResult, RunResult

GREEN = "\033[0;32m"
RED = "\033[0;31m"
YELLOW = "\033[1;33m"
BLUE = "\033[0;34m"
NC = "\033[0m"

STATUS_STYLES = {
    "success": ("✅", GREEN),
    "error": ("❌", RED),
    "warning": ("⚠️ ", YELLOW),
    "info": ("ℹ️ ", BLUE),
}

RULE = "=" * 42


def use_color(stream: TextIO | None = None) -> bool:
    """Color only for terminals, and never when NO_COLOR is set."""
    if os.environ.get("NO_COLOR"):
        return False
    stream = stream or sys.stdout
    return hasattr(stream, "isatty") and stream.isatty()


def format_status(status: str, message: str, *, color: bool = True) -> str:
    if status not in STATUS_STYLES:
        raise ValueError(f"unknown status '{status}' (expected one of {', '.join(STATUS_STYLES)})")
    glyph, ansi = STATUS_STYLES[status]
    if color:
        return f"{ansi}{glyph} {message}{NC}"
    return f"{glyph} {message}"


def print_status(status: str, message: str, *, color: bool = True, file: TextIO | None = None) -> None:
    print(format_status(status, message, color=color), file=file or sys.stdout)


def format_result(result: ProbeResult, *, color: bool = True) -> str:
    line = format_status(result.status, result.message, color=color)
    if result.detail and result.outcome is not Outcome.PASS:
        line += "\n" + "\n".join(f"     {ln}" for ln in result.detail.splitlines())
    return line


def _verdict(result: RunResult, title: str) -> tuple[str, str]:
    if result.cancelled:
        return "error", f"{title} cancelled before completion"
    aggregate = result.aggregate
    if aggregate is Aggregate.SUCCESS:
        return "success", f"🎉 {title} completed successfully!"
    if aggregate is Aggregate.WITH_WARNINGS:
        return "warning", f"{title} completed with warnings"
    return "error", f"{title} FAILED"


def render_summary(
    result: RunResult,
    *,
    color: bool = True,
    title: str = "Setup test",
    next_steps: Sequence[str] = (),
    log_tail_lines: int | None = None,
) -> str:
    lines: list[str] = []

    if result.diagnostics:
        heading = (
            f"Container logs (last {log_tail_lines} lines):" if log_tail_lines else "Container logs:"
        )
        lines.append(format_status("info", heading, color=color))
        lines.extend(f"  {ln}" for ln in result.diagnostics.splitlines())

    status, verdict = _verdict(result, title)
    lines.append("")
    lines.append(format_status(status, verdict, color=color))
    lines.append(
        f"   {result.count(Outcome.PASS)} passed, "
        f"{result.count(Outcome.WARN)} warning(s), "
        f"{result.count(Outcome.FAIL)} failed"
    )
    lines.append(RULE)

    if next_steps and result.succeeded:
        lines.append("")
        lines.append(format_status("info", "📚 Next steps:", color=color))
        lines.extend(next_steps)

    return "\n".join(lines)


def render(
    result: RunResult,
    *,
    color: bool = True,
    title: str = "Setup test",
    next_steps: Sequence[str] = (),
    log_tail_lines: int | None = None,
) -> str:
    """Render every probe line in run order, then the summary."""
    body = [format_result(r, color=color) for r in result.per_probe]
    summary = render_summary(
        result,
        color=color,
        title=title,
        next_steps=next_steps,
        log_tail_lines=log_tail_lines,
    )
    return "\n".join([*body, summary])
