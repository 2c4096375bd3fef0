"""
State reporter — render a RunReport and derive the exit status.

Rendering is deterministic: one line per resource in plan order,
then a summary line. Colour is left to the caller (the CLI styles
each line by its status).
"""

from __future__ import annotations

from enum import IntEnum

from hostconverge.core.models.outcome import OutcomeStatus, ResourceResult, RunReport


class ExitStatus(IntEnum):
    """Process exit codes.

    RESOURCES_FAILED means partial state may have been applied and the
    report says exactly what; re-running is safe. PLANNING_ERROR and
    CONFIG_ERROR mean nothing was touched.
    """

    SUCCESS = 0
    RESOURCES_FAILED = 1
    PLANNING_ERROR = 2
    CONFIG_ERROR = 3


STATUS_COLORS = {
    OutcomeStatus.UNCHANGED: "white",
    OutcomeStatus.APPLIED: "green",
    OutcomeStatus.FAILED: "red",
    OutcomeStatus.SKIPPED: "yellow",
}

_ICONS = {
    OutcomeStatus.UNCHANGED: "·",
    OutcomeStatus.APPLIED: "✓",
    OutcomeStatus.FAILED: "✗",
    OutcomeStatus.SKIPPED: "⊘",
}


def exit_status(report: RunReport) -> ExitStatus:
    return ExitStatus.SUCCESS if report.success else ExitStatus.RESOURCES_FAILED


def format_duration(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60_000:
        return f"{ms / 1000:.1f}s"
    minutes, seconds = divmod(ms // 1000, 60)
    return f"{minutes}m{seconds:02d}s"


def format_result(result: ResourceResult, id_width: int = 0) -> str:
    """``✓ nginx-conf   applied    12ms  created /etc/nginx/...``"""
    status = result.outcome.status
    label = status.value
    if result.outcome.dry_run and status == OutcomeStatus.APPLIED:
        label = "pending"
    line = (
        f"{_ICONS[status]} {result.resource_id:<{id_width}}  "
        f"{label:<9}  {format_duration(result.duration_ms):>7}"
    )
    summary = result.outcome.summary
    return f"{line}  {summary}" if summary else line


def format_summary(report: RunReport) -> str:
    counts = report.counts
    applied_label = "pending" if report.dry_run else "applied"
    parts = [
        f"{counts['unchanged']} unchanged",
        f"{counts['applied']} {applied_label}",
        f"{counts['failed']} failed",
        f"{counts['skipped']} skipped",
    ]
    state = "OK" if report.success else "FAILED"
    if report.cancelled:
        state += " (cancelled)"
    return f"{state}: {', '.join(parts)} in {format_duration(report.total_ms)}"


def render_report(report: RunReport) -> list[str]:
    """One line per resource, in plan order, then the summary line."""
    width = max((len(r.resource_id) for r in report.results), default=0)
    lines = [format_result(r, width) for r in report.results]
    lines.append(format_summary(report))
    return lines
