"""
Tests for the state reporter — report lines, summary, exit status.
"""

import pytest

from hostconverge.core.engine.reporter import (
    ExitStatus,
    exit_status,
    format_duration,
    format_result,
    format_summary,
    render_report,
)
from hostconverge.core.errors import ErrorKind
from hostconverge.core.models import Outcome, ResourceResult, RunReport


def _result(rid: str, outcome: Outcome, ms: int = 5) -> ResourceResult:
    return ResourceResult(resource_id=rid, kind="Package", outcome=outcome, duration_ms=ms)


class TestFormatting:
    @pytest.mark.parametrize(
        "ms, expected",
        [(0, "0ms"), (999, "999ms"), (1500, "1.5s"), (61_000, "1m01s"), (600_000, "10m00s")],
    )
    def test_duration(self, ms, expected):
        assert format_duration(ms) == expected

    def test_applied_line(self):
        line = format_result(_result("nginx", Outcome.applied("installed nginx 1.24.0"), 12), id_width=10)
        assert line.split()[:4] == ["✓", "nginx", "applied", "12ms"]
        assert line.endswith("  installed nginx 1.24.0")

    def test_failed_line_carries_kind(self):
        outcome = Outcome.failed("systemctl not found", ErrorKind.PROBE_UNAVAILABLE)
        line = format_result(_result("turn", outcome))
        assert line.startswith("✗ turn")
        assert line.endswith("[probe_unavailable] systemctl not found")

    def test_skipped_line_names_cause(self):
        line = format_result(_result("web", Outcome.skipped("nginx"), 0))
        assert line.split()[:3] == ["⊘", "web", "skipped"]
        assert line.endswith("skipped: nginx")

    def test_dry_run_shows_pending(self):
        line = format_result(_result("conf", Outcome.applied("create /etc/x", dry_run=True)))
        assert "pending" in line
        assert line.endswith("would create /etc/x")

    def test_ids_aligned(self):
        report = RunReport(results=[
            _result("a", Outcome.unchanged()),
            _result("longer-id", Outcome.unchanged()),
        ])
        lines = render_report(report)
        assert lines[0].index("unchanged") == lines[1].index("unchanged")


class TestSummary:
    def test_success(self):
        report = RunReport(results=[
            _result("a", Outcome.unchanged(), 100),
            _result("b", Outcome.applied("x"), 1400),
        ])
        assert format_summary(report) == "OK: 1 unchanged, 1 applied, 0 failed, 0 skipped in 1.5s"
        assert exit_status(report) == ExitStatus.SUCCESS

    def test_failure(self):
        report = RunReport(results=[
            _result("a", Outcome.failed("boom")),
            _result("b", Outcome.skipped("a")),
        ])
        assert format_summary(report).startswith("FAILED: 0 unchanged, 0 applied, 1 failed, 1 skipped")
        assert exit_status(report) == ExitStatus.RESOURCES_FAILED

    def test_cancelled(self):
        report = RunReport(cancelled=True, results=[_result("a", Outcome.skipped("run cancelled"))])
        assert format_summary(report).startswith("FAILED (cancelled):")

    def test_dry_run_wording(self):
        report = RunReport(dry_run=True, results=[_result("a", Outcome.applied("x", dry_run=True))])
        assert "1 pending" in format_summary(report)

    def test_render_ends_with_summary(self):
        report = RunReport(results=[_result("a", Outcome.unchanged()), _result("b", Outcome.unchanged())])
        lines = render_report(report)
        assert len(lines) == 3
        assert lines[-1].startswith("OK:")

    def test_exit_codes_are_distinct(self):
        assert [int(s) for s in ExitStatus] == [0, 1, 2, 3]
