"""
Run use case — converge the host to a manifest.

This is the top-level orchestrator: it loads the manifest, plans it,
builds the handlers over an adapter registry, executes, and derives
the exit status. The full vertical slice from declared state to a
RunReport.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from hostconverge.adapters.registry import AdapterRegistry
from hostconverge.core.config.loader import ConfigError, load_manifest
from hostconverge.core.engine.executor import execute_plan
from hostconverge.core.engine.planner import Plan, build_plan
from hostconverge.core.engine.reporter import ExitStatus, exit_status
from hostconverge.core.errors import PlanningError
from hostconverge.core.models.outcome import RunPolicy, RunReport
from hostconverge.core.resources import build_handlers

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Result of converging a manifest."""

    report: RunReport | None = None
    plan: Plan | None = None
    error: str | None = None
    exit_status: ExitStatus = ExitStatus.SUCCESS

    def to_dict(self) -> dict:
        result: dict = {"exit_status": int(self.exit_status)}
        if self.error:
            result["error"] = self.error
            return result
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def run_manifest(
    config_path: Path | None = None,
    overrides: dict[str, str] | None = None,
    policy: RunPolicy = RunPolicy.FAIL_FAST,
    dry_run: bool = False,
    timeout: float | None = None,
    jobs: int = 1,
    mock_mode: bool = False,
    root: Path | None = None,
    registry: AdapterRegistry | None = None,
    cancel: threading.Event | None = None,
) -> RunResult:
    """Converge the host to the declared manifest.

    Args:
        config_path: Optional explicit path to hostconverge.yml.
        overrides: ``--set`` variables.
        policy: fail_fast or continue_on_error.
        dry_run: Probe only, report what would change.
        timeout: Seconds allowed per check() and per apply().
        jobs: Concurrent workers for independent resources.
        mock_mode: Use in-memory collaborators instead of host tools.
        root: Re-root file paths the engine manages (staging, tests).
        registry: Optional pre-configured adapter registry.
        cancel: Set to stop starting new resources.

    Returns:
        RunResult. Planning and configuration errors leave ``report``
        empty: nothing was executed.
    """
    result = RunResult()

    # ── Load manifest ────────────────────────────────────────────
    try:
        graph = load_manifest(config_path, overrides)
    except ConfigError as e:
        result.error = str(e)
        result.exit_status = ExitStatus.CONFIG_ERROR
        return result

    # ── Plan ─────────────────────────────────────────────────────
    try:
        plan = build_plan(graph)
    except PlanningError as e:
        logger.error("Planning failed, nothing was executed: %s", e)
        result.error = str(e)
        result.exit_status = ExitStatus.PLANNING_ERROR
        return result
    result.plan = plan

    # ── Set up adapter registry ──────────────────────────────────
    if registry is None:
        registry = AdapterRegistry.mock() if mock_mode else AdapterRegistry.default(timeout=timeout)

    # ── Execute ──────────────────────────────────────────────────
    report = execute_plan(
        plan,
        build_handlers(registry, root=root),
        policy=policy,
        dry_run=dry_run,
        timeout=timeout,
        max_workers=jobs,
        cancel=cancel,
    )
    result.report = report
    result.exit_status = exit_status(report)
    return result
