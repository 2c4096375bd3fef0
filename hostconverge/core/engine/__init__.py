"""
Engine — plan, execute, report.

    plan = build_plan(graph)
    report = execute_plan(plan, build_handlers(registry))
    lines = render_report(report)
"""

from hostconverge.core.engine.executor import execute_plan
from hostconverge.core.engine.planner import Plan, build_plan
from hostconverge.core.engine.reporter import ExitStatus, exit_status, render_report

__all__ = [
    "ExitStatus",
    "Plan",
    "build_plan",
    "execute_plan",
    "exit_status",
    "render_report",
]
