"""
Validate use case — load and plan a manifest without touching the host.

Reports errors (the run could not start) separately from warnings
(the run would start, but something deserves attention: commands
without an idempotency predicate, collaborators that are not
registered or not installed).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from hostconverge.adapters.registry import AdapterRegistry
from hostconverge.core.config.loader import ConfigError, load_manifest
from hostconverge.core.engine.planner import Plan, build_plan
from hostconverge.core.engine.reporter import ExitStatus
from hostconverge.core.errors import PlanningError
from hostconverge.core.models.resource import ResourceGraph, ResourceKind

_ROLE_FOR_KIND = {
    ResourceKind.PACKAGE: "package",
    ResourceKind.SERVICE: "supervisor",
    ResourceKind.COMPOSE_STACK: "compose",
    ResourceKind.COMMAND: "runner",
}


@dataclass
class ValidateResult:
    """Result of loading and planning a manifest."""

    graph: ResourceGraph | None = None
    plan: Plan | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    hazards: list[str] = field(default_factory=list)
    missing_adapters: list[str] = field(default_factory=list)
    exit_status: ExitStatus = ExitStatus.SUCCESS

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        result: dict = {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "hazards": self.hazards,
            "missing_adapters": self.missing_adapters,
        }
        if self.plan is not None:
            result["plan"] = self.plan.to_dict()
        return result


def missing_collaborators(graph: ResourceGraph, registry: AdapterRegistry) -> list[str]:
    """Collaborator names that resources need but the registry lacks."""
    missing: list[str] = []
    for resource in graph.resources:
        role = _ROLE_FOR_KIND.get(resource.kind)
        name = resource.collaborator
        if role is None or name is None:
            continue
        if not registry.has(name, role) and name not in missing:
            missing.append(name)
    return missing


def validate_manifest(
    config_path: Path | None = None,
    overrides: dict[str, str] | None = None,
    registry: AdapterRegistry | None = None,
) -> ValidateResult:
    """Load, interpolate and plan a manifest.

    Args:
        config_path: Optional explicit path to hostconverge.yml.
        overrides: ``--set`` variables.
        registry: Registry to check collaborators against.

    Returns:
        ValidateResult; ``exit_status`` is CONFIG_ERROR or
        PLANNING_ERROR when the manifest cannot be run.
    """
    result = ValidateResult(config_path=config_path)

    try:
        graph = load_manifest(config_path, overrides)
    except ConfigError as e:
        result.errors.append(str(e))
        result.exit_status = ExitStatus.CONFIG_ERROR
        return result
    result.graph = graph

    try:
        result.plan = build_plan(graph)
    except PlanningError as e:
        result.errors.append(str(e))
        result.exit_status = ExitStatus.PLANNING_ERROR
        return result

    for command in graph.commands_without_predicate():
        result.hazards.append(command.id)
        result.warnings.append(
            f"Command '{command.id}' has no 'creates' or 'unless' predicate "
            "and re-runs on every apply."
        )

    if registry is None:
        registry = AdapterRegistry.default()

    result.missing_adapters = missing_collaborators(graph, registry)
    for name in result.missing_adapters:
        result.warnings.append(f"No adapter registered for '{name}'.")

    used = {r.collaborator for r in graph.resources if r.collaborator}
    for name, info in registry.adapter_status().items():
        if name in used and not info["available"]:
            result.warnings.append(f"Adapter '{name}' is registered but its tool is not installed.")

    if not graph.resources:
        result.warnings.append("The manifest declares no resources.")

    return result
