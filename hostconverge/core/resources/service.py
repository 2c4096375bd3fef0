"""
Service handler — running and enabled-at-boot match the declaration.

Only the differing half is touched: a running but not enabled unit is
enabled, never restarted. An ``unknown`` status from the supervisor
counts as not running.

Cleanup policy: none; the supervisor owns the unit's lifecycle.
"""

from __future__ import annotations

from hostconverge.adapters.base import UnitStatus
from hostconverge.core.models.outcome import ObservedState
from hostconverge.core.models.resource import ResourceKind, ServiceResource
from hostconverge.core.resources.base import ResourceHandler


class ServiceHandler(ResourceHandler[ServiceResource]):
    kind = ResourceKind.SERVICE

    def check(self, resource: ServiceResource) -> ObservedState:
        supervisor = self._registry.supervisor(resource.supervisor)
        status = supervisor.status(resource.unit)
        enabled = supervisor.is_enabled(resource.unit)
        running = status == UnitStatus.RUNNING

        diffs = []
        if running != resource.running:
            want = "running" if resource.running else "stopped"
            diffs.append(f"{status.value}, want {want}")
        if enabled != resource.enabled:
            diffs.append("disabled, want enabled" if resource.enabled else "enabled, want disabled")

        current = {"status": status.value, "enabled": enabled}
        if diffs:
            return ObservedState.drift(f"{resource.unit}: {'; '.join(diffs)}", **current)
        return ObservedState.in_sync(f"{resource.unit} {status.value}", **current)

    def apply(self, resource: ServiceResource) -> str:
        observed = self.check(resource)
        if observed.converged:
            return observed.detail

        supervisor = self._registry.supervisor(resource.supervisor)
        running = observed.current["status"] == UnitStatus.RUNNING.value
        enabled = observed.current["enabled"]
        done = []

        if resource.running and not running:
            supervisor.start(resource.unit, script=resource.script, cwd=resource.cwd)
            done.append("started")
        if resource.enabled and not enabled:
            supervisor.enable(resource.unit)
            done.append("enabled")
        if not resource.enabled and enabled:
            supervisor.disable(resource.unit)
            done.append("disabled")
        # disabling may already have stopped it (pm2)
        if not resource.running and supervisor.status(resource.unit) == UnitStatus.RUNNING:
            supervisor.stop(resource.unit)
            done.append("stopped")

        return f"{resource.unit} {', '.join(done)}" if done else observed.detail

    def describe(self, resource: ServiceResource, observed: ObservedState) -> str:
        running = observed.current.get("status") == UnitStatus.RUNNING.value
        enabled = observed.current.get("enabled")
        actions = []
        if resource.running and not running:
            actions.append("start")
        if resource.enabled and not enabled:
            actions.append("enable")
        if not resource.enabled and enabled:
            actions.append("disable")
        if not resource.running and running:
            actions.append("stop")
        return f"{' + '.join(actions)} {resource.unit} via {resource.supervisor}"
