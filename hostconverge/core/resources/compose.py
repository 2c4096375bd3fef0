"""
Compose stack handler — every declared container is running.

Cleanup policy: no ``down`` before ``up``. Compose itself recreates
containers whose configuration changed and leaves the rest alone.
"""

from __future__ import annotations

from hostconverge.core.errors import ApplyError
from hostconverge.core.models.outcome import ObservedState
from hostconverge.core.models.resource import ComposeStackResource, ResourceKind
from hostconverge.core.resources.base import ResourceHandler


def _what(resource: ComposeStackResource) -> str:
    if resource.services:
        return f"{', '.join(resource.services)} in {resource.project_dir}"
    return f"containers of {resource.project_dir}"


class ComposeStackHandler(ResourceHandler[ComposeStackResource]):
    kind = ResourceKind.COMPOSE_STACK

    def check(self, resource: ComposeStackResource) -> ObservedState:
        runtime = self._registry.compose(resource.runtime)
        up = runtime.is_up(resource.project_dir, resource.services, resource.env_file)
        if up:
            return ObservedState.in_sync(f"{_what(resource)} running", up=True)
        return ObservedState.drift(f"{_what(resource)} not running", up=False)

    def apply(self, resource: ComposeStackResource) -> str:
        observed = self.check(resource)
        if observed.converged:
            return observed.detail

        runtime = self._registry.compose(resource.runtime)
        runtime.up(resource.project_dir, resource.env_file)

        if not runtime.is_up(resource.project_dir, resource.services, resource.env_file):
            raise ApplyError(f"stack came up but {_what(resource)} are not all running")
        return f"brought up {_what(resource)}"

    def describe(self, resource: ComposeStackResource, observed: ObservedState) -> str:
        env = f" --env-file {resource.env_file}" if resource.env_file else ""
        return f"docker compose{env} up -d in {resource.project_dir}"
