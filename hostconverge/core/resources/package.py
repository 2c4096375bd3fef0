"""
Package handler — installed at a version satisfying the constraint.

Cleanup policy: none. Upgrades are left to the package manager
(``apt-get install`` / ``npm install -g`` replace the old version in
place); the handler only verifies the result.
"""

from __future__ import annotations

from hostconverge.core.domain.version_constraint import satisfies
from hostconverge.core.errors import ApplyError
from hostconverge.core.models.outcome import ObservedState
from hostconverge.core.models.resource import PackageResource, ResourceKind
from hostconverge.core.resources.base import ResourceHandler


def _wanted(resource: PackageResource) -> str:
    return f"{resource.name} ({resource.version})" if resource.version else resource.name


class PackageHandler(ResourceHandler[PackageResource]):
    kind = ResourceKind.PACKAGE

    def check(self, resource: PackageResource) -> ObservedState:
        manager = self._registry.package_manager(resource.manager)
        version = manager.installed(resource.name)

        if version is None:
            return ObservedState.drift(f"{resource.name} is not installed", version=None)
        if not satisfies(version, resource.version):
            return ObservedState.drift(
                f"{resource.name} {version} does not satisfy {resource.version}",
                version=version,
            )
        return ObservedState.in_sync(f"{resource.name} {version}", version=version)

    def apply(self, resource: PackageResource) -> str:
        observed = self.check(resource)
        if observed.converged:
            return observed.detail

        manager = self._registry.package_manager(resource.manager)
        manager.install(resource.name, resource.version)

        after = manager.installed(resource.name)
        if after is None:
            raise ApplyError(f"{resource.name} is still not installed after {manager.name} install")
        if not satisfies(after, resource.version):
            raise ApplyError(
                f"{manager.name} installed {resource.name} {after}, "
                f"which does not satisfy {resource.version}"
            )

        before = observed.current.get("version")
        if before:
            return f"upgraded {resource.name} {before} -> {after}"
        return f"installed {resource.name} {after}"

    def describe(self, resource: PackageResource, observed: ObservedState) -> str:
        verb = "upgrade" if observed.current.get("version") else "install"
        return f"{verb} {_wanted(resource)} via {resource.manager}"
