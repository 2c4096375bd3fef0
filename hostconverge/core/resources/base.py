"""
Resource handler base — ``check`` and ``apply`` for one resource kind.

Contract every handler honours:

    check(resource)  read-only probe. Returns ObservedState; raises
                     ProbeUnavailableError when the backing system
                     cannot be reached (distinct from "not converged").
    apply(resource)  converges the host and returns a short description
                     of what it did. Safe to call when already
                     converged: it then returns without side effects.
                     Raises on failure.
    describe(resource, observed)
                     the action apply() would take, for dry runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar, Generic, TypeVar

from hostconverge.adapters.registry import AdapterRegistry
from hostconverge.core.models.outcome import ObservedState
from hostconverge.core.models.resource import ResourceBase, ResourceKind

R = TypeVar("R", bound=ResourceBase)


class ResourceHandler(ABC, Generic[R]):
    """Probes and converges resources of a single kind."""

    kind: ClassVar[ResourceKind]

    def __init__(self, registry: AdapterRegistry, root: Path | None = None):
        self._registry = registry
        self._root = root

    def host_path(self, path: str) -> Path:
        """Resolve a declared path, re-rooted under ``root`` when set."""
        if self._root is None:
            return Path(path)
        return self._root / path.lstrip("/")

    @abstractmethod
    def check(self, resource: R) -> ObservedState:
        """Probe the host. Never mutates."""

    @abstractmethod
    def apply(self, resource: R) -> str:
        """Converge the host; return what was done."""

    def describe(self, resource: R, observed: ObservedState) -> str:
        """The action ``apply`` would take from ``observed``."""
        return f"converge {resource.id} ({observed.detail})"
