"""
Resource handlers — one per resource kind.

    handlers = build_handlers(registry)
    handlers[resource.kind].check(resource)
"""

from __future__ import annotations

from pathlib import Path

from hostconverge.adapters.registry import AdapterRegistry
from hostconverge.core.models.resource import ResourceKind
from hostconverge.core.resources.base import ResourceHandler
from hostconverge.core.resources.command import CommandHandler
from hostconverge.core.resources.compose import ComposeStackHandler
from hostconverge.core.resources.file import FileHandler
from hostconverge.core.resources.package import PackageHandler
from hostconverge.core.resources.service import ServiceHandler

_HANDLER_TYPES: tuple[type[ResourceHandler], ...] = (
    PackageHandler,
    FileHandler,
    ServiceHandler,
    ComposeStackHandler,
    CommandHandler,
)


def build_handlers(
    registry: AdapterRegistry,
    root: Path | None = None,
) -> dict[ResourceKind, ResourceHandler]:
    """Instantiate every handler against one adapter registry.

    Args:
        registry: Where handlers look up their collaborators.
        root: Optional prefix for paths the engine reads or writes
            itself (File paths, Command ``creates`` markers).
    """
    return {cls.kind: cls(registry, root=root) for cls in _HANDLER_TYPES}


__all__ = [
    "CommandHandler",
    "ComposeStackHandler",
    "FileHandler",
    "PackageHandler",
    "ResourceHandler",
    "ServiceHandler",
    "build_handlers",
]
