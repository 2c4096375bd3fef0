"""
Adapters — the engine's only way to touch the host.

    from hostconverge.adapters import AdapterRegistry
"""

from hostconverge.adapters.base import (
    Adapter,
    CommandResult,
    CommandRunner,
    ComposeRuntime,
    PackageManager,
    Supervisor,
    UnitStatus,
)
from hostconverge.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "CommandResult",
    "CommandRunner",
    "ComposeRuntime",
    "PackageManager",
    "Supervisor",
    "UnitStatus",
]
