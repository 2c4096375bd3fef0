"""
Adapter registry — central lookup for all host collaborators.

Resources name their collaborator (``manager: npm``, ``supervisor:
pm2``); the registry resolves that name to an adapter of the right
role. The engine never constructs adapters itself.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from hostconverge.adapters.base import (
    Adapter,
    CommandRunner,
    ComposeRuntime,
    PackageManager,
    Supervisor,
)
from hostconverge.core.errors import ProbeUnavailableError

logger = logging.getLogger(__name__)

_A = TypeVar("_A", bound=Adapter)


class AdapterRegistry:
    """Central registry for adapters, keyed by name.

    Features:
        - Register/unregister adapters by name
        - Role-checked lookup (package manager, supervisor, ...)
        - Query adapter availability
        - ``default()`` / ``mock()`` factories for the standard set
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def register(self, adapter: Adapter) -> None:
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s (%s)", name, adapter.role)

    def unregister(self, name: str) -> None:
        """Remove an adapter from the registry."""
        self._adapters.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def list_adapters(self) -> list[str]:
        return list(self._adapters.keys())

    def has(self, name: str, role: str | None = None) -> bool:
        adapter = self._adapters.get(name)
        return adapter is not None and (role is None or adapter.role == role)

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all registered adapters."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "role": adapter.role,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status

    # ── Role-checked lookup ─────────────────────────────────────

    def _resolve(self, name: str, expected: type[_A]) -> _A:
        adapter = self._adapters.get(name)
        if adapter is None:
            raise ProbeUnavailableError(f"No adapter registered for '{name}'")
        if not isinstance(adapter, expected):
            raise ProbeUnavailableError(
                f"Adapter '{name}' is a {adapter.role} adapter, not a {expected.role} adapter"
            )
        return adapter

    def package_manager(self, name: str) -> PackageManager:
        return self._resolve(name, PackageManager)

    def supervisor(self, name: str) -> Supervisor:
        return self._resolve(name, Supervisor)

    def compose(self, name: str) -> ComposeRuntime:
        return self._resolve(name, ComposeRuntime)

    def runner(self, name: str) -> CommandRunner:
        return self._resolve(name, CommandRunner)

    # ── Standard sets ───────────────────────────────────────────

    @classmethod
    def default(cls, timeout: float | None = None) -> AdapterRegistry:
        """Real host adapters, all sharing one subprocess runner."""
        from hostconverge.adapters.containers.compose import DockerCompose
        from hostconverge.adapters.packages.apt import AptPackageManager
        from hostconverge.adapters.packages.npm import NpmGlobalPackageManager
        from hostconverge.adapters.shell.command import SubprocessRunner
        from hostconverge.adapters.supervisors.pm2 import Pm2Supervisor
        from hostconverge.adapters.supervisors.systemd import SystemdSupervisor

        runner = SubprocessRunner(default_timeout=timeout)
        registry = cls()
        registry.register(runner)
        registry.register(AptPackageManager(runner))
        registry.register(NpmGlobalPackageManager(runner))
        registry.register(SystemdSupervisor(runner))
        registry.register(Pm2Supervisor(runner))
        registry.register(DockerCompose(runner))
        return registry

    @classmethod
    def mock(cls) -> AdapterRegistry:
        """In-memory doubles under the same names as ``default()``."""
        from hostconverge.adapters.mock import (
            MockCommandRunner,
            MockComposeRuntime,
            MockPackageManager,
            MockSupervisor,
        )

        registry = cls(mock_mode=True)
        registry.register(MockCommandRunner("shell"))
        registry.register(MockPackageManager("apt"))
        registry.register(MockPackageManager("npm"))
        registry.register(MockSupervisor("systemd"))
        registry.register(MockSupervisor("pm2"))
        registry.register(MockComposeRuntime("compose"))
        return registry
