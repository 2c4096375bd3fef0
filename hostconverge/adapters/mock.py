"""
Mock adapters — in-memory test doubles for every adapter role.

Used in mock mode (``--mock``) and by the test suite to simulate host
tools without touching the host. Each mock keeps its own state (so
that an apply is observable by the next probe) and a call log.
Failures can be injected per operation and target.
"""

from __future__ import annotations

from collections.abc import Callable

from hostconverge.adapters.base import (
    CommandResult,
    CommandRunner,
    ComposeRuntime,
    PackageManager,
    Supervisor,
    UnitStatus,
)
from hostconverge.core.errors import ApplyError, ProbeUnavailableError


class _MockBase:
    """Call log, availability and failure injection shared by all mocks."""

    def __init__(self, adapter_name: str, available: bool = True):
        self._name = adapter_name
        self._available = available
        self._unreachable = False
        self._failures: dict[tuple[str, str], str] = {}
        self._call_log: list[tuple[str, ...]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[tuple[str, ...]]:
        """Every call this mock has received, as ``(operation, *args)``."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls(self, operation: str) -> list[tuple[str, ...]]:
        return [c for c in self._call_log if c[0] == operation]

    def is_available(self) -> bool:
        return self._available

    def set_unreachable(self, unreachable: bool = True) -> None:
        """Make every probe raise ``ProbeUnavailableError``."""
        self._unreachable = unreachable

    def set_failure(self, operation: str, target: str, error: str = "Mock failure") -> None:
        """Configure ``operation`` on ``target`` to raise ``ApplyError``."""
        self._failures[(operation, target)] = error

    def reset(self) -> None:
        """Clear call log and injected failures."""
        self._call_log.clear()
        self._failures.clear()
        self._unreachable = False

    def _record_probe(self, operation: str, *args: str) -> None:
        self._call_log.append((operation, *args))
        if self._unreachable:
            raise ProbeUnavailableError(f"[mock] {self._name} is unreachable")

    def _record_mutation(self, operation: str, target: str, *args: str) -> None:
        self._call_log.append((operation, target, *args))
        error = self._failures.get((operation, target))
        if error is not None:
            raise ApplyError(error)


class MockPackageManager(_MockBase, PackageManager):
    """Packages live in a dict of ``name -> version``.

    ``install`` records ``available_versions[name]`` (default ``1.0.0``),
    so a constraint the mock cannot satisfy stays unconverged.
    """

    def __init__(
        self,
        adapter_name: str = "apt",
        installed: dict[str, str] | None = None,
        available_versions: dict[str, str] | None = None,
    ):
        super().__init__(adapter_name)
        self.packages: dict[str, str] = dict(installed or {})
        self.available_versions: dict[str, str] = dict(available_versions or {})

    def installed(self, name: str) -> str | None:
        self._record_probe("installed", name)
        return self.packages.get(name)

    def install(self, name: str, constraint: str | None = None) -> None:
        self._record_mutation("install", name, constraint or "")
        self.packages[name] = self.available_versions.get(name, "1.0.0")


class MockSupervisor(_MockBase, Supervisor):
    """Units live in two sets: running and enabled."""

    def __init__(
        self,
        adapter_name: str = "systemd",
        running: set[str] | None = None,
        enabled: set[str] | None = None,
    ):
        super().__init__(adapter_name)
        self.running: set[str] = set(running or ())
        self.enabled: set[str] = set(enabled or ())

    def status(self, unit: str) -> UnitStatus:
        self._record_probe("status", unit)
        return UnitStatus.RUNNING if unit in self.running else UnitStatus.STOPPED

    def is_enabled(self, unit: str) -> bool:
        self._record_probe("is_enabled", unit)
        return unit in self.enabled

    def start(self, unit: str, script: str | None = None, cwd: str | None = None) -> None:
        self._record_mutation("start", unit)
        self.running.add(unit)

    def stop(self, unit: str) -> None:
        self._record_mutation("stop", unit)
        self.running.discard(unit)

    def enable(self, unit: str) -> None:
        self._record_mutation("enable", unit)
        self.enabled.add(unit)

    def disable(self, unit: str) -> None:
        self._record_mutation("disable", unit)
        self.enabled.discard(unit)


class MockComposeRuntime(_MockBase, ComposeRuntime):
    """Projects live in a dict of ``project_dir -> running services``.

    ``up`` starts ``project_services[project_dir]`` (default: ``app``).
    """

    def __init__(
        self,
        adapter_name: str = "compose",
        project_services: dict[str, list[str]] | None = None,
    ):
        super().__init__(adapter_name)
        self.project_services: dict[str, list[str]] = dict(project_services or {})
        self.running: dict[str, set[str]] = {}

    def is_up(
        self,
        project_dir: str,
        services: list[str] | None = None,
        env_file: str | None = None,
    ) -> bool:
        self._record_probe("is_up", project_dir)
        running = self.running.get(project_dir, set())
        if services:
            return all(s in running for s in services)
        return bool(running)

    def up(self, project_dir: str, env_file: str | None = None) -> None:
        self._record_mutation("up", project_dir, env_file or "")
        services = self.project_services.get(project_dir, ["app"])
        self.running.setdefault(project_dir, set()).update(services)


class MockCommandRunner(_MockBase, CommandRunner):
    """Commands exit 0 unless configured otherwise.

    Results are keyed by the full argv. ``set_side_effect`` runs a
    callable whenever a given argv is executed (e.g. to create the
    marker file a real command would create).
    """

    def __init__(self, adapter_name: str = "shell", default_exit_code: int = 0):
        super().__init__(adapter_name)
        self._default_exit_code = default_exit_code
        self._results: dict[tuple[str, ...], CommandResult] = {}
        self._errors: dict[tuple[str, ...], Exception] = {}
        self._side_effects: dict[tuple[str, ...], Callable[[], None]] = {}

    def set_result(self, argv: list[str], exit_code: int = 0, stdout: str = "", stderr: str = "") -> None:
        key = tuple(argv)
        self._results[key] = CommandResult(argv=key, exit_code=exit_code, stdout=stdout, stderr=stderr)

    def set_error(self, argv: list[str], error: Exception) -> None:
        """Make running ``argv`` raise ``error`` (e.g. CommandIOError)."""
        self._errors[tuple(argv)] = error

    def set_side_effect(self, argv: list[str], effect: Callable[[], None]) -> None:
        self._side_effects[tuple(argv)] = effect

    def run(
        self,
        argv: list[str],
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        key = tuple(argv)
        self._call_log.append(("run", *argv))
        if key in self._errors:
            raise self._errors[key]
        if key in self._side_effects:
            self._side_effects[key]()
        if key in self._results:
            return self._results[key]
        return CommandResult(argv=key, exit_code=self._default_exit_code, stdout="[mock] executed")

    def reset(self) -> None:
        super().reset()
        self._results.clear()
        self._errors.clear()
        self._side_effects.clear()
