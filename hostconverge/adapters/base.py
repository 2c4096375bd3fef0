"""
Adapter base — the contracts between the engine and host tools.

The engine never shells out itself. Every external system it probes
or mutates (package managers, process supervisors, the container
runtime, arbitrary commands) sits behind one of the role interfaces
below, and is looked up by name through the ``AdapterRegistry``.

Error contract:
    - A probe that cannot reach its tool raises ``ProbeUnavailableError``.
    - A mutating call that the tool rejects raises ``ApplyError``.
    - A command that cannot be started raises ``CommandIOError``.
    - A command that runs too long raises ``StepTimeoutError``.

To create a new adapter:
    1. Subclass one of the role interfaces
    2. Implement name, is_available and the role methods
    3. Register it in the AdapterRegistry
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import ClassVar


class Adapter(ABC):
    """Abstract base class for all adapters."""

    role: ClassVar[str] = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'apt', 'systemd', 'shell')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


# ── Command execution ──────────────────────────────────────────


@dataclass(frozen=True)
class CommandResult:
    """Exit status and captured output of one command."""

    argv: tuple[str, ...]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def error_text(self) -> str:
        """Last line of stderr, or the exit status when stderr is empty."""
        lines = [ln for ln in self.stderr.strip().splitlines() if ln.strip()]
        if lines:
            return lines[-1].strip()
        return f"exit code {self.exit_code}"


class CommandRunner(Adapter):
    """Runs a program and reports how it exited."""

    role = "runner"

    @abstractmethod
    def run(
        self,
        argv: list[str],
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run ``argv`` to completion.

        A non-zero exit is NOT an error here; callers decide.

        Raises:
            CommandIOError: The program could not be started.
            StepTimeoutError: The program exceeded ``timeout``.
        """


# ── Packages ───────────────────────────────────────────────────


class PackageManager(Adapter):
    """Installs packages and reports installed versions."""

    role = "package"

    @abstractmethod
    def installed(self, name: str) -> str | None:
        """Installed version of ``name``, or None when not installed."""

    @abstractmethod
    def install(self, name: str, constraint: str | None = None) -> None:
        """Install or upgrade ``name`` towards ``constraint``."""


# ── Process supervision ────────────────────────────────────────


class UnitStatus(StrEnum):
    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


class Supervisor(Adapter):
    """Starts, stops, and enables supervised units."""

    role = "supervisor"

    @abstractmethod
    def status(self, unit: str) -> UnitStatus:
        """Current run state of ``unit``."""

    @abstractmethod
    def is_enabled(self, unit: str) -> bool:
        """Whether ``unit`` is started at boot."""

    @abstractmethod
    def start(self, unit: str, script: str | None = None, cwd: str | None = None) -> None:
        """Start ``unit``. ``script``/``cwd`` are for path-based supervisors."""

    @abstractmethod
    def stop(self, unit: str) -> None: ...

    @abstractmethod
    def enable(self, unit: str) -> None: ...

    @abstractmethod
    def disable(self, unit: str) -> None: ...


# ── Container stacks ───────────────────────────────────────────


class ComposeRuntime(Adapter):
    """Brings a compose project up and reports whether it is running."""

    role = "compose"

    @abstractmethod
    def is_up(
        self,
        project_dir: str,
        services: list[str] | None = None,
        env_file: str | None = None,
    ) -> bool:
        """True when every declared container of the project is running."""

    @abstractmethod
    def up(self, project_dir: str, env_file: str | None = None) -> None:
        """Create and start the project's containers in the background."""
