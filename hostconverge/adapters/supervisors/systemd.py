"""
Systemd adapter — units managed with ``systemctl``.
"""

from __future__ import annotations

import logging

from hostconverge.adapters.base import CommandResult, Supervisor, UnitStatus
from hostconverge.adapters.shell.tool import ToolBacked
from hostconverge.core.errors import ProbeUnavailableError

logger = logging.getLogger(__name__)

_ENABLED_STATES = {"enabled", "enabled-runtime", "alias", "static", "indirect", "generated"}

# stderr of a query about a unit that is not installed (yet)
_NO_UNIT_FILE = ("No such file or directory", "not found")


class SystemdSupervisor(ToolBacked, Supervisor):
    """Start/stop/enable/disable systemd units."""

    binary = "systemctl"

    @property
    def name(self) -> str:
        return "systemd"

    def _query(self, argv: list[str]) -> CommandResult:
        """Run a read-only systemctl query.

        Both queries print a state word and signal it through the exit
        code too. A non-zero exit with nothing on stdout means systemctl
        could not ask systemd at all (no systemd as PID 1, bus down),
        unless it is complaining about a unit file that does not exist.
        """
        result = self._probe(argv)
        if result.ok or result.stdout.strip():
            return result
        if not any(marker in result.stderr for marker in _NO_UNIT_FILE):
            raise ProbeUnavailableError(f"{' '.join(argv)}: {result.error_text}")
        return result

    def status(self, unit: str) -> UnitStatus:
        result = self._query(["systemctl", "is-active", unit])
        state = result.stdout.strip()
        if state in ("active", "reloading", "activating"):
            return UnitStatus.RUNNING
        if state in ("inactive", "failed", "deactivating"):
            return UnitStatus.STOPPED
        return UnitStatus.UNKNOWN

    def is_enabled(self, unit: str) -> bool:
        result = self._query(["systemctl", "is-enabled", unit])
        return result.stdout.strip() in _ENABLED_STATES

    def start(self, unit: str, script: str | None = None, cwd: str | None = None) -> None:
        logger.info("systemctl start %s", unit)
        self._mutate(["systemctl", "start", unit])

    def stop(self, unit: str) -> None:
        logger.info("systemctl stop %s", unit)
        self._mutate(["systemctl", "stop", unit])

    def enable(self, unit: str) -> None:
        logger.info("systemctl enable %s", unit)
        self._mutate(["systemctl", "enable", unit])

    def disable(self, unit: str) -> None:
        logger.info("systemctl disable %s", unit)
        self._mutate(["systemctl", "disable", unit])
