"""
Pm2 adapter — Node.js processes supervised by pm2.

"Enabled at boot" for pm2 means the process is part of the saved
process list (``pm2 save``) that ``pm2 resurrect`` restores. The boot
hook itself (``pm2 startup``) is host setup and is declared as a
Command resource.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from hostconverge.adapters.base import CommandRunner, Supervisor, UnitStatus
from hostconverge.adapters.shell.tool import ToolBacked
from hostconverge.core.errors import ApplyError, ProbeUnavailableError

logger = logging.getLogger(__name__)


def default_pm2_home() -> Path:
    return Path(os.environ.get("PM2_HOME", Path.home() / ".pm2"))


class Pm2Supervisor(ToolBacked, Supervisor):
    """Start/stop/save pm2 processes by name."""

    binary = "pm2"

    def __init__(self, runner: CommandRunner, pm2_home: Path | None = None):
        super().__init__(runner)
        self._pm2_home = pm2_home or default_pm2_home()

    @property
    def name(self) -> str:
        return "pm2"

    def _processes(self) -> list[dict]:
        result = self._probe(["pm2", "jlist"])
        if not result.ok:
            raise ProbeUnavailableError(f"pm2 jlist: {result.error_text}")
        try:
            data = json.loads(result.stdout or "[]")
        except json.JSONDecodeError as e:
            raise ProbeUnavailableError(f"pm2 jlist returned unreadable output: {e}") from e
        return data if isinstance(data, list) else []

    def status(self, unit: str) -> UnitStatus:
        for proc in self._processes():
            if proc.get("name") == unit:
                state = (proc.get("pm2_env") or {}).get("status", "")
                if state in ("online", "launching"):
                    return UnitStatus.RUNNING
                return UnitStatus.STOPPED
        return UnitStatus.STOPPED

    def is_enabled(self, unit: str) -> bool:
        dump = self._pm2_home / "dump.pm2"
        if not dump.is_file():
            return False
        try:
            saved = json.loads(dump.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ProbeUnavailableError(f"Cannot read {dump}: {e}") from e
        return any(p.get("name") == unit for p in saved if isinstance(p, dict))

    def start(self, unit: str, script: str | None = None, cwd: str | None = None) -> None:
        known = any(p.get("name") == unit for p in self._processes())
        if known:
            argv = ["pm2", "restart", unit]
        elif script:
            argv = ["pm2", "start", script, "--name", unit]
        else:
            raise ApplyError(f"pm2 does not know '{unit}' and no script was declared to start it")
        logger.info("%s", " ".join(argv))
        self._mutate(argv, cwd=cwd)

    def stop(self, unit: str) -> None:
        logger.info("pm2 stop %s", unit)
        self._mutate(["pm2", "stop", unit])

    def enable(self, unit: str) -> None:
        logger.info("pm2 save (%s)", unit)
        self._mutate(["pm2", "save"])

    def disable(self, unit: str) -> None:
        # pm2 has no per-process boot flag: drop the process, then re-save
        logger.info("pm2 delete %s && pm2 save", unit)
        self._mutate(["pm2", "delete", unit])
        self._mutate(["pm2", "save", "--force"])
