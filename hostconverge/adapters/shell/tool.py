"""
Tool-backed adapter helpers.

Adapters that drive a CLI (apt-get, systemctl, pm2, docker) share the
same two call shapes:

    _probe()   read-only; a missing tool means the probe is unavailable
    _mutate()  side effect; a non-zero exit means the apply failed
"""

from __future__ import annotations

import shutil
from typing import ClassVar

from hostconverge.adapters.base import CommandResult, CommandRunner
from hostconverge.core.errors import ApplyError, CommandIOError, ProbeUnavailableError


class ToolBacked:
    """Mixin for adapters implemented on top of a CommandRunner."""

    binary: ClassVar[str] = ""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def _probe(self, argv: list[str], **kwargs) -> CommandResult:
        try:
            return self._runner.run(argv, **kwargs)
        except CommandIOError as e:
            raise ProbeUnavailableError(str(e)) from e

    def _mutate(self, argv: list[str], **kwargs) -> CommandResult:
        result = self._runner.run(argv, **kwargs)
        if not result.ok:
            raise ApplyError(f"{' '.join(argv)}: {result.error_text}")
        return result
