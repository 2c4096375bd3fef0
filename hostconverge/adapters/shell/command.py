"""
Subprocess runner — the SINGLE place where host commands are executed.

Every adapter that shells out (apt, npm, systemctl, pm2, docker
compose) goes through a ``CommandRunner``, so starting errors,
timeouts and logging are handled once, here.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time

from hostconverge.adapters.base import CommandResult, CommandRunner
from hostconverge.core.errors import CommandIOError, StepTimeoutError

logger = logging.getLogger(__name__)

# Captured output is truncated to the tail; errors live at the end.
_OUTPUT_TAIL = 4000


class SubprocessRunner(CommandRunner):
    """Run commands as argv lists (never through a shell).

    Args:
        default_timeout: Seconds before a command is killed when the
            caller passes no timeout. None = no limit.
    """

    def __init__(self, adapter_name: str = "shell", default_timeout: float | None = None):
        self._name = adapter_name
        self._default_timeout = default_timeout

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def run(
        self,
        argv: list[str],
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        timeout = timeout if timeout is not None else self._default_timeout

        full_env = os.environ.copy()
        if env:
            full_env.update(env)

        logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd or ".")
        start = time.monotonic()

        try:
            proc = subprocess.run(
                argv,
                cwd=cwd,
                env=full_env,
                capture_output=True,
                text=True,
                timeout=timeout,
                # own session: terminal signals reach hostconverge, not the command
                start_new_session=True,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired as e:
            raise StepTimeoutError(
                f"'{argv[0]}' timed out after {timeout}s"
            ) from e
        except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
            raise CommandIOError(f"Cannot run '{argv[0]}': {e}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        result = CommandResult(
            argv=tuple(argv),
            exit_code=proc.returncode,
            stdout=(proc.stdout or "")[-_OUTPUT_TAIL:],
            stderr=(proc.stderr or "")[-_OUTPUT_TAIL:],
            duration_ms=elapsed_ms,
        )
        logger.debug("'%s' exited %d in %dms", argv[0], result.exit_code, elapsed_ms)
        return result
