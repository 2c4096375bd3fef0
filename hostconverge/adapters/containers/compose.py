"""
Docker Compose adapter — ``docker compose`` projects.

Uses the docker CLI, never the Docker API directly. The project is
addressed by its directory; compose finds ``docker-compose.yml`` /
``compose.yaml`` there itself.
"""

from __future__ import annotations

import json
import logging

from hostconverge.adapters.base import ComposeRuntime
from hostconverge.adapters.shell.tool import ToolBacked
from hostconverge.core.errors import ProbeUnavailableError

logger = logging.getLogger(__name__)


def parse_ps_output(stdout: str) -> list[dict]:
    """Parse ``docker compose ps --format json``.

    Compose v2.21+ prints one JSON object per line; older releases
    print a single JSON array.
    """
    text = stdout.strip()
    if not text:
        return []
    if text.startswith("["):
        data = json.loads(text)
        return [c for c in data if isinstance(c, dict)]
    return [json.loads(line) for line in text.splitlines() if line.strip()]


class DockerCompose(ToolBacked, ComposeRuntime):
    """Bring compose projects up with ``docker compose up -d``."""

    binary = "docker"

    @property
    def name(self) -> str:
        return "compose"

    @staticmethod
    def _base(env_file: str | None) -> list[str]:
        argv = ["docker", "compose"]
        if env_file:
            argv += ["--env-file", env_file]
        return argv

    def containers(self, project_dir: str, env_file: str | None = None) -> list[dict]:
        result = self._probe(
            [*self._base(env_file), "ps", "--all", "--format", "json"],
            cwd=project_dir,
        )
        if not result.ok:
            raise ProbeUnavailableError(f"docker compose ps: {result.error_text}")
        try:
            return parse_ps_output(result.stdout)
        except json.JSONDecodeError as e:
            raise ProbeUnavailableError(f"docker compose ps returned unreadable output: {e}") from e

    def is_up(
        self,
        project_dir: str,
        services: list[str] | None = None,
        env_file: str | None = None,
    ) -> bool:
        containers = self.containers(project_dir, env_file)
        running = {c.get("Service") for c in containers if c.get("State") == "running"}

        if services:
            return all(s in running for s in services)
        return bool(containers) and all(c.get("State") == "running" for c in containers)

    def up(self, project_dir: str, env_file: str | None = None) -> None:
        logger.info("docker compose up -d (in %s)", project_dir)
        self._mutate([*self._base(env_file), "up", "-d"], cwd=project_dir)
