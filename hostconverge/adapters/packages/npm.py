"""
Npm adapter — globally installed Node.js packages (pm2, pnpm, ...).
"""

from __future__ import annotations

import json
import logging

from hostconverge.adapters.base import PackageManager
from hostconverge.adapters.shell.tool import ToolBacked
from hostconverge.core.domain.version_constraint import parse_constraint, pinned_version
from hostconverge.core.errors import ProbeUnavailableError

logger = logging.getLogger(__name__)


def npm_range(constraint: str | None) -> str:
    """Translate a version constraint into an npm semver range."""
    if not parse_constraint(constraint):
        return "latest"
    pin = pinned_version(constraint)
    if pin:
        return pin

    clauses = []
    for raw in (constraint or "").split(","):
        clause = raw.strip()
        if clause.startswith("~="):
            clauses.append("^" + clause[2:].strip())
        elif clause.startswith("=="):
            clauses.append(clause[2:].strip())
        else:
            clauses.append(clause.replace(" ", ""))
    return " ".join(clauses)


class NpmGlobalPackageManager(ToolBacked, PackageManager):
    """``npm install -g`` packages."""

    binary = "npm"

    @property
    def name(self) -> str:
        return "npm"

    def installed(self, name: str) -> str | None:
        result = self._probe(["npm", "ls", "-g", "--depth=0", "--json", name])
        # npm ls exits 1 when the package is missing but still prints JSON
        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise ProbeUnavailableError(f"npm ls returned unreadable output: {e}") from e

        dep = (data.get("dependencies") or {}).get(name)
        if not dep:
            return None
        return dep.get("version")

    def install(self, name: str, constraint: str | None = None) -> None:
        target = f"{name}@{npm_range(constraint)}"
        logger.info("npm install -g %s", target)
        self._mutate(["npm", "install", "-g", target])
