"""
Apt adapter — Debian/Ubuntu system packages.

Probes with ``dpkg-query``, installs with ``apt-get install -y``
(non-interactive). The package index is refreshed once per process,
before the first install.
"""

from __future__ import annotations

import logging

from hostconverge.adapters.base import CommandRunner, PackageManager
from hostconverge.adapters.shell.tool import ToolBacked
from hostconverge.core.domain.version_constraint import pinned_version

logger = logging.getLogger(__name__)

_NONINTERACTIVE = {"DEBIAN_FRONTEND": "noninteractive"}


class AptPackageManager(ToolBacked, PackageManager):
    """System packages through dpkg/apt."""

    binary = "apt-get"

    def __init__(self, runner: CommandRunner, update_cache: bool = True):
        super().__init__(runner)
        self._update_cache = update_cache
        self._cache_updated = False

    @property
    def name(self) -> str:
        return "apt"

    def installed(self, name: str) -> str | None:
        result = self._probe(
            ["dpkg-query", "-W", "-f=${Status}\t${Version}", name],
        )
        if not result.ok:
            # dpkg-query exits 1 for packages it has never heard of
            return None

        status, _, version = result.stdout.partition("\t")
        if not status.strip().endswith("install ok installed"):
            return None  # removed, config-files only, half-installed
        return version.strip() or None

    def install(self, name: str, constraint: str | None = None) -> None:
        if self._update_cache and not self._cache_updated:
            logger.info("Refreshing apt package index")
            self._mutate(["apt-get", "update"], env=_NONINTERACTIVE)
            self._cache_updated = True

        target = name
        pin = pinned_version(constraint)
        if pin:
            # A debian revision pins exactly; an upstream version matches any revision
            target = f"{name}={pin}" if "-" in pin else f"{name}={pin}*"

        logger.info("apt-get install %s", target)
        self._mutate(["apt-get", "install", "-y", target], env=_NONINTERACTIVE)
