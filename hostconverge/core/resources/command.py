"""
Command handler — run a command unless its predicate already holds.

Predicates, in priority order:
    creates  converged when this path exists
    unless   converged when this command exits 0 (must be read-only)

A command with no predicate is never converged: it runs on every
apply. That is a correctness hazard for anything that is not
naturally idempotent, and ``validate`` lists such commands.

Cleanup policy: whatever the command itself does; the engine does not
undo partial effects of a failed command.
"""

from __future__ import annotations

import logging

from hostconverge.core.errors import ApplyError, CommandIOError, ProbeUnavailableError
from hostconverge.core.models.outcome import ObservedState
from hostconverge.core.models.resource import CommandResource, ResourceKind
from hostconverge.core.resources.base import ResourceHandler

logger = logging.getLogger(__name__)


class CommandHandler(ResourceHandler[CommandResource]):
    kind = ResourceKind.COMMAND

    def check(self, resource: CommandResource) -> ObservedState:
        if resource.creates is not None:
            marker = self.host_path(resource.creates)
            if marker.exists():
                return ObservedState.in_sync(f"{marker} exists", predicate="creates")
            return ObservedState.drift(f"{marker} does not exist", predicate="creates")

        if resource.unless is not None:
            runner = self._registry.runner(resource.runner)
            try:
                result = runner.run(resource.unless, env=resource.env or None, cwd=resource.cwd)
            except CommandIOError as e:
                raise ProbeUnavailableError(f"unless predicate cannot run: {e}") from e
            if result.ok:
                return ObservedState.in_sync(f"'{' '.join(resource.unless)}' exited 0", predicate="unless")
            return ObservedState.drift(
                f"'{' '.join(resource.unless)}' exited {result.exit_code}",
                predicate="unless",
            )

        return ObservedState.drift("no idempotency predicate; runs on every apply", predicate=None)

    def apply(self, resource: CommandResource) -> str:
        observed = self.check(resource)
        if observed.converged:
            return observed.detail

        runner = self._registry.runner(resource.runner)
        result = runner.run(resource.argv, env=resource.env or None, cwd=resource.cwd)
        program = resource.argv[0]

        if not result.ok:
            if resource.best_effort:
                logger.warning(
                    "%s: '%s' exited %d (best effort, not failing): %s",
                    resource.id, program, result.exit_code, result.error_text,
                )
                return f"ran {program}; exit {result.exit_code} ignored (best effort): {result.error_text}"
            raise ApplyError(f"'{program}' exited {result.exit_code}: {result.error_text}")

        if resource.creates is not None and not self.host_path(resource.creates).exists():
            logger.warning(
                "%s: '%s' succeeded but did not create %s; it will run again next time",
                resource.id, program, resource.creates,
            )
        return f"ran {program}"

    def describe(self, resource: CommandResource, observed: ObservedState) -> str:
        return f"run {' '.join(resource.argv)}"
