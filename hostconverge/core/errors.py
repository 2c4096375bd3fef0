"""
Error taxonomy — every failure the engine can attribute or raise.

Planning errors abort a run before anything is touched. Execution
errors are attributed to a single resource and end up in the report
as a ``Failed`` outcome carrying their ``ErrorKind``.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Machine-readable classification of a failure."""

    PROBE_UNAVAILABLE = "probe_unavailable"
    APPLY_FAILURE = "apply_failure"
    TIMEOUT = "timeout"
    CYCLE_DETECTED = "cycle_detected"
    UNKNOWN_DEPENDENCY = "unknown_dependency"
    DUPLICATE_RESOURCE = "duplicate_resource"
    IO_ERROR = "io_error"


class HostConvergeError(Exception):
    """Base exception for all hostconverge errors."""

    kind: ErrorKind = ErrorKind.APPLY_FAILURE


# ── Planning-time ───────────────────────────────────────────────


class PlanningError(HostConvergeError):
    """The resource graph cannot be planned. Nothing was executed."""


class CycleDetectedError(PlanningError):
    """The dependency graph contains a cycle.

    ``cycle`` is one witness cycle, in dependency order, with the first
    id repeated at the end (``["a", "b", "a"]``).
    """

    kind = ErrorKind.CYCLE_DETECTED

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Dependency cycle detected: {' -> '.join(cycle)}")


class UnknownDependencyError(PlanningError):
    """A ``depends_on`` entry names a resource that is not declared."""

    kind = ErrorKind.UNKNOWN_DEPENDENCY

    def __init__(self, resource_id: str, dependency: str):
        self.resource_id = resource_id
        self.dependency = dependency
        super().__init__(
            f"Resource '{resource_id}' depends on unknown resource '{dependency}'"
        )


class DuplicateResourceError(PlanningError):
    """Two resources share the same id."""

    kind = ErrorKind.DUPLICATE_RESOURCE

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        super().__init__(f"Duplicate resource id: '{resource_id}'")


# ── Execution-time ──────────────────────────────────────────────


class ProbeUnavailableError(HostConvergeError):
    """``check()`` could not reach its backing system."""

    kind = ErrorKind.PROBE_UNAVAILABLE


class ApplyError(HostConvergeError):
    """The collaborator rejected or failed the mutating action."""

    kind = ErrorKind.APPLY_FAILURE


class StepTimeoutError(HostConvergeError):
    """A ``check()`` or ``apply()`` call exceeded the run timeout."""

    kind = ErrorKind.TIMEOUT


class CommandIOError(HostConvergeError):
    """A command could not be started at all (missing binary, bad cwd)."""

    kind = ErrorKind.IO_ERROR


def classify(exc: BaseException) -> ErrorKind:
    """Map any exception raised during execution to an ``ErrorKind``."""
    if isinstance(exc, HostConvergeError):
        return exc.kind
    if isinstance(exc, TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, OSError):
        return ErrorKind.IO_ERROR
    return ErrorKind.APPLY_FAILURE
