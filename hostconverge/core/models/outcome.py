"""
Outcome models — what a probe saw and what a run did.

``ObservedState`` is the result of a read-only probe. ``Outcome`` is
the terminal result of one resource in one run: exactly one of
unchanged, applied, failed (with a reason and an error kind) or
skipped (with a cause). ``RunReport`` collects them in plan order.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from hostconverge.core.errors import ErrorKind


class OutcomeStatus(StrEnum):
    UNCHANGED = "unchanged"
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunPolicy(StrEnum):
    """What a failed resource does to the rest of the run."""

    FAIL_FAST = "fail_fast"
    CONTINUE_ON_ERROR = "continue_on_error"


class ObservedState(BaseModel):
    """Result of probing a resource's backing system.

    ``detail`` describes the difference from the declared state (empty
    when converged); ``current`` holds the probed facts.
    """

    converged: bool
    detail: str = ""
    current: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def in_sync(cls, detail: str = "", **current: Any) -> ObservedState:
        return cls(converged=True, detail=detail, current=current)

    @classmethod
    def drift(cls, detail: str, **current: Any) -> ObservedState:
        return cls(converged=False, detail=detail, current=current)


class Outcome(BaseModel):
    """Terminal result of one resource."""

    status: OutcomeStatus
    detail: str = ""
    reason: str | None = None          # failed only
    error_kind: ErrorKind | None = None
    cause: str | None = None           # skipped only
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        """Unchanged or applied — the resource reached its declared state."""
        return self.status in (OutcomeStatus.UNCHANGED, OutcomeStatus.APPLIED)

    @property
    def blocks_dependents(self) -> bool:
        return self.status in (OutcomeStatus.FAILED, OutcomeStatus.SKIPPED)

    @property
    def summary(self) -> str:
        """One-phrase explanation for the report line."""
        if self.status == OutcomeStatus.FAILED:
            kind = f"[{self.error_kind}] " if self.error_kind else ""
            return f"{kind}{self.reason}"
        if self.status == OutcomeStatus.SKIPPED:
            return f"skipped: {self.cause}"
        if self.dry_run and self.status == OutcomeStatus.APPLIED:
            return f"would {self.detail}" if self.detail else "would apply"
        return self.detail

    @classmethod
    def unchanged(cls, detail: str = "") -> Outcome:
        return cls(status=OutcomeStatus.UNCHANGED, detail=detail)

    @classmethod
    def applied(cls, detail: str = "", dry_run: bool = False) -> Outcome:
        return cls(status=OutcomeStatus.APPLIED, detail=detail, dry_run=dry_run)

    @classmethod
    def failed(cls, reason: str, error_kind: ErrorKind = ErrorKind.APPLY_FAILURE) -> Outcome:
        return cls(status=OutcomeStatus.FAILED, reason=reason, error_kind=error_kind)

    @classmethod
    def skipped(cls, cause: str) -> Outcome:
        return cls(status=OutcomeStatus.SKIPPED, cause=cause)


class ResourceResult(BaseModel):
    """One report line: which resource, what happened, how long it took."""

    resource_id: str
    kind: str
    outcome: Outcome
    duration_ms: int = 0


class RunReport(BaseModel):
    """Everything a run did, in plan order."""

    name: str = ""
    policy: RunPolicy = RunPolicy.FAIL_FAST
    dry_run: bool = False
    cancelled: bool = False
    results: list[ResourceResult] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(r.outcome.ok for r in self.results)

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for r in self.results if r.outcome.status == status)

    @property
    def counts(self) -> dict[str, int]:
        return {status.value: self.count(status) for status in OutcomeStatus}

    @property
    def total_ms(self) -> int:
        return sum(r.duration_ms for r in self.results)

    def get(self, resource_id: str) -> ResourceResult | None:
        for result in self.results:
            if result.resource_id == resource_id:
                return result
        return None

    def outcome_of(self, resource_id: str) -> Outcome | None:
        result = self.get(resource_id)
        return result.outcome if result else None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "policy": self.policy.value,
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "success": self.success,
            "counts": self.counts,
            "results": [r.model_dump(mode="json") for r in self.results],
        }
