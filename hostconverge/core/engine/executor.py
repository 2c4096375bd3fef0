"""
Engine executor — the reconciliation loop.

Takes an immutable Plan and walks it, resource by resource:

    1. a dependency failed or was skipped  → Skipped(cause=<that id>)
    2. check() says already converged      → Unchanged
    3. apply()                             → Applied | Failed(reason)

Side effects happen only in step 3. Dry runs replace apply() with the
handler's description of what it would do, so the same loop serves
``check`` and ``apply``.

Policies:
    fail_fast          after the first failure, nothing new is started;
                       every remaining resource is Skipped
    continue_on_error  only the failed resource's dependents are Skipped;
                       independent branches keep going

With ``max_workers > 1`` independent resources run on a thread pool.
A resource starts only when all of its dependencies are terminal and
no running resource shares its identity (same file, same package).
The report is always in plan order.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Callable

from hostconverge.core.engine.planner import Plan
from hostconverge.core.errors import HostConvergeError, StepTimeoutError, classify
from hostconverge.core.models.outcome import (
    Outcome,
    OutcomeStatus,
    ResourceResult,
    RunPolicy,
    RunReport,
)
from hostconverge.core.models.resource import Resource, ResourceKind
from hostconverge.core.resources.base import ResourceHandler

logger = logging.getLogger(__name__)

CANCELLED = "run cancelled"

_MARKERS = {
    OutcomeStatus.UNCHANGED: "=",
    OutcomeStatus.APPLIED: "✓",
    OutcomeStatus.FAILED: "✗",
    OutcomeStatus.SKIPPED: "⊘",
}


def call_with_timeout(fn: Callable[..., Any], *args: Any, timeout: float | None) -> Any:
    """Call ``fn`` and give up waiting after ``timeout`` seconds.

    The call keeps running in its worker thread after a timeout (host
    operations are not safely interruptible); the caller just stops
    waiting for it.

    Raises:
        StepTimeoutError: The call did not return in time.
    """
    if timeout is None:
        return fn(*args)

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hostconverge-step")
    future = pool.submit(fn, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as e:
        name = getattr(fn, "__name__", "call")
        raise StepTimeoutError(f"{name}() exceeded the {timeout:g}s timeout") from e
    finally:
        pool.shutdown(wait=False)


class _Run:
    """State of one execution of one plan."""

    def __init__(
        self,
        plan: Plan,
        handlers: dict[ResourceKind, ResourceHandler],
        policy: RunPolicy,
        dry_run: bool,
        timeout: float | None,
        cancel: threading.Event,
    ):
        self.plan = plan
        self.handlers = handlers
        self.policy = policy
        self.dry_run = dry_run
        self.timeout = timeout
        self.cancel = cancel
        self.results: dict[str, ResourceResult] = {}
        self.first_failure: str | None = None
        self._lock = threading.Lock()

    # ── Decisions that never touch the host ─────────────────────

    def blocked_by(self, resource: Resource) -> str | None:
        """The first dependency that failed or was skipped, if any."""
        for dep in resource.depends_on:
            result = self.results.get(dep)
            if result is not None and result.outcome.blocks_dependents:
                return dep
        return None

    def deps_terminal(self, resource: Resource) -> bool:
        return all(dep in self.results for dep in resource.depends_on)

    def pre_skip(self, resource: Resource) -> Outcome | None:
        dep = self.blocked_by(resource)
        if dep is not None:
            return Outcome.skipped(dep)
        if self.cancel.is_set():
            return Outcome.skipped(CANCELLED)
        if self.policy == RunPolicy.FAIL_FAST and self.first_failure is not None:
            return Outcome.skipped(f"run aborted after failure of {self.first_failure}")
        return None

    # ── The only place that calls check()/apply() ───────────────

    def execute(self, resource: Resource) -> tuple[Outcome, int]:
        handler = self.handlers[resource.kind]
        start = time.monotonic()
        try:
            observed = call_with_timeout(handler.check, resource, timeout=self.timeout)
            if observed.converged:
                outcome = Outcome.unchanged(observed.detail)
            elif self.dry_run:
                outcome = Outcome.applied(handler.describe(resource, observed), dry_run=True)
            else:
                detail = call_with_timeout(handler.apply, resource, timeout=self.timeout)
                outcome = Outcome.applied(detail)
        except Exception as e:
            if not isinstance(e, (HostConvergeError, OSError)):
                logger.debug("Unexpected error converging %s", resource.id, exc_info=True)
            outcome = Outcome.failed(str(e) or e.__class__.__name__, classify(e))
        elapsed_ms = int((time.monotonic() - start) * 1000)
        return outcome, elapsed_ms

    def record(self, resource: Resource, outcome: Outcome, duration_ms: int = 0) -> None:
        with self._lock:
            self.results[resource.id] = ResourceResult(
                resource_id=resource.id,
                kind=resource.kind,
                outcome=outcome,
                duration_ms=duration_ms,
            )
            if outcome.status == OutcomeStatus.FAILED and self.first_failure is None:
                self.first_failure = resource.id

        log = logger.warning if outcome.status == OutcomeStatus.FAILED else logger.info
        log("%s %s → %s %s", _MARKERS[outcome.status], resource.id, outcome.status.value, outcome.summary)

    # ── Schedulers ──────────────────────────────────────────────

    def run_sequential(self) -> None:
        for resource in self.plan:
            skip = self.pre_skip(resource)
            if skip is not None:
                self.record(resource, skip)
                continue
            self.record(resource, *self.execute(resource))

    def run_concurrent(self, max_workers: int) -> None:
        pending: list[Resource] = list(self.plan)
        running: dict[Future, Resource] = {}
        busy: set[str] = set()

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="hostconverge") as pool:
            while pending or running:
                for resource in list(pending):
                    if not self.deps_terminal(resource) and self.blocked_by(resource) is None:
                        continue
                    skip = self.pre_skip(resource)
                    if skip is not None:
                        self.record(resource, skip)
                        pending.remove(resource)
                        continue
                    if len(running) >= max_workers or resource.identity in busy:
                        continue
                    busy.add(resource.identity)
                    running[pool.submit(self.execute, resource)] = resource
                    pending.remove(resource)

                if not running:
                    # A plan is topologically ordered: with nothing in flight
                    # the first pending resource is always schedulable.
                    assert not pending, "scheduler made no progress"
                    break

                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in sorted(done, key=lambda f: self.plan.position(running[f].id)):
                    resource = running.pop(future)
                    busy.discard(resource.identity)
                    self.record(resource, *future.result())

    def report(self) -> RunReport:
        return RunReport(
            name=self.plan.name,
            policy=self.policy,
            dry_run=self.dry_run,
            cancelled=self.cancel.is_set(),
            results=[self.results[r.id] for r in self.plan],
        )


def execute_plan(
    plan: Plan,
    handlers: dict[ResourceKind, ResourceHandler],
    policy: RunPolicy = RunPolicy.FAIL_FAST,
    dry_run: bool = False,
    timeout: float | None = None,
    max_workers: int = 1,
    cancel: threading.Event | None = None,
) -> RunReport:
    """Converge every resource in the plan and report what happened.

    Args:
        plan: The ordered plan (from ``build_plan``).
        handlers: One handler per resource kind (from ``build_handlers``).
        policy: fail_fast or continue_on_error.
        dry_run: Probe only; report the action apply() would take.
        timeout: Seconds allowed for each check() and each apply().
        max_workers: >1 runs independent resources concurrently.
        cancel: When set, resources not yet started are Skipped.

    Returns:
        RunReport with one result per planned resource, in plan order.
    """
    run = _Run(
        plan=plan,
        handlers=handlers,
        policy=policy,
        dry_run=dry_run,
        timeout=timeout,
        cancel=cancel or threading.Event(),
    )

    logger.info(
        "Converging %d resources (%s%s)",
        len(plan), policy.value, ", dry run" if dry_run else "",
    )
    if max_workers > 1:
        run.run_concurrent(max_workers)
    else:
        run.run_sequential()

    report = run.report()
    logger.info("Run finished: %s", ", ".join(f"{k}={v}" for k, v in report.counts.items()))
    return report
