"""
Domain models — Pydantic types for the engine.

All models are re-exported here for convenient access:

    from hostconverge.core.models import FileResource, Outcome, RunReport
"""

from hostconverge.core.models.outcome import (
    ObservedState,
    Outcome,
    OutcomeStatus,
    ResourceResult,
    RunPolicy,
    RunReport,
)
from hostconverge.core.models.resource import (
    CommandResource,
    ComposeStackResource,
    FileResource,
    PackageResource,
    Resource,
    ResourceGraph,
    ResourceKind,
    ServiceResource,
)

__all__ = [
    # resource.py
    "CommandResource",
    "ComposeStackResource",
    "FileResource",
    # outcome.py
    "ObservedState",
    "Outcome",
    "OutcomeStatus",
    "PackageResource",
    "Resource",
    "ResourceGraph",
    "ResourceKind",
    "ResourceResult",
    "RunPolicy",
    "RunReport",
    "ServiceResource",
]
