"""
Planner — validate the resource graph and order it.

Checks, in order, before anything is executed:
    1. ids are unique                      (DuplicateResourceError)
    2. every depends_on names a resource   (UnknownDependencyError)
    3. the dependency relation is acyclic  (CycleDetectedError)

Ordering is a depth-first topological sort with three-colour marking.
Roots are visited in declaration order and each resource's
dependencies in their declared order, so the same manifest always
yields the same plan.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from hostconverge.core.errors import (
    CycleDetectedError,
    DuplicateResourceError,
    UnknownDependencyError,
)
from hostconverge.core.models.resource import Resource, ResourceGraph

logger = logging.getLogger(__name__)

_WHITE, _GREY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class Plan:
    """An immutable, dependency-respecting order of resources."""

    resources: tuple[Resource, ...]
    name: str = ""
    _positions: dict[str, int] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._positions.update({r.id: i for i, r in enumerate(self.resources)})

    def __iter__(self) -> Iterator[Resource]:
        return iter(self.resources)

    def __len__(self) -> int:
        return len(self.resources)

    @property
    def ids(self) -> list[str]:
        return [r.id for r in self.resources]

    def position(self, resource_id: str) -> int:
        return self._positions[resource_id]

    def get(self, resource_id: str) -> Resource:
        return self.resources[self._positions[resource_id]]

    def dependents_of(self, resource_id: str) -> list[str]:
        """Every resource that transitively depends on ``resource_id``, in plan order."""
        affected = {resource_id}
        found = []
        # Dependents always come later in a topological order: one pass suffices
        for resource in self.resources[self.position(resource_id) + 1:]:
            if any(dep in affected for dep in resource.depends_on):
                affected.add(resource.id)
                found.append(resource.id)
        return found

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "order": [
                {"id": r.id, "kind": r.kind, "depends_on": list(r.depends_on)}
                for r in self.resources
            ],
        }


def _validate(resources: Sequence[Resource]) -> dict[str, Resource]:
    by_id: dict[str, Resource] = {}
    for resource in resources:
        if resource.id in by_id:
            raise DuplicateResourceError(resource.id)
        by_id[resource.id] = resource

    for resource in resources:
        for dep in resource.depends_on:
            if dep not in by_id:
                raise UnknownDependencyError(resource.id, dep)
    return by_id


def build_plan(graph: ResourceGraph | Sequence[Resource]) -> Plan:
    """Order a resource graph so every resource follows its dependencies.

    Args:
        graph: A ResourceGraph, or resources in declaration order.

    Returns:
        The Plan.

    Raises:
        DuplicateResourceError: Two resources share an id.
        UnknownDependencyError: A depends_on entry names no resource.
        CycleDetectedError: With one witness cycle, e.g. ``a -> b -> a``
            where ``a`` depends on ``b`` and ``b`` on ``a``.
    """
    if isinstance(graph, ResourceGraph):
        name, resources = graph.name, list(graph.resources)
    else:
        name, resources = "", list(graph)

    by_id = _validate(resources)
    color = {r.id: _WHITE for r in resources}
    order: list[Resource] = []

    for root in resources:
        if color[root.id] != _WHITE:
            continue

        color[root.id] = _GREY
        path = [root.id]
        stack = [iter(root.depends_on)]

        while stack:
            for dep in stack[-1]:
                if color[dep] == _GREY:
                    cycle = path[path.index(dep):] + [dep]
                    raise CycleDetectedError(cycle)
                if color[dep] == _WHITE:
                    color[dep] = _GREY
                    path.append(dep)
                    stack.append(iter(by_id[dep].depends_on))
                    break
            else:
                # every dependency of path[-1] is done
                stack.pop()
                done = path.pop()
                color[done] = _BLACK
                order.append(by_id[done])

    logger.debug("Planned %d resources: %s", len(order), ", ".join(r.id for r in order))
    return Plan(resources=tuple(order), name=name)
