"""
Tests for the planner — ordering, cycle detection, referential integrity.
"""

import random

import pytest

from hostconverge.core.engine.planner import build_plan
from hostconverge.core.errors import (
    CycleDetectedError,
    DuplicateResourceError,
    ErrorKind,
    UnknownDependencyError,
)
from hostconverge.core.models import CommandResource, ResourceGraph


def _r(rid: str, *deps: str) -> CommandResource:
    return CommandResource(id=rid, argv=["true"], depends_on=list(deps))


def _assert_topological(plan) -> None:
    seen: set[str] = set()
    for resource in plan:
        for dep in resource.depends_on:
            assert dep in seen, f"{resource.id} planned before its dependency {dep}"
        seen.add(resource.id)


class TestOrdering:
    def test_dependencies_first(self):
        plan = build_plan([_r("service", "conf", "pkg"), _r("conf", "pkg"), _r("pkg")])
        assert plan.ids == ["pkg", "conf", "service"]

    def test_declaration_order_breaks_ties(self):
        plan = build_plan([_r("c"), _r("a"), _r("b")])
        assert plan.ids == ["c", "a", "b"]

    def test_dependencies_visited_in_declared_order(self):
        plan = build_plan([_r("app", "z", "y"), _r("y"), _r("z")])
        assert plan.ids == ["z", "y", "app"]

    def test_diamond(self):
        plan = build_plan([_r("top", "left", "right"), _r("left", "base"), _r("right", "base"), _r("base")])
        assert plan.ids == ["base", "left", "right", "top"]

    def test_random_acyclic_graphs_are_topological(self):
        rng = random.Random(42)
        for _ in range(50):
            n = rng.randint(1, 25)
            ids = [f"r{i}" for i in range(n)]
            # edges only point to lower indices: acyclic by construction
            resources = [
                _r(ids[i], *rng.sample(ids[:i], k=rng.randint(0, min(i, 3))))
                for i in range(n)
            ]
            rng.shuffle(resources)
            plan = build_plan(resources)
            assert sorted(plan.ids) == sorted(ids)
            _assert_topological(plan)

    def test_deterministic(self):
        resources = [_r("web", "conf"), _r("db"), _r("conf", "db")]
        assert build_plan(resources).ids == build_plan(resources).ids

    def test_graph_name_carried(self):
        plan = build_plan(ResourceGraph(name="vancord", resources=[_r("a")]))
        assert plan.name == "vancord"
        assert len(plan) == 1

    def test_long_chain(self):
        n = 3000
        resources = [_r("r0")] + [_r(f"r{i}", f"r{i - 1}") for i in range(1, n)]
        plan = build_plan(list(reversed(resources)))
        assert plan.ids == [f"r{i}" for i in range(n)]

    def test_empty(self):
        assert build_plan([]).ids == []


class TestPlanQueries:
    def test_dependents_of_is_transitive(self):
        plan = build_plan([_r("a"), _r("b", "a"), _r("c", "b"), _r("d")])
        assert plan.dependents_of("a") == ["b", "c"]
        assert plan.dependents_of("c") == []
        assert plan.dependents_of("d") == []

    def test_position_and_get(self):
        plan = build_plan([_r("b", "a"), _r("a")])
        assert plan.position("a") == 0
        assert plan.get("b").id == "b"

    def test_to_dict(self):
        data = build_plan([_r("b", "a"), _r("a")]).to_dict()
        assert data["order"][1] == {"id": "b", "kind": "Command", "depends_on": ["a"]}


class TestValidation:
    def test_cycle_reports_witness(self):
        with pytest.raises(CycleDetectedError) as exc:
            build_plan([_r("a", "b"), _r("b", "c"), _r("c", "a")])
        assert exc.value.cycle == ["a", "b", "c", "a"]
        assert exc.value.kind == ErrorKind.CYCLE_DETECTED

    def test_self_dependency(self):
        with pytest.raises(CycleDetectedError) as exc:
            build_plan([_r("a", "a")])
        assert exc.value.cycle == ["a", "a"]

    def test_cycle_behind_acyclic_prefix(self):
        with pytest.raises(CycleDetectedError) as exc:
            build_plan([_r("root", "x"), _r("x", "y"), _r("y", "z"), _r("z", "y")])
        assert exc.value.cycle == ["y", "z", "y"]

    def test_unknown_dependency(self):
        with pytest.raises(UnknownDependencyError) as exc:
            build_plan([_r("web", "nginx")])
        assert exc.value.resource_id == "web"
        assert exc.value.dependency == "nginx"

    def test_duplicate_id(self):
        with pytest.raises(DuplicateResourceError):
            build_plan([_r("a"), _r("a")])
