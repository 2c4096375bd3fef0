"""
Tests for domain models — resource validation, outcomes, reports.
"""

import pytest
from pydantic import ValidationError

from hostconverge.core.errors import ErrorKind
from hostconverge.core.models import (
    CommandResource,
    ComposeStackResource,
    FileResource,
    Outcome,
    OutcomeStatus,
    PackageResource,
    ResourceGraph,
    ResourceResult,
    RunReport,
    ServiceResource,
)
from hostconverge.core.models.resource import ResourceBase


class TestResources:
    def test_graph_parses_kinds(self):
        graph = ResourceGraph.model_validate({
            "name": "host",
            "resources": [
                {"id": "nginx", "kind": "Package", "name": "nginx"},
                {"id": "conf", "kind": "File", "path": "/etc/app.conf", "content": "PORT=4000"},
                {"id": "web", "kind": "Service", "unit": "nginx", "depends_on": ["nginx"]},
                {"id": "infra", "kind": "ComposeStack", "project_dir": "/srv/app"},
                {"id": "migrate", "kind": "Command", "argv": ["pnpm", "migrate"]},
            ],
        })
        kinds = [type(r) for r in graph.resources]
        assert kinds == [
            PackageResource,
            FileResource,
            ServiceResource,
            ComposeStackResource,
            CommandResource,
        ]
        assert graph.ids == ["nginx", "conf", "web", "infra", "migrate"]
        assert graph.get("web").depends_on == ["nginx"]
        assert graph.get("missing") is None

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            ResourceGraph.model_validate({"resources": [{"id": "x", "kind": "Cron"}]})

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            PackageResource(id="p", name="nginx", versoin="1")

    def test_depends_on_deduplicated_in_order(self):
        r = PackageResource(id="p", name="x", depends_on=["b", "a", "b"])
        assert r.depends_on == ["b", "a"]

    def test_resources_are_frozen(self):
        r = PackageResource(id="p", name="nginx")
        with pytest.raises(ValidationError):
            r.name = "apache2"

    def test_identities(self):
        assert PackageResource(id="a", name="pm2", manager="npm").identity == "package:npm:pm2"
        assert FileResource(id="b", path="/etc/x").identity == "file:/etc/x"
        assert ServiceResource(id="c", unit="coturn").identity == "service:systemd:coturn"
        assert ComposeStackResource(id="d", project_dir="/srv").identity == "compose:/srv"
        assert CommandResource(id="e", argv=["true"]).identity == "command:e"

    def test_base_has_no_identity_of_its_own(self):
        with pytest.raises(TypeError, match="abstract"):
            ResourceBase(id="x")

    def test_invalid_version_constraint(self):
        with pytest.raises(ValidationError):
            PackageResource(id="p", name="nginx", version=">=banana")

    def test_file_mode(self):
        assert FileResource(id="f", path="/x", mode="0644").mode_bits == 0o644
        assert FileResource(id="f", path="/x").mode_bits is None
        with pytest.raises(ValidationError):
            FileResource(id="f", path="/x", mode="rw-r--r--")
        with pytest.raises(ValidationError):
            FileResource(id="f", path="/x", mode="77777")

    def test_systemd_rejects_script(self):
        with pytest.raises(ValidationError):
            ServiceResource(id="s", unit="nginx", script="server.js")

    def test_pm2_script(self):
        s = ServiceResource(id="s", unit="api", supervisor="pm2", script="server.js", cwd="/srv/api")
        assert s.collaborator == "pm2"

    def test_pm2_enabled_requires_running(self):
        with pytest.raises(ValidationError):
            ServiceResource(id="s", unit="api", supervisor="pm2", running=False, enabled=True)

    def test_command_predicates(self):
        assert not CommandResource(id="c", argv=["x"]).has_predicate
        assert CommandResource(id="c", argv=["x"], creates="/tmp/m").has_predicate
        assert CommandResource(id="c", argv=["x"], unless=["test", "-f", "/m"]).has_predicate
        with pytest.raises(ValidationError):
            CommandResource(id="c", argv=[])
        with pytest.raises(ValidationError):
            CommandResource(id="c", argv=["x"], unless=[])

    def test_commands_without_predicate(self):
        graph = ResourceGraph(resources=[
            CommandResource(id="guarded", argv=["x"], creates="/m"),
            CommandResource(id="bare", argv=["y"]),
        ])
        assert [c.id for c in graph.commands_without_predicate()] == ["bare"]


class TestOutcome:
    def test_ok_statuses(self):
        assert Outcome.unchanged().ok
        assert Outcome.applied("done").ok
        assert not Outcome.failed("boom").ok
        assert not Outcome.skipped("a").ok

    def test_blocks_dependents(self):
        assert Outcome.failed("boom").blocks_dependents
        assert Outcome.skipped("a").blocks_dependents
        assert not Outcome.applied().blocks_dependents

    def test_summaries(self):
        assert Outcome.failed("no route", ErrorKind.PROBE_UNAVAILABLE).summary == "[probe_unavailable] no route"
        assert Outcome.skipped("nginx").summary == "skipped: nginx"
        assert Outcome.applied("install nginx", dry_run=True).summary == "would install nginx"
        assert Outcome.applied("created /etc/x").summary == "created /etc/x"


class TestRunReport:
    def _report(self, *outcomes: Outcome) -> RunReport:
        return RunReport(results=[
            ResourceResult(resource_id=f"r{i}", kind="File", outcome=o, duration_ms=10)
            for i, o in enumerate(outcomes)
        ])

    def test_success_only_when_all_ok(self):
        assert self._report(Outcome.unchanged(), Outcome.applied()).success
        assert not self._report(Outcome.unchanged(), Outcome.skipped("r9")).success
        assert self._report().success

    def test_counts(self):
        report = self._report(Outcome.unchanged(), Outcome.failed("x"), Outcome.skipped("r1"))
        assert report.counts == {"unchanged": 1, "applied": 0, "failed": 1, "skipped": 1}
        assert report.count(OutcomeStatus.FAILED) == 1
        assert report.total_ms == 30

    def test_lookup(self):
        report = self._report(Outcome.applied("x"))
        assert report.outcome_of("r0").status == OutcomeStatus.APPLIED
        assert report.outcome_of("nope") is None

    def test_to_dict(self):
        data = self._report(Outcome.failed("boom", ErrorKind.TIMEOUT)).to_dict()
        assert data["success"] is False
        assert data["policy"] == "fail_fast"
        assert data["results"][0]["outcome"]["error_kind"] == "timeout"
