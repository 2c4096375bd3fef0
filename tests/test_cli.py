"""
Tests for the CLI and the use cases behind it.

The CLI runs against in-memory collaborators (``--mock``) with file
paths re-rooted under a temporary directory (``--root``), so nothing
here touches the real host.
"""

import json
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

import pytest
from click.testing import CliRunner

from hostconverge.adapters.registry import AdapterRegistry
from hostconverge.core.engine.reporter import ExitStatus
from hostconverge.core.models import OutcomeStatus, RunPolicy
from hostconverge.core.use_cases.run import run_manifest
from hostconverge.core.use_cases.validate import missing_collaborators, validate_manifest
from hostconverge.main import cli

FILES_MANIFEST = """
    name: demo
    vars:
      PORT: "4000"
    resources:
      - id: backend-env
        kind: File
        path: /var/www/demo/backend/.env
        content: "PORT=${PORT}\\n"
      - id: site-conf
        kind: File
        path: /etc/nginx/sites-available/demo
        content: "proxy_pass http://127.0.0.1:${PORT};\\n"
        mode: "0644"
        depends_on: [backend-env]
"""

STACK_MANIFEST = """
    name: vancord
    resources:
      - id: nginx
        kind: Package
        name: nginx
      - id: site-conf
        kind: File
        path: /etc/nginx/sites-available/vancord
        content: "server_name chat.example.com;\\n"
        depends_on: [nginx]
      - id: nginx-svc
        kind: Service
        unit: nginx
        depends_on: [site-conf]
      - id: pm2
        kind: Package
        name: pm2
        manager: npm
      - id: infra
        kind: ComposeStack
        project_dir: /srv/vancord
        services: [app]
      - id: certbot
        kind: Command
        argv: [certbot, --nginx, -d, chat.example.com]
        creates: /etc/letsencrypt/live/chat.example.com
        depends_on: [nginx-svc]
"""

CYCLE_MANIFEST = """
    resources:
      - id: a
        kind: Package
        name: a
        depends_on: [b]
      - id: b
        kind: Package
        name: b
        depends_on: [a]
"""


def _invoke(*args: str):
    return CliRunner().invoke(cli, list(args))


# ── CLI: help / version ──────────────────────────────────────────────


class TestCliBasics:
    def test_help_lists_commands(self):
        result = _invoke("--help")
        assert result.exit_code == 0
        for command in ("validate", "plan", "check", "apply", "adapters"):
            assert command in result.output

    def test_version(self):
        result = _invoke("--version")
        assert result.exit_code == 0
        assert "hostconverge" in result.output

    def test_adapters_mock_json(self):
        result = _invoke("adapters", "--mock", "--json")
        assert result.exit_code == 0
        status = json.loads(result.output)
        assert status["pm2"]["role"] == "supervisor"
        assert all(info["available"] for info in status.values())


# ── CLI: validate / plan ─────────────────────────────────────────────


class TestCliValidate:
    def test_valid(self, write_manifest):
        path = write_manifest(FILES_MANIFEST)
        result = _invoke("--config", str(path), "validate")
        assert result.exit_code == 0
        assert "demo: 2 resources, plan OK" in result.output

    def test_lists_unguarded_commands(self, write_manifest):
        path = write_manifest("""
            resources:
              - id: reload
                kind: Command
                argv: [nginx, -s, reload]
        """)
        result = _invoke("-q", "--config", str(path), "validate", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["hazards"] == ["reload"]

    def test_cycle_is_planning_error(self, write_manifest):
        path = write_manifest(CYCLE_MANIFEST)
        result = _invoke("--config", str(path), "validate")
        assert result.exit_code == ExitStatus.PLANNING_ERROR
        assert "Dependency cycle detected: a -> b -> a" in result.output

    def test_missing_manifest_is_config_error(self, tmp_path):
        result = _invoke("--config", str(tmp_path / "nope.yml"), "validate")
        assert result.exit_code == ExitStatus.CONFIG_ERROR
        assert "Manifest not found" in result.output

    def test_plan_order(self, write_manifest):
        path = write_manifest(STACK_MANIFEST)
        result = _invoke("--config", str(path), "plan")
        assert result.exit_code == 0
        positions = [result.output.index(f". {rid} [") for rid in ("nginx", "site-conf", "nginx-svc", "certbot")]
        assert positions == sorted(positions)
        assert "← site-conf" in result.output

    def test_plan_json(self, write_manifest):
        path = write_manifest(FILES_MANIFEST)
        result = _invoke("-q", "--config", str(path), "plan", "--json")
        data = json.loads(result.output)
        assert [step["id"] for step in data["plan"]["order"]] == ["backend-env", "site-conf"]

    def test_bad_set_value(self, write_manifest):
        path = write_manifest(FILES_MANIFEST)
        result = _invoke("--config", str(path), "plan", "--set", "NOEQUALS")
        assert result.exit_code == 2
        assert "expected NAME=VALUE" in result.output


# ── CLI: check / apply ───────────────────────────────────────────────


class TestCliApply:
    def test_check_changes_nothing(self, write_manifest, host_root: Path):
        path = write_manifest(FILES_MANIFEST)
        result = _invoke("--config", str(path), "check", "--mock", "--root", str(host_root))
        assert result.exit_code == 0
        assert "would create" in result.output
        assert "2 pending" in result.output
        assert not (host_root / "var").exists()

    def test_apply_dry_run_flag(self, write_manifest, host_root: Path):
        path = write_manifest(FILES_MANIFEST)
        result = _invoke("--config", str(path), "apply", "--dry-run", "--mock", "--root", str(host_root))
        assert result.exit_code == 0
        assert "Dry run: demo" in result.output
        assert not (host_root / "var").exists()

    def test_apply_then_reapply_is_unchanged(self, write_manifest, host_root: Path):
        path = write_manifest(FILES_MANIFEST)
        args = ("-q", "--config", str(path), "apply", "--mock", "--root", str(host_root), "--json")

        first = json.loads(_invoke(*args).output)
        assert first["exit_status"] == 0
        assert first["report"]["counts"]["applied"] == 2
        assert (host_root / "var/www/demo/backend/.env").read_text() == "PORT=4000\n"

        second = json.loads(_invoke(*args).output)
        assert second["report"]["counts"] == {"unchanged": 2, "applied": 0, "failed": 0, "skipped": 0}

    def test_set_overrides_vars(self, write_manifest, host_root: Path):
        path = write_manifest(FILES_MANIFEST)
        result = _invoke("-q", "--config", str(path), "apply", "--mock", "--root", str(host_root),
                         "--set", "PORT=5000")
        assert result.exit_code == 0
        assert (host_root / "var/www/demo/backend/.env").read_text() == "PORT=5000\n"

    def test_failure_skips_dependents(self, write_manifest, host_root: Path):
        (host_root / "var/www/demo/backend/.env").mkdir(parents=True)
        path = write_manifest(FILES_MANIFEST)
        result = _invoke("-q", "--config", str(path), "apply", "--mock", "--root", str(host_root), "--json")
        assert result.exit_code == ExitStatus.RESOURCES_FAILED
        outcomes = {r["resource_id"]: r["outcome"] for r in json.loads(result.output)["report"]["results"]}
        assert outcomes["backend-env"]["status"] == "failed"
        assert outcomes["site-conf"] == {
            "status": "skipped",
            "detail": "",
            "reason": None,
            "error_kind": None,
            "cause": "backend-env",
            "dry_run": False,
        }

    def test_cycle_changes_nothing(self, write_manifest):
        path = write_manifest(CYCLE_MANIFEST)
        result = _invoke("--config", str(path), "apply", "--mock")
        assert result.exit_code == ExitStatus.PLANNING_ERROR
        assert "Nothing was changed." in result.output

    def test_text_report(self, write_manifest, host_root: Path):
        path = write_manifest(STACK_MANIFEST)
        result = _invoke("--config", str(path), "apply", "--mock", "--root", str(host_root),
                         "--policy", "continue-on-error", "--jobs", "3")
        assert result.exit_code == 0
        assert "Apply: vancord" in result.output
        assert "OK: 0 unchanged, 6 applied, 0 failed, 0 skipped" in result.output


# ── Use cases ────────────────────────────────────────────────────────


class TestRunManifest:
    def test_second_run_is_all_unchanged(self, write_manifest, registry, host_root: Path):
        path = write_manifest(STACK_MANIFEST)
        marker = host_root / "etc/letsencrypt/live/chat.example.com"
        registry.runner("shell").set_side_effect(
            ["certbot", "--nginx", "-d", "chat.example.com"],
            lambda: marker.mkdir(parents=True),
        )

        first = run_manifest(path, registry=registry, root=host_root)
        assert first.exit_status == ExitStatus.SUCCESS
        assert first.report.count(OutcomeStatus.APPLIED) == 6

        registry.runner("shell").reset()
        second = run_manifest(path, registry=registry, root=host_root)
        assert second.report.count(OutcomeStatus.UNCHANGED) == 6
        assert registry.runner("shell").calls("run") == []
        assert registry.package_manager("apt").calls("install") == [("install", "nginx", "")]

    def test_cycle_touches_no_collaborator(self, write_manifest, registry):
        result = run_manifest(write_manifest(CYCLE_MANIFEST), registry=registry)
        assert result.exit_status == ExitStatus.PLANNING_ERROR
        assert result.report is None
        assert all(registry.get(name).call_count == 0 for name in registry.list_adapters())

    def test_unknown_dependency(self, write_manifest, registry):
        path = write_manifest("""
            resources:
              - id: web
                kind: Service
                unit: nginx
                depends_on: [nginx-pkg]
        """)
        result = run_manifest(path, registry=registry)
        assert result.exit_status == ExitStatus.PLANNING_ERROR
        assert "unknown resource 'nginx-pkg'" in result.error

    def test_dry_run_policy_carried(self, write_manifest, registry, host_root: Path):
        path = write_manifest(FILES_MANIFEST)
        result = run_manifest(path, registry=registry, root=host_root, dry_run=True,
                              policy=RunPolicy.CONTINUE_ON_ERROR)
        assert result.report.dry_run
        assert result.report.policy == RunPolicy.CONTINUE_ON_ERROR
        assert result.to_dict()["exit_status"] == 0


class TestValidateManifest:
    def test_missing_collaborators(self, write_manifest):
        path = write_manifest("""
            resources:
              - id: htop
                kind: Package
                name: htop
                manager: brew
        """)
        result = validate_manifest(path, registry=AdapterRegistry.mock())
        assert result.valid
        assert result.missing_adapters == ["brew"]
        assert "No adapter registered for 'brew'." in result.warnings

    def test_empty_manifest_warns(self, write_manifest):
        result = validate_manifest(write_manifest("resources: []\n"), registry=AdapterRegistry.mock())
        assert result.valid
        assert result.warnings == ["The manifest declares no resources."]

    @pytest.mark.parametrize("manager", ["apt", "npm"])
    def test_known_managers_not_missing(self, manager, write_manifest):
        path = write_manifest(f"""
            resources:
              - id: p
                kind: Package
                name: x
                manager: {manager}
        """)
        graph = validate_manifest(path, registry=AdapterRegistry.mock()).graph
        assert missing_collaborators(graph, AdapterRegistry.mock()) == []


# ── CLI: interrupt ───────────────────────────────────────────────────


@pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX-only")
class TestCliInterrupt:
    def test_ctrl_c_lets_running_command_finish(self, write_manifest, tmp_path: Path):
        started, done = tmp_path / "started", tmp_path / "done"
        path = write_manifest(f"""
            name: interrupt
            resources:
              - id: slow
                kind: Command
                argv: [sh, -c, "touch {started}; sleep 1; touch {done}"]
                creates: {done}
              - id: after
                kind: Command
                argv: ["true"]
                creates: {tmp_path / "after"}
                depends_on: [slow]
        """)
        proc = subprocess.Popen(
            [sys.executable, "-m", "hostconverge.main", "--config", str(path), "apply"],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            start_new_session=True,
        )
        deadline = time.monotonic() + 30
        while not started.exists():
            assert proc.poll() is None, proc.communicate()
            assert time.monotonic() < deadline, "command never started"
            time.sleep(0.05)

        # what a terminal Ctrl-C does: SIGINT to the whole foreground group
        os.killpg(proc.pid, signal.SIGINT)
        out, err = proc.communicate(timeout=30)

        assert done.exists()
        assert proc.returncode == ExitStatus.RESOURCES_FAILED, err
        assert "skipped: run cancelled" in out
        assert "FAILED (cancelled): 0 unchanged, 1 applied, 0 failed, 1 skipped" in out
        assert "Cancelling" in err
