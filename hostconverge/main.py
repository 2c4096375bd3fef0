"""
hostconverge — CLI entrypoint.

Usage:
    hostconverge --help
    hostconverge validate
    hostconverge plan
    hostconverge check --set DOMAIN=chat.example.com
    hostconverge apply --policy continue-on-error --jobs 4
"""

from __future__ import annotations

import json
import os
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path

import click

from hostconverge import __version__
from hostconverge.core.engine.reporter import STATUS_COLORS, format_summary, render_report
from hostconverge.core.models.outcome import RunPolicy
from hostconverge.core.observability.logging_config import setup_logging

_POLICIES = {
    "fail-fast": RunPolicy.FAIL_FAST,
    "continue-on-error": RunPolicy.CONTINUE_ON_ERROR,
}


@click.group()
@click.version_option(version=__version__, prog_name="hostconverge")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to hostconverge.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """hostconverge — declarative, idempotent host provisioning."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("HOSTCONVERGE_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("HOSTCONVERGE_LOG_FILE"),
        log_file_level=os.environ.get("HOSTCONVERGE_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


def _json_option(f):
    return click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")(f)


def _set_option(f):
    return click.option(
        "--set",
        "set_vars",
        multiple=True,
        metavar="NAME=VALUE",
        help="Override a manifest variable (repeatable).",
    )(f)


def _overrides(set_vars: tuple[str, ...]) -> dict[str, str]:
    from hostconverge.core.config.loader import ConfigError, parse_overrides

    try:
        return parse_overrides(set_vars)
    except ConfigError as e:
        raise click.BadParameter(str(e), param_hint="--set") from e


@contextmanager
def _cancel_on_interrupt():
    """First Ctrl-C (or SIGTERM) stops starting new resources."""
    cancel = threading.Event()

    def _handler(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        click.secho("\n⚠ Cancelling: waiting for in-flight resources to finish…", fg="yellow", err=True)
        cancel.set()

    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield cancel
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


# ── validate / plan ─────────────────────────────────────────────


@cli.command()
@_set_option
@_json_option
@click.pass_context
def validate(ctx: click.Context, set_vars: tuple[str, ...], as_json: bool) -> None:
    """Load and plan the manifest; list hazards. Touches nothing."""
    from hostconverge.core.use_cases.validate import validate_manifest

    result = validate_manifest(ctx.obj.get("config_path"), _overrides(set_vars))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(int(result.exit_status))

    for err in result.errors:
        click.secho(f"❌ {err}", fg="red")
    for warn in result.warnings:
        click.secho(f"⚠ {warn}", fg="yellow")

    if result.valid:
        assert result.graph is not None
        click.secho(
            f"✓ {result.graph.name}: {len(result.graph.resources)} resources, plan OK",
            fg="green",
        )
    sys.exit(int(result.exit_status))


@cli.command()
@_set_option
@_json_option
@click.pass_context
def plan(ctx: click.Context, set_vars: tuple[str, ...], as_json: bool) -> None:
    """Show the execution order of the manifest's resources."""
    from hostconverge.core.use_cases.validate import validate_manifest

    result = validate_manifest(ctx.obj.get("config_path"), _overrides(set_vars))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(int(result.exit_status))

    if result.plan is None:
        for err in result.errors:
            click.secho(f"❌ {err}", fg="red")
        sys.exit(int(result.exit_status))

    click.secho(f"\n📋 {result.plan.name}", fg="cyan", bold=True)
    for i, resource in enumerate(result.plan, start=1):
        deps = f"  ← {', '.join(resource.depends_on)}" if resource.depends_on else ""
        hazard = "  ⚠ always runs" if resource.id in result.hazards else ""
        click.echo(f"   {i:>3}. {resource.id} [{resource.kind}]{deps}{hazard}")
    click.echo()


# ── check / apply ───────────────────────────────────────────────


def _converge(ctx: click.Context, dry_run: bool, **opts) -> None:
    from hostconverge.core.use_cases.run import run_manifest

    as_json = opts.pop("as_json")
    root = opts.pop("root")

    with _cancel_on_interrupt() as cancel:
        result = run_manifest(
            config_path=ctx.obj.get("config_path"),
            overrides=_overrides(opts["set_vars"]),
            policy=_POLICIES[opts["policy"]],
            dry_run=dry_run,
            timeout=opts["timeout"],
            jobs=opts["jobs"],
            mock_mode=opts["mock"],
            root=Path(root) if root else None,
            cancel=cancel,
        )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(int(result.exit_status))

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        click.echo("   Nothing was changed.")
        sys.exit(int(result.exit_status))

    report = result.report
    assert report is not None
    quiet = ctx.obj.get("quiet", False)

    if not quiet:
        title = "Dry run" if dry_run else "Apply"
        click.secho(f"\n🔧 {title}: {report.name}", fg="cyan", bold=True)
        lines = render_report(report)
        for res, line in zip(report.results, lines):
            click.secho(f"   {line}", fg=STATUS_COLORS[res.outcome.status])
        click.echo()

    click.secho(format_summary(report), fg="green" if report.success else "red", bold=True)
    sys.exit(int(result.exit_status))


def _run_options(f):
    options = [
        click.option(
            "--policy",
            type=click.Choice(sorted(_POLICIES)),
            default="fail-fast",
            show_default=True,
            help="What a failed resource does to the rest of the run.",
        ),
        click.option("--timeout", type=float, default=None, help="Seconds allowed per check/apply."),
        click.option("--jobs", "-j", type=click.IntRange(min=1), default=1, show_default=True,
                     help="Converge independent resources concurrently."),
        click.option("--mock", is_flag=True, help="Use in-memory collaborators (no host tools)."),
        click.option("--root", type=click.Path(file_okay=False), default=None,
                     help="Re-root managed file paths under this directory."),
        _set_option,
        _json_option,
    ]
    for option in reversed(options):
        f = option(f)
    return f


@cli.command()
@_run_options
@click.pass_context
def check(ctx: click.Context, **opts) -> None:
    """Dry run: probe every resource and report what would change."""
    _converge(ctx, dry_run=True, **opts)


@cli.command()
@_run_options
@click.option("--dry-run", is_flag=True, help="Report what would change (same as 'check').")
@click.pass_context
def apply(ctx: click.Context, dry_run: bool, **opts) -> None:
    """Converge the host to the manifest."""
    _converge(ctx, dry_run=dry_run, **opts)


# ── adapters ────────────────────────────────────────────────────


@cli.command()
@click.option("--mock", is_flag=True, help="Show the mock collaborators instead.")
@_json_option
def adapters(mock: bool, as_json: bool) -> None:
    """Show registered collaborators and whether their tools are installed."""
    from hostconverge.adapters.registry import AdapterRegistry

    registry = AdapterRegistry.mock() if mock else AdapterRegistry.default()
    status = registry.adapter_status()

    if as_json:
        click.echo(json.dumps(status, indent=2))
        return

    for name, info in status.items():
        marker = "✓" if info["available"] else "✗"
        color = "green" if info["available"] else "red"
        click.secho(f"   {marker} {name:<10} {info['role']:<11} {info['type']}", fg=color)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
