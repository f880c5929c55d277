"""
monoinstall — CLI entrypoint.

Usage:
    monoinstall --help
    monoinstall generate [--lazy] [--force]
    monoinstall install [--clean | --full-clean] [--bypass-policy]
    monoinstall config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from monoinstall import __version__
from monoinstall.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="monoinstall")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to monorepo.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """monoinstall — one shared dependency install for every project in the repo."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
    )


def _fail(error: str) -> None:
    click.secho(f"❌ {error}", fg="red", err=True)
    sys.exit(1)


@cli.command()
@click.option(
    "--lazy",
    "-l",
    is_flag=True,
    help="Do not clean the installed folder before installing. "
    "Faster, but less correct; only use it for debugging.",
)
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Rebuild the installed folder and lock file even if the lock file satisfies "
    "every range (cleans up removed dependencies).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def generate(ctx: click.Context, lazy: bool, force: bool, as_json: bool) -> None:
    """Regenerate temp modules after changing any project's package.json."""
    from monoinstall.core.use_cases.generate import run_generate

    if not as_json and not ctx.obj.get("quiet"):
        click.secho('Starting "monoinstall generate"\n', bold=True)

    result = run_generate(config_path=ctx.obj.get("config_path"), lazy=lazy, force=force)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        _fail(result.error)

    report = result.report
    assert report is not None and result.decision is not None

    if report.forced:
        click.secho("   Forced full reinstall", fg="yellow")
    elif not report.lock_file_found:
        click.secho("   No previous lock file: regenerated from scratch", fg="yellow")
    elif report.unsatisfied:
        click.secho(
            f"   Lock file was missing {len(report.unsatisfied)} dependencies:", fg="yellow"
        )
        for missing in report.unsatisfied:
            click.echo(f"     • {missing.describe()}")
    else:
        click.secho("   All dependencies found in the lock file (fast mode)", fg="green")

    click.echo(f"   Temp modules: {len(result.temp_module_files)}")
    if lazy:
        click.echo("   (Skipped lock file regeneration)")
    elif result.shrinkwrapped:
        click.echo("   Lock file regenerated")

    click.echo()
    click.secho(
        f"✅ monoinstall generate finished successfully ({result.elapsed_ms / 1000:.2f}s)",
        fg="green",
    )
    click.echo("   Remember to commit the changed temp modules and lock file.")


@cli.command()
@click.option(
    "--clean",
    "-c",
    is_flag=True,
    help="Delete any previously installed files before installing; "
    "slower, but resolves a corrupted installed folder.",
)
@click.option(
    "--full-clean",
    "-C",
    is_flag=True,
    help='Like "--clean", but also deletes and reinstalls the installer tool itself.',
)
@click.option("--bypass-policy", is_flag=True, help="Skip git policy enforcement.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    clean: bool,
    full_clean: bool,
    bypass_policy: bool,
    as_json: bool,
) -> None:
    """Install the common dependencies as described by the temp modules."""
    from monoinstall.core.use_cases.install import run_install

    if not as_json and not ctx.obj.get("quiet"):
        click.secho('Starting "monoinstall install"\n', bold=True)

    result = run_install(
        config_path=ctx.obj.get("config_path"),
        clean=clean,
        full_clean=full_clean,
        bypass_policy=bypass_policy,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        _fail(result.error)

    outcome = result.outcome
    assert outcome is not None

    labels = {
        "skip": ("Installed folder already up to date", "green"),
        "fast_install": ("Updated the installed folder", "green"),
        "full_reinstall": ("Reinstalled the installed folder from scratch", "yellow"),
    }
    label, color = labels[outcome.decision.value]
    click.secho(f"   {label}", fg=color)
    if outcome.disposals:
        click.echo("   Discarded the folder left behind by an interrupted install")
    if outcome.install_attempts > 1:
        click.echo(f"   Install succeeded after {outcome.install_attempts} attempts")

    click.echo()
    click.secho(
        f"✅ The common packages are up to date ({result.elapsed_ms / 1000:.2f}s)", fg="green"
    )


@cli.group()
def config() -> None:
    """Repository configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate monorepo.yml and every project's package.json."""
    from monoinstall.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Common folder: {result.config.common_folder}")
        click.echo(f"   Projects: {len(result.config.projects)}")
        click.echo(f"   Pinned versions: {len(result.config.pinned_versions)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        sys.exit(1)


if __name__ == "__main__":
    cli()
