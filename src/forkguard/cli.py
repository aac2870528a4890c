"""forkguard command-line entry points."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from forkguard import __version__
from forkguard.policy.catalog import CatalogError, PolicyCatalog, load_catalog
from forkguard.policy.report import report_to_dict, write_scan_report
from forkguard.policy.scanner import scan
from forkguard.sync.orchestrator import SyncConfig, SyncOrchestrator, parse_target
from forkguard.sync.vcs import GitAdapter, resolve_repo_root
from forkguard.ui import console, render_scan_report

cli = typer.Typer(
    name="forkguard",
    help="Selective upstream sync with banned-content enforcement.",
    no_args_is_help=True,
)


def _version_option_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@cli.callback()
def _cli_callback(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show forkguard version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Keep a fork in step with upstream without importing banned components."""


def _load_policy(policy: Path | None) -> PolicyCatalog:
    try:
        return load_catalog(policy)
    except CatalogError as exc:
        raise typer.BadParameter(str(exc), param_hint="--policy") from exc


def _scan_root(repo: Path | None) -> Path:
    try:
        return resolve_repo_root(repo)
    except RuntimeError:
        return (repo or Path.cwd()).resolve()


def sync_command(
    target: str | None = typer.Argument(
        None,
        metavar="[COMMIT | FROM..TO]",
        help="Commit to transplant, or an inclusive range. Omit to list candidates.",
    ),
    rescrub: bool = typer.Option(
        False,
        "--rescrub",
        help="Scrub and verify HEAD after a manually resolved conflict.",
    ),
    skip_verify: bool = typer.Option(
        False,
        "--skip-verify",
        help="Do not run the security guard after transplanting.",
    ),
    policy: Path | None = typer.Option(
        None,
        "--policy",
        help="YAML policy catalog overriding the built-in one.",
    ),
    repo: Path | None = typer.Option(
        None,
        "--repo",
        help="Repository path (defaults to current working directory).",
    ),
) -> None:
    """Transplant upstream commits onto the fork, scrubbing banned paths."""
    if rescrub and target:
        raise typer.BadParameter("--rescrub does not take a commit target", param_hint="TARGET")
    try:
        parsed = parse_target(target)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="TARGET") from exc
    catalog = _load_policy(policy)

    try:
        config = SyncConfig.from_env()
        repo_root = resolve_repo_root(repo)
    except RuntimeError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc

    orchestrator = SyncOrchestrator(
        GitAdapter(repo_root),
        catalog=catalog,
        config=config,
        verify=None if skip_verify else scan,
        console=console,
    )
    try:
        result = orchestrator.rescrub() if rescrub else orchestrator.run(parsed)
    except RuntimeError as exc:
        typer.echo(f"sync failed: {exc}", err=True)
        typer.echo("Inspect `git status`, then re-run after manual review.", err=True)
        raise typer.Exit(1) from exc
    raise typer.Exit(result.exit_code)


def scan_command(
    policy: Path | None = typer.Option(
        None,
        "--policy",
        help="YAML policy catalog overriding the built-in one.",
    ),
    repo: Path | None = typer.Option(
        None,
        "--repo",
        help="Tree to scan (defaults to the enclosing git repository).",
    ),
    out: Path | None = typer.Option(
        None,
        "--out",
        help="Directory for FORKGUARD_SCAN.json and FORKGUARD_SCAN.md.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the report as JSON instead of the sectioned summary.",
    ),
) -> None:
    """Scan the tree for banned extensions, risky packages and suspicious patterns."""
    catalog = _load_policy(policy)
    root = _scan_root(repo)
    try:
        report = scan(root, catalog)
    except OSError as exc:
        typer.echo(f"scan failed: {exc}", err=True)
        raise typer.Exit(1) from exc

    if json_output:
        typer.echo(json.dumps(report_to_dict(report), indent=2, sort_keys=True))
    else:
        render_scan_report(report, console)

    if out is not None:
        json_path, md_path = write_scan_report(report, out)
        if not json_output:
            console.print(f"[dim]Wrote {json_path} and {md_path}[/dim]")
    raise typer.Exit(report.exit_code)


cli.command("sync")(sync_command)
cli.command("scan")(scan_command)

sync_app = typer.Typer(name="forkguard-sync", add_completion=False)
sync_app.command()(sync_command)

scan_app = typer.Typer(name="forkguard-scan", add_completion=False)
scan_app.command()(scan_command)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
