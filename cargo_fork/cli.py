"""CLI entry point: cargo-fork.

Usage:
    cargo-fork serde                        # clone serde at the commit of the locked release
    cargo-fork --source vcs-head serde      # clone serde at HEAD
    cargo-fork --source crate serde         # unpack the published .crate
    cargo fork serde --dest-dir ../serde    # as a cargo subcommand
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from cargo_fork.config import Settings
from cargo_fork.core.logging import setup_logging
from cargo_fork.diff import diff_to_dict, format_diff
from cargo_fork.exceptions import CargoForkError, ConfigError
from cargo_fork.models import SourceKind
from cargo_fork.orchestrator import ForkOrchestrator, ForkResult
from cargo_fork.registry import build_http_client

_SOURCE_CHOICES = [kind.value for kind in SourceKind]


def _print_result(result: ForkResult, as_json: bool) -> None:
    if as_json:
        click.echo(
            json.dumps(
                {
                    "crate": result.crate.name,
                    "version": result.crate.version,
                    "source": result.source.value,
                    "patch_path": str(result.patch_path),
                    "manifest_path": str(result.manifest_path),
                    "changes": diff_to_dict(result.diff),
                    "stages": result.summary.get("stages", []),
                },
                indent=2,
            )
        )
        return

    click.echo(f"Using manifest: {result.manifest_path}")
    click.echo(f"Patched {result.crate.name} {result.crate.version} -> {result.patch_path}")
    lines = format_diff(result.diff)
    if not lines:
        click.echo("No dependency changes.")
        return
    click.echo("\nDependency changes:")
    for line in lines:
        click.echo(line)


@click.command()
@click.option(
    "--source",
    type=click.Choice(_SOURCE_CHOICES),
    default=SourceKind.VCS_PINNED_TO_RELEASE.value,
    show_default=True,
    help="crate: published archive; vcs-head: repository HEAD; "
    "vcs-current: repository commit the locked version was published from",
)
@click.option(
    "--dest-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Where to put the source (default: next to the workspace root)",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.argument("crate_name")
def cli(source: str, dest_dir: Path | None, as_json: bool, verbose: bool, crate_name: str) -> None:
    """Patch CRATE_NAME in the current workspace with a local, editable copy."""
    setup_logging(verbose)
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        click.echo(f"Error: config failed: {exc}", err=True)
        sys.exit(1)

    with build_http_client(settings) as client:
        orchestrator = ForkOrchestrator.create(settings, client)
        try:
            result = orchestrator.run(
                crate_name,
                SourceKind(source),
                cwd=Path.cwd(),
                dest_dir=dest_dir,
            )
        except CargoForkError as exc:
            stage = orchestrator.progress.failed_stage or "fork"
            click.echo(f"Error: {stage} failed: {exc}", err=True)
            sys.exit(1)

    _print_result(result, as_json)


def main() -> None:
    # cargo runs `cargo-fork fork <args>` for `cargo fork <args>`
    args = sys.argv[1:]
    if args[:1] == ["fork"]:
        args = args[1:]
    cli.main(args=args, prog_name="cargo-fork")


if __name__ == "__main__":
    main()
