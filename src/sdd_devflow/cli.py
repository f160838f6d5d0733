"""create-sdd-project CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click

from sdd_devflow import __version__

if TYPE_CHECKING:
    from collections.abc import Callable

    from sdd_devflow.materialize.files import MaterializeResult
    from sdd_devflow.settings import Settings

logger = logging.getLogger(__name__)

CREATE_COMMIT = 'git init && git add -A && git commit -m "chore: initialize SDD DevFlow project"'
INIT_COMMIT = 'git add -A && git commit -m "chore: add SDD DevFlow to existing project"'


def _setup_logging(*, verbose: bool, quiet: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
    )


def _fail(message: str, *hints: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    for hint in hints:
        click.echo(hint, err=True)
    sys.exit(1)


def _report(result: MaterializeResult, next_steps: list[str], *, quiet: bool) -> None:
    if quiet:
        return
    for note in result.notes:
        click.echo(f"\n  Note: {note}")
    if result.skipped:
        click.echo(f"\n  Skipped {len(result.skipped)} existing file(s):")
        for rel in result.skipped:
            click.echo(f"    - {rel}")
    click.echo("\nDone! Next steps:")
    for line in next_steps:
        click.echo(f"  {line}")


@click.command()
@click.version_option(version=__version__, prog_name="create-sdd-project")
@click.argument("project_name", required=False)
@click.option("--yes", "-y", is_flag=True, help="Skip the wizard and use defaults.")
@click.option(
    "--init",
    "init_mode",
    is_flag=True,
    help="Add SDD DevFlow to the existing project in the current directory.",
)
@click.option(
    "--scan",
    "scan_only",
    is_flag=True,
    help="Print what the scanner detects in the current directory, then exit.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Settings file (default: $SDD_DEVFLOW_CONFIG, ./.sdd-devflow.yml).",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
def main(
    project_name: str | None,
    *,
    yes: bool,
    init_mode: bool,
    scan_only: bool,
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Create a new SDD DevFlow project, or add it to an existing one."""
    from sdd_devflow.settings import find_settings_file, load_settings

    _setup_logging(verbose=verbose, quiet=quiet)
    cwd = Path.cwd()

    if scan_only:
        _print_scan(cwd)
        return

    settings = load_settings(find_settings_file(config_path, cwd))
    try:
        if init_mode:
            _run_init(cwd, project_name, settings, yes=yes, quiet=quiet)
        else:
            _run_create(cwd, project_name, settings, yes=yes, quiet=quiet)
    except (OSError, LookupError, ValueError) as exc:
        logger.debug("Materialization failed", exc_info=True)
        _fail(str(exc))


def _print_scan(cwd: Path) -> None:
    from sdd_devflow.onboarding import format_scan_summary, scan_project

    scan = scan_project(cwd)
    click.echo(format_scan_summary(scan))
    click.echo("")
    click.echo(json.dumps(scan.to_dict(), indent=2))


def _step_printer(quiet: bool) -> Callable[[str], None]:
    def on_step(message: str) -> None:
        if not quiet:
            click.echo(f"  ✓ {message}")

    return on_step


def _run_create(
    cwd: Path, project_name: str | None, settings: Settings, *, yes: bool, quiet: bool
) -> None:
    from sdd_devflow.materialize import generate
    from sdd_devflow.onboarding import build_default_config, run_wizard

    if yes:
        if not project_name:
            _fail(
                "Project name required with --yes flag.",
                "Usage: create-sdd-project <project-name> --yes",
            )
        config = build_default_config(project_name, cwd=cwd, settings=settings)
    else:
        config = run_wizard(project_name, cwd=cwd, settings=settings)
        if config is None:
            sys.exit(0)

    dest = config.project_dir
    if dest.exists() and (not dest.is_dir() or any(dest.iterdir())):
        _fail(f"Directory {dest} is not empty.")

    if not quiet:
        click.echo(f"\nCreating {config.project_name}...\n")
    result = generate(config, on_step=_step_printer(quiet))

    steps = []
    if dest != cwd.resolve():
        steps.append(f"cd {_display_path(dest, cwd)}")
    steps.append(CREATE_COMMIT)
    steps.append("# Open in your AI coding tool and run: init sprint 0")
    _report(result, steps, quiet=quiet)


def _run_init(
    cwd: Path, project_name: str | None, settings: Settings, *, yes: bool, quiet: bool
) -> None:
    from sdd_devflow.materialize import generate_init
    from sdd_devflow.onboarding import (
        build_init_default_config,
        format_scan_summary,
        run_init_wizard,
        scan_project,
    )

    if project_name:
        _fail(
            "Cannot specify a project name with --init.",
            "Usage: create-sdd-project --init",
        )
    if not (cwd / "package.json").is_file():
        _fail(
            "No package.json found in current directory.",
            "The --init flag requires an existing Node.js project.",
        )
    if (cwd / "ai-specs").exists():
        _fail(
            "ai-specs/ directory already exists.",
            "SDD DevFlow appears to already be installed in this project.",
        )

    scan = scan_project(cwd)
    if yes:
        config = build_init_default_config(scan, cwd, settings=settings)
        if not quiet:
            click.echo("\nDetected:")
            click.echo(format_scan_summary(scan))
    else:
        config = run_init_wizard(scan, cwd, settings=settings)
        if config is None:
            sys.exit(0)

    if not quiet:
        click.echo(f"\nAdding SDD DevFlow to {config.project_name}...\n")
    result = generate_init(config, on_step=_step_printer(quiet))
    _report(
        result,
        [INIT_COMMIT, "# Open in your AI coding tool and run: init sprint 0"],
        quiet=quiet,
    )


def _display_path(path: Path, cwd: Path) -> str:
    try:
        return path.relative_to(cwd.resolve()).as_posix()
    except ValueError:
        return str(path)
