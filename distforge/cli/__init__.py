"""
Command Line Interface for distforge.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog
import typer
from rich.console import Console
from rich.table import Table

from ..config import Settings, get_settings
from ..deps import (
    BuildRequirementsInstaller,
    PipFetcher,
    PipResolver,
    VenvEnvironmentManager,
    load_constraints,
)
from ..errors import DistforgeError, render_top_level
from ..frontend import EXIT_FAILURE, BuildReporter, WorkspaceBuildCoordinator
from ..models import BuildPlan
from ..policy import BuildRequest

app = typer.Typer(
    help="distforge - build source distributions and wheels for Python projects",
    no_args_is_help=True,
)
console = Console()


def configure_logging(settings: Settings) -> None:
    """Route library logs and structured logs to stderr at the configured level."""
    level = getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger().setLevel(level)

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def _fail(reporter: BuildReporter, message: str) -> None:
    reporter.error(message)
    raise typer.Exit(EXIT_FAILURE)


@app.command()
def build(
    src: Optional[Path] = typer.Argument(
        None, help="Directory or source distribution to build (default: current directory)"
    ),
    sdist: bool = typer.Option(False, "--sdist", help="Build a source distribution"),
    wheel: bool = typer.Option(False, "--wheel", help="Build a wheel"),
    out_dir: Optional[Path] = typer.Option(
        None, "--out-dir", "-o", help="Directory to write the artifacts to"
    ),
    package: Optional[str] = typer.Option(
        None, "--package", help="Build a specific package in the workspace"
    ),
    all_packages: bool = typer.Option(
        False, "--all-packages", "--all", help="Build every buildable package in the workspace"
    ),
    build_constraint: Optional[List[Path]] = typer.Option(
        None, "--build-constraint", "-b", help="Constrain build requirements (repeatable)"
    ),
    require_hashes: bool = typer.Option(
        False, "--require-hashes", help="Require a hash for every build requirement"
    ),
    list_files: bool = typer.Option(
        False, "--list", help="Show the files the artifacts would contain, without building"
    ),
    no_build_logs: bool = typer.Option(
        False, "--no-build-logs", help="Hide the output of the build backend"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print errors"),
    force_pep517: bool = typer.Option(
        False, "--force-pep517", help="Always build through PEP 517 hooks"
    ),
):
    """Build source distributions and wheels."""
    settings = get_settings()
    configure_logging(settings)
    reporter = BuildReporter(quiet=quiet, no_build_logs=no_build_logs)

    if list_files and force_pep517:
        _fail(reporter, "error: the argument '--list' cannot be used with '--force-pep517'")

    try:
        constraints = load_constraints(build_constraint or [])
    except DistforgeError as e:
        _fail(reporter, render_top_level(e))

    installer = BuildRequirementsInstaller(
        resolver=PipResolver(python=settings.build_python, index_url=settings.index_url),
        fetcher=PipFetcher(python=settings.build_python, index_url=settings.index_url),
        environments=VenvEnvironmentManager(
            python=settings.build_python, keep=settings.keep_build_envs
        ),
        constraints=constraints,
        require_hashes=require_hashes,
    )
    coordinator = WorkspaceBuildCoordinator(
        installer,
        reporter,
        settings=settings,
        force_pep517=force_pep517,
        list_files=list_files,
    )
    request = BuildRequest(
        src=src,
        plan=BuildPlan.from_flags(sdist=sdist, wheel=wheel),
        package=package,
        all_packages=all_packages,
        out_dir=out_dir,
    )

    try:
        _, exit_code = coordinator.run(request)
    except DistforgeError as e:
        _fail(reporter, render_top_level(e))
    raise typer.Exit(exit_code)


@app.command()
def config():
    """Show the effective settings."""
    settings = get_settings()
    table = Table(title="distforge settings", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Environment variable", no_wrap=True)
    table.add_column("Value", style="green")
    for name, value in settings.model_dump().items():
        table.add_row(name, f"DISTFORGE_{name.upper()}", "" if value is None else str(value))
    console.print(table)


def main() -> None:
    app(prog_name="distforge")
