"""
Command-line entry point for the VDB mover.

This module provides the move-to-physical command using Click with Rich
formatting for prompts and the final report.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console

from vdb_mover import __version__
from vdb_mover.models.config import (
    DEFAULT_CHANNEL_PARALLELISM,
    EnvironmentConfig,
    MigrationRequest,
)
from vdb_mover.orchestrator.orchestrator import MigrationOrchestrator
from vdb_mover.orchestrator.report import render_report
from vdb_mover.utils.helpers import is_writable_directory, load_config_file
from vdb_mover.utils.logging import setup_logging

console = Console()


def _print_validation_errors(error: PydanticValidationError) -> None:
    console.print("[red]Invalid arguments:[/red]")
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "request"
        console.print(f"  [red]•[/red] {location}: {item['msg']}")


@click.command(name="move-to-physical")
@click.option('--noask', is_flag=True, help='Do not ask for confirmation before moving')
@click.option('--parallel', type=click.IntRange(min=1), default=DEFAULT_CHANNEL_PARALLELISM,
              show_default=True, help='Number of RMAN channels used to copy datafiles')
@click.option('--dbunique', default=None, help='db_unique_name of the physical database (defaults to the VDB\'s)')
@click.option('--work-dir', type=click.Path(file_okay=False, path_type=Path), default=None,
              help='Directory for run logs and artifacts (defaults to the current directory)')
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='YAML or JSON settings file')
@click.option('--log-format', type=click.Choice(['text', 'json']), default=None,
              help='Format of the run log file (defaults to the structured_logging setting)')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.version_option(version=__version__, prog_name="move-to-physical")
@click.argument('data_destination')
@click.argument('redo_destination', required=False)
def main(
    noask: bool,
    parallel: int,
    dbunique: Optional[str],
    work_dir: Optional[Path],
    config: Optional[Path],
    log_format: Optional[str],
    verbose: bool,
    data_destination: str,
    redo_destination: Optional[str]
):
    """
    Move a VDB to physical storage.

    DATA_DESTINATION receives datafiles, control files and (unless
    REDO_DESTINATION is given) online redo logs. Both are absolute
    directories or ASM disk groups such as +DATA.
    """
    try:
        settings = load_config_file(config) if config else {}
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    try:
        environment = EnvironmentConfig.from_environ(settings=settings)
    except PydanticValidationError as e:
        _print_validation_errors(e)
        sys.exit(1)

    if not environment.oracle_sid:
        console.print("[red]Error: ORACLE_SID is not set[/red]")
        sys.exit(1)

    try:
        request = MigrationRequest(
            source_instance_id=environment.oracle_sid,
            target_unique_name=dbunique,
            data_destination=data_destination,
            redo_destination=redo_destination,
            channel_parallelism=parallel,
            confirmation_required=not noask,
        )
    except PydanticValidationError as e:
        _print_validation_errors(e)
        sys.exit(1)

    orchestrator = MigrationOrchestrator(environment, console=console, work_dir=work_dir)
    context = orchestrator.create_context(request)
    log_file = str(context.log_file) if is_writable_directory(context.work_dir) else None
    structured = environment.structured_logging if log_format is None else log_format == "json"
    setup_logging(
        level="DEBUG" if verbose else "INFO",
        log_file=log_file,
        structured_logging=structured,
    )

    try:
        success, report = asyncio.run(
            orchestrator.run(request, context, show_progress=not verbose and noask)
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Move interrupted by user; artifacts are left in place[/yellow]")
        sys.exit(1)

    render_report(report, console, show_phases=verbose)
    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
