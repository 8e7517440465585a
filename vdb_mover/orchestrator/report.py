"""
Final report for a move.

Builds the operator follow-up steps from the pipeline state and renders
them, together with the phase audit trail, with Rich.
"""

from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from vdb_mover.models.config import EnvironmentConfig, MigrationRequest
from vdb_mover.models.session import FinalReport, PipelineState, RunContext
from vdb_mover.utils.helpers import format_duration


def build_final_steps(environment: EnvironmentConfig, state: PipelineState) -> List[str]:
    """Steps left to the operator once the database runs from physical storage."""
    steps = [f"Delete the VDB {state.source_unique_name} from the virtualization engine."]
    if not state.cluster.is_clustered:
        steps.append(f"Copy the new parameter file: cp {state.new_init_file} {environment.init_ora_path}")
        steps.append(f"Start up the {state.target_unique_name} database instance.")
    elif state.final_startup_pending:
        steps.append(
            f"Start the {state.target_unique_name} database: srvctl start database -d {state.target_unique_name}"
        )
    steps.append("Modify initialization parameters to match the source database and restart.")
    if state.source_parameters_copy:
        steps.append(f"Source initialization parameters are restored in {state.source_parameters_copy}")
    return steps


def build_final_report(
    request: MigrationRequest,
    environment: EnvironmentConfig,
    state: PipelineState,
    context: RunContext,
    success: bool,
    failed_phase: Optional[str] = None,
    error: Optional[str] = None
) -> FinalReport:
    return FinalReport(
        success=success,
        run_id=context.run_id,
        target_unique_name=state.target_unique_name or request.target_unique_name,
        clustered=state.cluster.is_clustered,
        steps=build_final_steps(environment, state) if success else [],
        new_init_file=state.new_init_file,
        source_parameters_copy=state.source_parameters_copy,
        log_file=str(context.log_file),
        failed_phase=failed_phase,
        error=error,
        phase_results=list(context.phase_results),
    )


def render_phase_table(report: FinalReport) -> Table:
    table = Table(title=f"Phases of run {report.run_id}")
    table.add_column("Phase", style="cyan")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    for result in report.phase_results:
        status = "[green]completed[/green]" if result.succeeded else "[red]failed[/red]"
        duration = format_duration(result.duration) if result.duration is not None else "-"
        table.add_row(result.phase_name, status, duration)
    return table


def render_report(report: FinalReport, console: Console, show_phases: bool = False) -> None:
    """Print the outcome of a move."""
    if show_phases and report.phase_results:
        console.print(render_phase_table(report))

    if not report.success:
        text = Text()
        text.append(f"Phase {report.failed_phase} failed\n", style="bold red")
        if report.error:
            text.append(f"{report.error}\n", style="red")
        text.append(f"\nRun log: {report.log_file}", style="dim")
        console.print(Panel(text, title="Move to physical failed", border_style="red", padding=(1, 2)))
        return

    text = Text()
    text.append(f"Database {report.target_unique_name} moved to physical storage\n\n", style="bold green")
    text.append("Final steps:\n", style="bold yellow")
    for number, step in enumerate(report.steps, start=1):
        text.append(f"  {number}) {step}\n")
    text.append(f"\nRun log: {report.log_file}", style="dim")
    console.print(Panel(text, title="Move to physical complete", border_style="green", padding=(1, 2)))
