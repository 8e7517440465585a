"""
Migration orchestrator for moving a VDB to physical storage.

This module provides the MigrationOrchestrator class that drives the
move phase by phase. Phases run strictly in order; the first failing
phase halts the run, its diagnostic output is logged verbatim and every
artifact is left in place. Nothing is undone automatically: a failed
move is diagnosed and then resumed or abandoned by the operator.
"""

import shutil
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.prompt import Confirm
from rich.table import Table

from vdb_mover.cluster.base import ClusterClient
from vdb_mover.cluster.coordinator import ClusterCoordinator, select_coordinator
from vdb_mover.cluster.srvctl import SrvctlClient
from vdb_mover.core.error_handler import ErrorContext, ErrorHandler
from vdb_mover.core.exceptions import (
    EngineCommandError,
    PreconditionError,
    ValidationError,
)
from vdb_mover.database.base import (
    DatabaseAdminClient,
    ShutdownMode,
    StartupMode,
    require,
    startup_statement,
)
from vdb_mover.database.sqlplus import SqlPlusClient
from vdb_mover.models.catalog import ClusterConfig
from vdb_mover.models.config import EnvironmentConfig, MigrationRequest
from vdb_mover.models.session import (
    FinalReport,
    PipelinePhaseResult,
    PipelineState,
    RunContext,
)
from vdb_mover.orchestrator.report import build_final_report
from vdb_mover.relocation.redo_logs import RedoLogRelocator
from vdb_mover.relocation.tablespaces import (
    DROP_OFFLINE,
    READ_ONLY,
    READ_WRITE,
    TablespaceStateManager,
)
from vdb_mover.relocation.tempfiles import ADD_TEMPFILES, DROP_TEMPFILES, TempFileRelocator
from vdb_mover.storage.base import StorageRelocationEngine
from vdb_mover.storage.rman import RmanRelocationEngine
from vdb_mover.utils.helpers import is_writable_directory, quote_sql_literal
from vdb_mover.utils.logging import RunLogger


DEFAULT_ARCHIVE_DEST_PARAMETER = "log_archive_dest_1"


class OrchestrationPhase(str, Enum):
    """Phases of a move, in execution order."""
    VALIDATE = "validate"
    PREFLIGHT = "preflight"
    REGISTER_CLUSTER = "register_cluster"
    RESTART_CLEAN = "restart_clean"
    GENERATE_COMMANDS = "generate_commands"
    PREPARE_TABLESPACES = "prepare_tablespaces"
    UPDATE_PARAMETERS = "update_parameters"
    EXTERNALIZE_SPFILE = "externalize_spfile"
    RELOCATE_DATAFILES = "relocate_datafiles"
    RESTART_RELOCATED = "restart_relocated"
    ADD_TEMPFILES = "add_tempfiles"
    RELOCATE_REDO_LOGS = "relocate_redo_logs"
    RESTORE_READ_ONLY = "restore_read_only"
    TEARDOWN_CLUSTER = "teardown_cluster"
    MOUNT_CHECKPOINT = "mount_checkpoint"
    DROP_OLD_TEMPFILES = "drop_old_tempfiles"
    CLEANUP = "cleanup"
    PRESERVE_SOURCE_PARAMETERS = "preserve_source_parameters"
    FINAL_STARTUP = "final_startup"


PHASE_DESCRIPTIONS: Dict[OrchestrationPhase, str] = {
    OrchestrationPhase.VALIDATE: "Validate inputs",
    OrchestrationPhase.PREFLIGHT: "Inspect the VDB",
    OrchestrationPhase.REGISTER_CLUSTER: "Register the VDB with the clusterware",
    OrchestrationPhase.RESTART_CLEAN: "Restart the VDB from its parameter file",
    OrchestrationPhase.GENERATE_COMMANDS: "Generate tempfile and tablespace commands",
    OrchestrationPhase.PREPARE_TABLESPACES: "Make read-only tablespaces read-write and remove offline tablespaces",
    OrchestrationPhase.UPDATE_PARAMETERS: "Update server parameter file with physical locations",
    OrchestrationPhase.EXTERNALIZE_SPFILE: "Move spfile to physical destination",
    OrchestrationPhase.RELOCATE_DATAFILES: "Move datafiles to physical destination",
    OrchestrationPhase.RESTART_RELOCATED: "Startup database with updated parameters",
    OrchestrationPhase.ADD_TEMPFILES: "Move tempfiles into physical destination",
    OrchestrationPhase.RELOCATE_REDO_LOGS: "Move online logs",
    OrchestrationPhase.RESTORE_READ_ONLY: "Restore read-only tablespaces",
    OrchestrationPhase.TEARDOWN_CLUSTER: "Remove transient cluster registration",
    OrchestrationPhase.MOUNT_CHECKPOINT: "Mount database with new parameter file",
    OrchestrationPhase.DROP_OLD_TEMPFILES: "Remove old tempfiles",
    OrchestrationPhase.CLEANUP: "Remove run artifacts and shut down",
    OrchestrationPhase.PRESERVE_SOURCE_PARAMETERS: "Preserve source initialization parameters",
    OrchestrationPhase.FINAL_STARTUP: "Start clustered database",
}


class MigrationOrchestrator:
    """
    Drives the move of a VDB to physical storage.

    The orchestrator owns the run context and the pipeline state; the
    components it calls only see what each phase hands them.
    """

    def __init__(
        self,
        environment: EnvironmentConfig,
        admin: Optional[DatabaseAdminClient] = None,
        storage: Optional[StorageRelocationEngine] = None,
        cluster_client: Optional[ClusterClient] = None,
        console: Optional[Console] = None,
        confirm: Optional[Callable[[MigrationRequest], bool]] = None,
        error_handler: Optional[ErrorHandler] = None,
        work_dir: Optional[Path] = None,
        pid: Optional[int] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            environment: Oracle environment of the host
            admin: Database client (defaults to SQL*Plus)
            storage: Relocation engine (defaults to RMAN)
            cluster_client: Cluster client, only used for clustered sources (defaults to srvctl)
            console: Rich console for prompts and progress
            confirm: Callback asking the operator to proceed
            error_handler: Error classifier
            work_dir: Directory receiving run artifacts (defaults to the current directory)
            pid: Process identifier used in the run id
        """
        self.environment = environment
        self.admin = admin or SqlPlusClient(environment)
        self.storage = storage or RmanRelocationEngine(environment)
        self.cluster_client = cluster_client
        self.console = console or Console()
        self.confirm = confirm or self._ask_operator
        self.error_handler = error_handler or ErrorHandler()
        self.work_dir = Path(work_dir) if work_dir else Path.cwd()
        self.pid = pid

        self.coordinator: Optional[ClusterCoordinator] = None
        self.tablespaces = TablespaceStateManager(self.admin)
        self.tempfiles = TempFileRelocator(self.admin)

    def create_context(self, request: MigrationRequest) -> RunContext:
        run_id = RunContext.build_run_id(request.source_instance_id, self.pid)
        return RunContext(run_id=run_id, work_dir=self.work_dir, logger=RunLogger(run_id))

    def describe_request(self, request: MigrationRequest) -> List[Tuple[str, str]]:
        settings = [
            ("db_unique_name", request.target_unique_name or "(same as VDB)"),
            ("ORACLE_SID", request.source_instance_id),
            ("ORACLE_HOME", self.environment.oracle_home or ""),
            ("Datafile destination", request.data_destination),
        ]
        if request.separate_redo_destination:
            settings.append(("Online redo destination", request.effective_redo_destination))
        settings.append(("RMAN channels", str(request.channel_parallelism)))
        return settings

    def _ask_operator(self, request: MigrationRequest) -> bool:
        table = Table(title="Verify the following settings")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")
        for name, value in self.describe_request(request):
            table.add_row(name, value)
        self.console.print(table)
        return Confirm.ask("Do you want to proceed", default=False, console=self.console)

    async def run(
        self,
        request: MigrationRequest,
        context: Optional[RunContext] = None,
        show_progress: bool = False
    ) -> Tuple[bool, FinalReport]:
        """
        Execute the move.

        Args:
            request: What to move and where
            context: Run context (created when not given)
            show_progress: Whether to show a progress bar

        Returns:
            (success, final report)
        """
        context = context or self.create_context(request)
        state = PipelineState()
        phases = list(OrchestrationPhase)

        context.logger.info(
            f"Moving database {request.source_instance_id} to physical: "
            f"started at {datetime.now():%Y-%m-%d %H:%M:%S}"
        )

        failed_phase: Optional[OrchestrationPhase] = None
        error: Optional[Exception] = None

        if show_progress:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=self.console,
                transient=True
            ) as progress:
                task = progress.add_task("Moving to physical", total=len(phases))
                for phase in phases:
                    progress.update(task, description=PHASE_DESCRIPTIONS[phase])
                    error = await self._execute_phase(phase, request, context, state)
                    if error is not None:
                        failed_phase = phase
                        break
                    progress.advance(task)
        else:
            for phase in phases:
                error = await self._execute_phase(phase, request, context, state)
                if error is not None:
                    failed_phase = phase
                    break

        success = failed_phase is None
        if success:
            context.remove_transient_artifacts()
            context.logger.info(
                f"Database {state.target_unique_name} moved to physical directory: "
                f"completed at {datetime.now():%Y-%m-%d %H:%M:%S}"
            )
        elif context.retained_artifacts():
            context.logger.error(
                f"Move halted in phase {failed_phase.value}; "
                f"artifacts retained in {context.work_dir}"
            )
        else:
            context.logger.error(f"Move halted in phase {failed_phase.value}")

        try:
            context.write_phase_results()
        except OSError as e:
            context.logger.warning(f"Could not write phase results: {e}")

        report = build_final_report(
            request=request,
            environment=self.environment,
            state=state,
            context=context,
            success=success,
            failed_phase=failed_phase.value if failed_phase else None,
            error=str(error) if error else None,
        )
        return success, report

    async def _execute_phase(
        self,
        phase: OrchestrationPhase,
        request: MigrationRequest,
        context: RunContext,
        state: PipelineState
    ) -> Optional[Exception]:
        """Run one phase and record its result; returns the error that halted it."""
        handler = getattr(self, f"_phase_{phase.value}")
        result = PipelinePhaseResult(phase_name=phase.value, succeeded=False)
        context.logger.phase_start(phase.value, PHASE_DESCRIPTIONS[phase])

        try:
            output = await handler(request, context, state) or ""
        except Exception as e:
            output = getattr(e, "output", "") or getattr(e, "details", {}).get("output", "")
            result.finished_at = datetime.now()
            result.duration = (result.finished_at - result.started_at).total_seconds()
            result.diagnostic_output = output
            result.error_code = getattr(e, "code", type(e).__name__)
            context.record(result)

            context.logger.phase_failed(phase.value, str(e), result.error_code)
            if output:
                context.logger.diagnostic(phase.value, output)
                self._save_diagnostic(context, phase, output)
            await self.error_handler.handle_error(
                e, ErrorContext(phase=phase.value, run_id=context.run_id)
            )
            return e

        result.succeeded = True
        result.finished_at = datetime.now()
        result.duration = (result.finished_at - result.started_at).total_seconds()
        result.diagnostic_output = output
        context.record(result)
        if output:
            self._save_diagnostic(context, phase, output)
        context.logger.phase_complete(phase.value, result.duration)
        return None

    def _save_diagnostic(self, context: RunContext, phase: OrchestrationPhase, output: str) -> None:
        try:
            context.append_diagnostic(phase.value, output)
        except OSError as e:
            context.logger.warning(f"Could not write diagnostic log for {phase.value}: {e}")

    # Phases

    async def _phase_validate(self, request, context, state) -> str:
        env = self.environment
        failed_checks = []

        if not env.oracle_sid:
            failed_checks.append("ORACLE_SID is not set")
        elif env.oracle_sid != request.source_instance_id:
            failed_checks.append(
                f"ORACLE_SID {env.oracle_sid} does not match the requested instance {request.source_instance_id}"
            )
        if not env.oracle_home:
            failed_checks.append("ORACLE_HOME is not set")
        elif not env.init_ora_path.is_file():
            failed_checks.append(f"Cannot find initialization parameter file: {env.init_ora_path}")
        if not is_writable_directory(context.work_dir):
            failed_checks.append(f"Directory {context.work_dir} must be writable: please fix permissions")

        if failed_checks:
            raise ValidationError("; ".join(failed_checks), failed_checks=failed_checks)

        for name, value in self.describe_request(request):
            context.logger.info(f"    {name} => {value}")

        if request.confirmation_required and not self.confirm(request):
            raise ValidationError("Cancelling script as requested by the user...")
        return ""

    async def _phase_preflight(self, request, context, state) -> str:
        admin = self.admin

        state.source_unique_name = await admin.get_unique_name()
        if not state.source_unique_name:
            raise EngineCommandError("VDB query to obtain db_unique_name failed")
        state.target_unique_name = request.resolve_target_name(state.source_unique_name)

        state.spfile_path = await admin.get_parameter("spfile")
        if not state.spfile_path:
            raise PreconditionError(
                f"VDB {state.source_unique_name} must use SPFILE for this procedure to work"
            )
        state.source_parameters_file = str(Path(state.spfile_path).parent / "source_init.ora")

        state.controlfile_name = await admin.get_controlfile_name()
        if not state.controlfile_name:
            raise EngineCommandError("Failed to obtain name of current controlfile")

        try:
            archive_dest = await admin.get_mandatory_archive_dest()
        except EngineCommandError as e:
            context.logger.warning(f"Could not read archive destinations: {e}")
            archive_dest = None
        state.archive_dest_parameter = archive_dest or DEFAULT_ARCHIVE_DEST_PARAMETER

        is_clustered = (await admin.get_parameter("cluster_database") or "").upper() == "TRUE"
        if is_clustered:
            self._check_cluster_tools()
            state.db_name = await admin.get_parameter("db_name")
            instances = await admin.list_instances()
            state.cluster = ClusterConfig(
                is_clustered=True,
                home_path=self.environment.crs_home,
                node_names=[i.host_name for i in instances],
                instance_names=[i.instance_name for i in instances],
            )
            if self.cluster_client is None:
                self.cluster_client = SrvctlClient(self.environment)
        else:
            state.cluster = ClusterConfig(is_clustered=False)
        self.coordinator = select_coordinator(is_clustered, admin, self.cluster_client)

        state.tablespaces = await admin.list_tablespaces()
        state.tempfiles = await admin.list_tempfiles()
        state.redo_log_groups = await admin.list_redo_log_groups()

        summary = [
            f"db_unique_name: {state.source_unique_name} -> {state.target_unique_name}",
            f"spfile: {state.spfile_path}",
            f"controlfile: {state.controlfile_name}",
            f"archive destination parameter: {state.archive_dest_parameter}",
            f"clustered: {is_clustered}",
            f"tablespaces: {len(state.tablespaces)}, tempfiles: {len(state.tempfiles)}, "
            f"redo log groups: {len(state.redo_log_groups)}",
        ]
        for line in summary:
            context.logger.info(f"    {line}")
        return "\n".join(summary)

    def _check_cluster_tools(self) -> None:
        env = self.environment
        if not env.crs_home:
            raise ValidationError("CRS_HOME is not set", failed_checks=["CRS_HOME"])
        failed_checks = []
        for tool in ("srvctl", "olsnodes"):
            path = env.tool_path(env.crs_home, tool)
            if not (path.is_file() and shutil.which(str(path))):
                failed_checks.append(f"RAC support requires access to the {path} utility")
        if failed_checks:
            raise ValidationError("; ".join(failed_checks), failed_checks=failed_checks)

    async def _phase_register_cluster(self, request, context, state) -> str:
        return await self.coordinator.register(
            state.source_unique_name,
            state.target_unique_name,
            self.environment.oracle_home,
            state.spfile_path,
            db_name=state.db_name,
        )

    async def _phase_restart_clean(self, request, context, state) -> str:
        result = await self.admin.startup(StartupMode.OPEN, pfile=str(self.environment.init_ora_path))
        return require(result, "Failed to restart the database").output

    async def _phase_generate_commands(self, request, context, state) -> str:
        command_sets = [
            TempFileRelocator.compute_additions(state.tempfiles),
            TempFileRelocator.compute_drops(state.tempfiles),
            TablespaceStateManager.compute_offline_drop(state.tablespaces),
            TablespaceStateManager.compute_read_write_toggle(state.tablespaces),
            TablespaceStateManager.compute_read_only_restore(state.tablespaces),
        ]
        lines = []
        for command_set in command_sets:
            state.command_sets[command_set.name] = command_set
            context.write_command_set(command_set)
            lines.append(f"{command_set.name}: {len(command_set.statements)} statement(s)")
        return "\n".join(lines)

    async def _phase_prepare_tablespaces(self, request, context, state) -> str:
        toggled = await self.tablespaces.apply(
            state.command_set(READ_WRITE), "Make read-only tablespaces read-write"
        )
        dropped = await self.tablespaces.apply(
            state.command_set(DROP_OFFLINE), "Remove offline tablespaces"
        )
        return toggled.output + dropped.output

    def _parameter_statements(self, request: MigrationRequest, state: PipelineState) -> List[str]:
        target = state.target_unique_name
        data = request.data_destination
        scope = "scope=spfile sid='*'"
        archive_location = f"location={self.environment.archive_root}/{target}"
        return [
            f"alter system set db_unique_name={quote_sql_literal(target)} {scope}",
            f"alter system set db_create_file_dest={quote_sql_literal(data)} {scope}",
            f'alter system set "{state.archive_dest_parameter}"={quote_sql_literal(archive_location)} {scope}',
            f"alter system set db_create_online_log_dest_1="
            f"{quote_sql_literal(request.effective_redo_destination)} {scope}",
            f"alter system set control_files={quote_sql_literal(f'{data}/{target}/cfile1.f')} {scope}",
            f"alter system reset filesystemio_options {scope}",
            startup_statement(StartupMode.NOMOUNT),
        ]

    async def _phase_update_parameters(self, request, context, state) -> str:
        if not request.data_destination.startswith("+"):
            Path(request.data_destination, state.target_unique_name).mkdir(parents=True, exist_ok=True)
        result = await self.admin.execute(self._parameter_statements(request, state))
        return require(result, "Failed to update spfile").output

    async def _phase_externalize_spfile(self, request, context, state) -> str:
        pfile = context.register_artifact("pfile", f"pfile_{context.run_id}.ora")
        new_spfile = str(self.environment.spfile_path_for(state.target_unique_name))
        result = await self.admin.execute([
            f"create pfile={quote_sql_literal(str(pfile))} from spfile",
            f"create spfile={quote_sql_literal(new_spfile)} from pfile={quote_sql_literal(str(pfile))}",
        ])
        require(result, "Failed to move spfile")

        init_file = context.write_artifact(
            "new_init",
            f"init{context.run_id}_moveasm.ora",
            f"spfile={quote_sql_literal(new_spfile)}\n",
            transient=False,
        )
        state.run_pfile = str(pfile)
        state.new_spfile_path = new_spfile
        state.new_init_file = str(init_file)
        return result.output

    async def _phase_relocate_datafiles(self, request, context, state) -> str:
        result = await self.storage.relocate(
            controlfile=state.controlfile_name,
            destination=request.data_destination,
            parallelism=request.channel_parallelism,
            snapshot_controlfile=str(self.environment.snapshot_controlfile_path),
            skip_offline=True,
        )
        return require(result, "Failed to move datafiles to the physical destination").output

    async def _phase_restart_relocated(self, request, context, state) -> str:
        result = await self.admin.shutdown(ShutdownMode.ABORT)
        require(result, "Failed to shut down the VDB")
        output = await self.coordinator.start_relocated(
            state.target_unique_name, state.new_spfile_path, state.new_init_file
        )
        return result.output + output

    async def _phase_add_tempfiles(self, request, context, state) -> str:
        return (await self.tempfiles.add_replacements(state.command_set(ADD_TEMPFILES))).output

    async def _phase_relocate_redo_logs(self, request, context, state) -> str:
        relocator = RedoLogRelocator(self.admin, request.effective_redo_destination)
        relocations = await relocator.relocate(state.redo_log_groups)
        return "".join(r.output for r in relocations)

    async def _phase_restore_read_only(self, request, context, state) -> str:
        result = await self.tablespaces.apply(
            state.command_set(READ_ONLY), "Restore read-only tablespaces"
        )
        return result.output

    async def _phase_teardown_cluster(self, request, context, state) -> str:
        errors = await self.coordinator.teardown(state.source_unique_name, state.target_unique_name)
        for error in errors:
            await self.error_handler.handle_error(
                error, ErrorContext(phase=OrchestrationPhase.TEARDOWN_CLUSTER.value, run_id=context.run_id)
            )
        return "\n".join(e.details.get("output", "") for e in errors)

    async def _phase_mount_checkpoint(self, request, context, state) -> str:
        result = await self.admin.startup(StartupMode.MOUNT, pfile=state.new_init_file)
        return require(result, "Failed to mount database after open").output

    async def _phase_drop_old_tempfiles(self, request, context, state) -> str:
        return (await self.tempfiles.drop_originals(state.command_set(DROP_TEMPFILES))).output

    async def _phase_cleanup(self, request, context, state) -> str:
        removed = context.remove_transient_artifacts()
        context.logger.info(f"Removed {len(removed)} run artifact(s)")
        result = await self.admin.shutdown(ShutdownMode.IMMEDIATE)
        if not result.succeeded:
            context.logger.warning("Shutdown immediate reported an error")
        return result.output

    async def _phase_preserve_source_parameters(self, request, context, state) -> str:
        source = Path(state.source_parameters_file) if state.source_parameters_file else None
        if source is None or not source.is_file():
            return ""
        copy = context.register_artifact(
            "source_parameters", f"source_init{request.source_instance_id}.ora", transient=False
        )
        try:
            shutil.copyfile(source, copy)
        except OSError as e:
            context.logger.warning(f"Could not copy source parameters from {source}: {e}")
            return ""
        state.source_parameters_copy = str(copy)
        return f"Copied {source} to {copy}"

    async def _phase_final_startup(self, request, context, state) -> str:
        if self.coordinator.clustered:
            context.logger.info(f"Starting up RAC database {state.target_unique_name}...")
        output, error = await self.coordinator.final_startup(state.target_unique_name)
        if error is not None:
            state.final_startup_pending = True
            await self.error_handler.handle_error(
                error, ErrorContext(phase=OrchestrationPhase.FINAL_STARTUP.value, run_id=context.run_id)
            )
        return output
