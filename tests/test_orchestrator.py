"""
Integration tests for the migration orchestrator.

The pipeline runs end to end against the in-memory fakes; assertions are
made on the resulting catalog, the statements issued and the artifacts
left in the work directory.
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from fakes import FakeStorageEngine
from vdb_mover.core.error_handler import ErrorHandler
from vdb_mover.models.config import EnvironmentConfig, MigrationRequest
from vdb_mover.models.session import CommandResult
from vdb_mover.orchestrator.orchestrator import (
    PHASE_DESCRIPTIONS,
    MigrationOrchestrator,
    OrchestrationPhase,
)

RUN_ID = "VDB1_run4242"


def make_orchestrator(environment, admin, storage, work_dir, cluster_client=None, confirm=None):
    return MigrationOrchestrator(
        environment,
        admin=admin,
        storage=storage,
        cluster_client=cluster_client,
        confirm=confirm,
        work_dir=work_dir,
        pid=4242,
    )


class TestPhaseSequence:
    """Test the declared phase order."""

    def test_phase_order(self):
        assert [p.value for p in OrchestrationPhase] == [
            "validate",
            "preflight",
            "register_cluster",
            "restart_clean",
            "generate_commands",
            "prepare_tablespaces",
            "update_parameters",
            "externalize_spfile",
            "relocate_datafiles",
            "restart_relocated",
            "add_tempfiles",
            "relocate_redo_logs",
            "restore_read_only",
            "teardown_cluster",
            "mount_checkpoint",
            "drop_old_tempfiles",
            "cleanup",
            "preserve_source_parameters",
            "final_startup",
        ]

    def test_every_phase_has_description_and_handler(self):
        for phase in OrchestrationPhase:
            assert PHASE_DESCRIPTIONS[phase]
            assert hasattr(MigrationOrchestrator, f"_phase_{phase.value}")


class TestSuccessfulMove:
    """Test a complete single-instance move."""

    @pytest.mark.asyncio
    async def test_example_scenario(self, environment, request_model, admin, storage, work_dir):
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        success, report = await orchestrator.run(request_model)

        assert success is True
        assert report.success is True
        assert report.run_id == RUN_ID
        assert report.target_unique_name == "VDB1"
        assert report.clustered is False

        # Offline tablespaces are gone, the read-only one is read-only again
        assert "TS_OLD1" not in admin.tablespaces
        assert "TS_OLD2" not in admin.tablespaces
        assert admin.tablespaces["TS_ARCH"] == "READ ONLY"
        assert admin.tablespaces["USERS"] == "ONLINE"

        # Redo groups 1-3 were replaced by new groups of the same size
        assert sorted(admin.redo_groups) == [4, 5, 6]
        assert all(size == 51200 for _, size in admin.redo_groups.values())

        # The original tempfile was replaced
        assert [tf[1] for tf in admin.tempfiles] == ["/physical/temp_1.tmp"]

    @pytest.mark.asyncio
    async def test_all_phases_recorded(self, environment, request_model, admin, storage, work_dir):
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        success, report = await orchestrator.run(request_model)

        assert success is True
        assert [r.phase_name for r in report.phase_results] == [p.value for p in OrchestrationPhase]
        assert all(r.succeeded for r in report.phase_results)
        assert all(r.duration is not None for r in report.phase_results)

    @pytest.mark.asyncio
    async def test_read_write_before_drop_and_read_only_after_redo(
        self, environment, request_model, admin, storage, work_dir
    ):
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        await orchestrator.run(request_model)

        executed = admin.executed
        read_write = executed.index("alter tablespace TS_ARCH read write")
        drop_offline = executed.index("drop tablespace TS_OLD1 including contents")
        last_redo_drop = executed.index("alter database drop logfile group 3")
        read_only = executed.index("alter tablespace TS_ARCH read only")
        assert read_write < drop_offline < last_redo_drop < read_only

    @pytest.mark.asyncio
    async def test_current_redo_group_is_retried_once(
        self, environment, request_model, admin, storage, work_dir
    ):
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        await orchestrator.run(request_model)

        assert admin.executed.count("alter database drop logfile group 1") == 2
        assert admin.executed.count("alter database drop logfile group 2") == 1
        assert admin.executed.count("alter system archive log current") == 1
        assert admin.executed.count("alter system checkpoint global") == 1

    @pytest.mark.asyncio
    async def test_parameters_updated_for_target(
        self, environment, request_model, admin, storage, work_dir, data_destination
    ):
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        await orchestrator.run(request_model)

        assert "alter system set db_unique_name='VDB1' scope=spfile sid='*'" in admin.executed
        assert (
            f"alter system set db_create_file_dest='{data_destination}' scope=spfile sid='*'"
            in admin.executed
        )
        assert (
            "alter system set \"log_archive_dest_1\"='location=/apps/orafra/VDB1' scope=spfile sid='*'"
            in admin.executed
        )
        assert (
            f"alter system set control_files='{data_destination}/VDB1/cfile1.f' scope=spfile sid='*'"
            in admin.executed
        )
        assert "alter system reset filesystemio_options scope=spfile sid='*'" in admin.executed
        assert Path(data_destination, "VDB1").is_dir()

    @pytest.mark.asyncio
    async def test_storage_engine_arguments(
        self, environment, request_model, admin, storage, work_dir, data_destination, oracle_home
    ):
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        await orchestrator.run(request_model)

        assert storage.calls == [{
            "controlfile": "/vdb/VDB1/control01.ctl",
            "destination": data_destination,
            "parallelism": 8,
            "snapshot_controlfile": str(oracle_home / "dbs" / "snapshot_cfile.f"),
            "skip_offline": True,
        }]

    @pytest.mark.asyncio
    async def test_artifacts_after_success(
        self, environment, request_model, admin, storage, work_dir, oracle_home
    ):
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        success, report = await orchestrator.run(request_model)

        remaining = sorted(p.name for p in work_dir.iterdir())
        assert remaining == [f"init{RUN_ID}_moveasm.ora", f"phase_results_{RUN_ID}.json"]

        init_file = work_dir / f"init{RUN_ID}_moveasm.ora"
        assert init_file.read_text() == f"spfile='{oracle_home / 'dbs' / 'spfileVDB1.ora'}'\n"
        assert report.new_init_file == str(init_file)

        results = json.loads((work_dir / f"phase_results_{RUN_ID}.json").read_text())
        assert results["run_id"] == RUN_ID
        assert len(results["phases"]) == len(OrchestrationPhase)

    @pytest.mark.asyncio
    async def test_final_steps_single_instance(
        self, environment, request_model, admin, storage, work_dir, oracle_home
    ):
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        success, report = await orchestrator.run(request_model)

        assert len(report.steps) == 4
        assert report.steps[0].startswith("Delete the VDB VDB1")
        assert report.steps[1] == (
            f"Copy the new parameter file: cp {work_dir / f'init{RUN_ID}_moveasm.ora'} "
            f"{oracle_home / 'dbs' / 'initVDB1.ora'}"
        )

    @pytest.mark.asyncio
    async def test_source_parameters_preserved(
        self, environment, request_model, admin, storage, work_dir, vdb_spfile_dir
    ):
        (vdb_spfile_dir / "source_init.ora").write_text("*.db_name='PROD'\n")
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        success, report = await orchestrator.run(request_model)

        copy = work_dir / "source_initVDB1.ora"
        assert success is True
        assert copy.read_text() == "*.db_name='PROD'\n"
        assert report.source_parameters_copy == str(copy)
        assert report.steps[-1] == f"Source initialization parameters are restored in {copy}"

    @pytest.mark.asyncio
    async def test_separate_redo_destination_on_disk_group(
        self, environment, admin, storage, work_dir, data_destination
    ):
        request = MigrationRequest(
            source_instance_id="VDB1",
            target_unique_name="PHYS1",
            data_destination=data_destination,
            redo_destination="+REDO",
            channel_parallelism=4,
            confirmation_required=False,
        )
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        success, report = await orchestrator.run(request)

        assert success is True
        assert report.target_unique_name == "PHYS1"
        assert "alter database add logfile thread 1 '+REDO' size 51200K" in admin.executed
        assert "alter system set db_create_online_log_dest_1='+REDO' scope=spfile sid='*'" in admin.executed
        assert storage.calls[0]["parallelism"] == 4


class TestFailedMove:
    """Test halting behavior."""

    @pytest.mark.asyncio
    async def test_storage_failure_halts_before_restart(
        self, environment, request_model, admin, work_dir
    ):
        storage = FakeStorageEngine(CommandResult(
            succeeded=False,
            output="RMAN-00571: ===========================\nRMAN-03002: failure of backup command\n",
            return_code=1,
        ))
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        success, report = await orchestrator.run(request_model)

        assert success is False
        assert report.failed_phase == "relocate_datafiles"
        assert report.steps == []

        last = report.phase_results[-1]
        assert last.phase_name == "relocate_datafiles"
        assert last.succeeded is False
        assert "RMAN-03002: failure of backup command" in last.diagnostic_output
        assert len(report.phase_results) == 9

        # Nothing after the failing phase ran
        assert "shutdown abort" not in admin.executed
        assert sorted(admin.redo_groups) == [1, 2, 3]

        # Artifacts are retained for diagnosis
        names = {p.name for p in work_dir.iterdir()}
        assert f"drop_tempfiles_{RUN_ID}.sql" in names
        assert f"read_only_{RUN_ID}.sql" in names
        assert f"relocate_datafiles_{RUN_ID}.log" in names
        assert f"phase_results_{RUN_ID}.json" in names

    @pytest.mark.asyncio
    async def test_halts_at_first_failing_phase(
        self, environment, request_model, admin, storage, work_dir
    ):
        admin.fail("alter tablespace TS_ARCH read write")
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        success, report = await orchestrator.run(request_model)

        assert success is False
        assert report.failed_phase == "prepare_tablespaces"
        assert [r.succeeded for r in report.phase_results] == [True] * 5 + [False]
        assert storage.calls == []
        assert "TS_OLD1" in admin.tablespaces
        assert "ORA-00604" in report.phase_results[-1].diagnostic_output

    @pytest.mark.asyncio
    async def test_command_set_artifact_contents(
        self, environment, request_model, admin, storage, work_dir
    ):
        admin.fail("alter tablespace TS_ARCH read write")
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        await orchestrator.run(request_model)

        assert (work_dir / f"drop_offline_{RUN_ID}.sql").read_text() == (
            "drop tablespace TS_OLD1 including contents;\n"
            "drop tablespace TS_OLD2 including contents;\n"
        )
        assert (work_dir / f"move_tempfiles_{RUN_ID}.sql").read_text() == (
            "alter tablespace TEMP add tempfile size 104857600;\n"
        )

    @pytest.mark.asyncio
    async def test_stuck_redo_group_is_fatal(
        self, environment, request_model, admin, storage, work_dir
    ):
        admin.stuck_groups = {2}
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        success, report = await orchestrator.run(request_model)

        assert success is False
        assert report.failed_phase == "relocate_redo_logs"
        assert admin.executed.count("alter database drop logfile group 2") == 2
        assert "alter database drop logfile group 3" not in admin.executed
        assert "alter tablespace TS_ARCH read only" not in admin.executed

    @pytest.mark.asyncio
    async def test_missing_spfile_is_a_precondition_failure(
        self, environment, request_model, admin, storage, work_dir
    ):
        del admin.parameters["spfile"]
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        success, report = await orchestrator.run(request_model)

        assert success is False
        assert report.failed_phase == "preflight"
        assert "must use SPFILE" in report.error
        assert admin.executed == []

    @pytest.mark.asyncio
    async def test_missing_init_ora_fails_validation(
        self, environment, request_model, admin, storage, work_dir, oracle_home
    ):
        (oracle_home / "dbs" / "initVDB1.ora").unlink()
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)

        success, report = await orchestrator.run(request_model)

        assert success is False
        assert report.failed_phase == "validate"
        assert "Cannot find initialization parameter file" in report.error

    @pytest.mark.asyncio
    async def test_operator_declines(self, environment, data_destination, admin, storage, work_dir):
        request = MigrationRequest(source_instance_id="VDB1", data_destination=data_destination)
        confirm = Mock(return_value=False)
        orchestrator = make_orchestrator(environment, admin, storage, work_dir, confirm=confirm)

        success, report = await orchestrator.run(request)

        confirm.assert_called_once_with(request)
        assert success is False
        assert report.failed_phase == "validate"
        assert "Cancelling" in report.error
        assert admin.executed == []

    @pytest.mark.asyncio
    async def test_operator_confirms(self, environment, data_destination, admin, storage, work_dir):
        request = MigrationRequest(source_instance_id="VDB1", data_destination=data_destination)
        confirm = Mock(return_value=True)
        orchestrator = make_orchestrator(environment, admin, storage, work_dir, confirm=confirm)

        success, _ = await orchestrator.run(request)

        confirm.assert_called_once()
        assert success is True

    @pytest.mark.asyncio
    async def test_failure_is_passed_to_error_handler(
        self, environment, request_model, admin, storage, work_dir
    ):
        admin.fail("alter tablespace TS_ARCH read write")
        orchestrator = make_orchestrator(environment, admin, storage, work_dir)
        orchestrator.error_handler = Mock(spec=ErrorHandler)
        orchestrator.error_handler.handle_error = AsyncMock()

        await orchestrator.run(request_model)

        error, context = orchestrator.error_handler.handle_error.call_args[0]
        assert "Failed to make read-only tablespaces read-write" in str(error)
        assert context.phase == "prepare_tablespaces"
        assert context.run_id == RUN_ID


class TestClusteredMove:
    """Test a move of a clustered VDB."""

    @pytest.fixture
    def clustered_environment(self, oracle_home, crs_home):
        return EnvironmentConfig(oracle_sid="VDB1", oracle_home=str(oracle_home), crs_home=str(crs_home))

    @pytest.mark.asyncio
    async def test_clustered_scenario(
        self, clustered_environment, request_model, admin, storage, work_dir, cluster_client, oracle_home
    ):
        admin.parameters["cluster_database"] = "TRUE"
        orchestrator = make_orchestrator(
            clustered_environment, admin, storage, work_dir, cluster_client=cluster_client
        )

        success, report = await orchestrator.run(request_model)

        assert success is True
        assert report.clustered is True
        new_spfile = str(oracle_home / "dbs" / "spfileVDB1.ora")
        assert cluster_client.called("add_database")[0][1:] == (
            "VDB1", str(oracle_home), "VDB1", admin.parameters["spfile"]
        )
        assert cluster_client.called("add_instance") == [("add_instance", "VDB1", "VDB1", "node1")]
        assert cluster_client.called("modify_database_spfile") == [
            ("modify_database_spfile", "VDB1", new_spfile)
        ]
        # register, start_relocated and final_startup each start the database
        assert len(cluster_client.called("start_database")) == 3
        # Clustered databases are restarted through srvctl, not with the new init file
        assert not any(s.startswith("startup force pfile") and "moveasm" in s for s in admin.executed)

        assert len(report.steps) == 2
        assert not any(step.startswith("Copy the new parameter file") for step in report.steps)

    @pytest.mark.asyncio
    async def test_final_startup_failure_is_not_fatal(
        self, clustered_environment, request_model, admin, storage, work_dir, cluster_client
    ):
        admin.parameters["cluster_database"] = "TRUE"
        orchestrator = make_orchestrator(
            clustered_environment, admin, storage, work_dir, cluster_client=cluster_client
        )
        orchestrator.error_handler.handle_error = AsyncMock()
        original_start = cluster_client.start_database

        async def start_database(unique_name):
            if len(cluster_client.called("start_database")) == 2:
                cluster_client.calls.append(("start_database", unique_name))
                return CommandResult(succeeded=False, output="PRCR-1079: Failed to start resource", return_code=1)
            return await original_start(unique_name)

        cluster_client.start_database = start_database

        success, report = await orchestrator.run(request_model)

        assert success is True
        assert len(cluster_client.called("start_database")) == 3
        final = report.phase_results[-1]
        assert final.phase_name == "final_startup"
        assert final.succeeded is True
        assert "PRCR-1079" in final.diagnostic_output
        assert "Start the VDB1 database: srvctl start database -d VDB1" in report.steps

        error, context = orchestrator.error_handler.handle_error.call_args[0]
        assert "Failed to start RAC database VDB1" in str(error)
        assert context.phase == "final_startup"

    @pytest.mark.asyncio
    async def test_clustered_requires_crs_home(
        self, environment, request_model, admin, storage, work_dir, cluster_client
    ):
        admin.parameters["cluster_database"] = "TRUE"
        orchestrator = make_orchestrator(environment, admin, storage, work_dir, cluster_client=cluster_client)

        success, report = await orchestrator.run(request_model)

        assert success is False
        assert report.failed_phase == "preflight"
        assert "CRS_HOME is not set" in report.error
        assert cluster_client.calls == []

    @pytest.mark.asyncio
    async def test_teardown_failure_is_not_fatal(
        self, clustered_environment, admin, storage, work_dir, cluster_client, data_destination
    ):
        admin.parameters["cluster_database"] = "TRUE"
        request = MigrationRequest(
            source_instance_id="VDB1",
            target_unique_name="PHYS1",
            data_destination=data_destination,
            confirmation_required=False,
        )
        orchestrator = make_orchestrator(
            clustered_environment, admin, storage, work_dir, cluster_client=cluster_client
        )
        original_remove = cluster_client.remove_database
        remove_calls = []

        async def remove_database(unique_name):
            remove_calls.append(unique_name)
            if len(remove_calls) > 1:
                cluster_client.calls.append(("remove_database", unique_name))
                return CommandResult(succeeded=False, output="PRCD-1120: cannot remove", return_code=1)
            return await original_remove(unique_name)

        cluster_client.remove_database = remove_database

        success, report = await orchestrator.run(request)

        assert success is True
        assert remove_calls == ["VDB1", "VDB1"]
        teardown = next(r for r in report.phase_results if r.phase_name == "teardown_cluster")
        assert teardown.succeeded is True
        assert "PRCD-1120" in teardown.diagnostic_output
