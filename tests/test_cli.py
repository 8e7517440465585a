"""
Tests for the CLI interface.
"""

import json
from unittest.mock import AsyncMock, Mock, patch

from click.testing import CliRunner

from vdb_mover import __version__
from vdb_mover.cli.main import main
from vdb_mover.models.session import FinalReport, RunContext
from vdb_mover.utils.logging import RunLogger


def make_report(success=True, **kwargs):
    values = dict(
        success=success,
        run_id="VDB1_run42",
        target_unique_name="VDB1",
        log_file="/work/move_to_physical_VDB1_run42.log",
    )
    if success:
        values["steps"] = ["Delete the VDB VDB1 from the virtualization engine."]
    else:
        values["failed_phase"] = "relocate_datafiles"
        values["error"] = "Failed to move datafiles to the physical destination"
    values.update(kwargs)
    return FinalReport(**values)


class TestCLI:
    """Test cases for the move-to-physical command."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()
        self.env = {"ORACLE_SID": "VDB1", "ORACLE_HOME": "/u01/db"}

    def _orchestrator(self, tmp_path, report):
        orchestrator = Mock()
        orchestrator.create_context.return_value = RunContext(
            run_id="VDB1_run42", work_dir=tmp_path, logger=RunLogger("VDB1_run42")
        )
        orchestrator.run = AsyncMock(return_value=(report.success, report))
        return orchestrator

    def test_help(self):
        result = self.runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "DATA_DESTINATION" in result.output
        assert "--noask" in result.output
        assert "--parallel" in result.output
        assert "--dbunique" in result.output

    def test_version(self):
        result = self.runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_destination(self):
        result = self.runner.invoke(main, [], env=self.env)

        assert result.exit_code != 0

    def test_missing_oracle_sid(self):
        result = self.runner.invoke(main, ["+DATA"], env={"ORACLE_SID": "", "ORACLE_HOME": "/u01/db"})

        assert result.exit_code == 1
        assert "ORACLE_SID is not set" in result.output

    def test_invalid_destination(self):
        result = self.runner.invoke(main, ["relative/dir"], env=self.env)

        assert result.exit_code == 1
        assert "Invalid arguments" in result.output

    def test_invalid_parallel(self):
        result = self.runner.invoke(main, ["--parallel", "0", "+DATA"], env=self.env)

        assert result.exit_code != 0

    @patch("vdb_mover.cli.main.setup_logging")
    @patch("vdb_mover.cli.main.MigrationOrchestrator")
    def test_successful_move(self, mock_orchestrator_cls, mock_setup_logging, tmp_path):
        orchestrator = self._orchestrator(tmp_path, make_report())
        mock_orchestrator_cls.return_value = orchestrator

        result = self.runner.invoke(
            main,
            ["--noask", "--parallel", "4", "--dbunique", "PHYS1", "--work-dir", str(tmp_path), "+DATA", "+REDO"],
            env=self.env,
        )

        assert result.exit_code == 0
        assert "Move to physical complete" in result.output
        assert "Delete the VDB VDB1" in result.output

        environment = mock_orchestrator_cls.call_args[0][0]
        assert environment.oracle_sid == "VDB1"
        assert mock_orchestrator_cls.call_args[1]["work_dir"] == tmp_path

        request = orchestrator.run.call_args[0][0]
        assert request.source_instance_id == "VDB1"
        assert request.target_unique_name == "PHYS1"
        assert request.data_destination == "+DATA"
        assert request.redo_destination == "+REDO"
        assert request.channel_parallelism == 4
        assert request.confirmation_required is False

        assert mock_setup_logging.call_args[1]["log_file"] == str(tmp_path / "move_to_physical_VDB1_run42.log")

    @patch("vdb_mover.cli.main.setup_logging")
    @patch("vdb_mover.cli.main.MigrationOrchestrator")
    def test_defaults(self, mock_orchestrator_cls, mock_setup_logging, tmp_path):
        orchestrator = self._orchestrator(tmp_path, make_report())
        mock_orchestrator_cls.return_value = orchestrator

        result = self.runner.invoke(main, ["/u02/oradata/"], env=self.env)

        assert result.exit_code == 0
        request = orchestrator.run.call_args[0][0]
        assert request.channel_parallelism == 8
        assert request.confirmation_required is True
        assert request.target_unique_name is None
        assert request.redo_destination is None
        assert request.data_destination == "/u02/oradata"

    @patch("vdb_mover.cli.main.setup_logging")
    @patch("vdb_mover.cli.main.MigrationOrchestrator")
    def test_failed_move_exits_one(self, mock_orchestrator_cls, mock_setup_logging, tmp_path):
        mock_orchestrator_cls.return_value = self._orchestrator(tmp_path, make_report(success=False))

        result = self.runner.invoke(main, ["--noask", "+DATA"], env=self.env)

        assert result.exit_code == 1
        assert "Move to physical failed" in result.output
        assert "relocate_datafiles" in result.output
        assert "Final steps" not in result.output

    @patch("vdb_mover.cli.main.setup_logging")
    @patch("vdb_mover.cli.main.MigrationOrchestrator")
    def test_config_file(self, mock_orchestrator_cls, mock_setup_logging, tmp_path):
        mock_orchestrator_cls.return_value = self._orchestrator(tmp_path, make_report())
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("archive_root: /arch\ncommand_timeout: 7200\n")

        result = self.runner.invoke(main, ["--noask", "--config", str(config_file), "+DATA"], env=self.env)

        assert result.exit_code == 0
        environment = mock_orchestrator_cls.call_args[0][0]
        assert environment.archive_root == "/arch"
        assert environment.command_timeout == 7200

    @patch("vdb_mover.cli.main.setup_logging")
    @patch("vdb_mover.cli.main.MigrationOrchestrator")
    def test_json_config_file(self, mock_orchestrator_cls, mock_setup_logging, tmp_path):
        mock_orchestrator_cls.return_value = self._orchestrator(tmp_path, make_report())
        config_file = tmp_path / "settings.json"
        config_file.write_text(json.dumps({"logon_string": "sys/x as sysdba"}))

        result = self.runner.invoke(main, ["--noask", "-c", str(config_file), "+DATA"], env=self.env)

        assert result.exit_code == 0
        assert mock_orchestrator_cls.call_args[0][0].logon_string == "sys/x as sysdba"

    @patch("vdb_mover.cli.main.setup_logging")
    @patch("vdb_mover.cli.main.MigrationOrchestrator")
    def test_text_log_format_by_default(self, mock_orchestrator_cls, mock_setup_logging, tmp_path):
        mock_orchestrator_cls.return_value = self._orchestrator(tmp_path, make_report())

        result = self.runner.invoke(main, ["--noask", "+DATA"], env=self.env)

        assert result.exit_code == 0
        assert mock_setup_logging.call_args[1]["structured_logging"] is False

    @patch("vdb_mover.cli.main.setup_logging")
    @patch("vdb_mover.cli.main.MigrationOrchestrator")
    def test_json_log_format(self, mock_orchestrator_cls, mock_setup_logging, tmp_path):
        mock_orchestrator_cls.return_value = self._orchestrator(tmp_path, make_report())

        result = self.runner.invoke(main, ["--noask", "--log-format", "json", "+DATA"], env=self.env)

        assert result.exit_code == 0
        assert mock_setup_logging.call_args[1]["structured_logging"] is True

    @patch("vdb_mover.cli.main.setup_logging")
    @patch("vdb_mover.cli.main.MigrationOrchestrator")
    def test_structured_logging_setting(self, mock_orchestrator_cls, mock_setup_logging, tmp_path):
        mock_orchestrator_cls.return_value = self._orchestrator(tmp_path, make_report())
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("structured_logging: true\n")

        result = self.runner.invoke(main, ["--noask", "-c", str(config_file), "+DATA"], env=self.env)
        assert result.exit_code == 0
        assert mock_setup_logging.call_args[1]["structured_logging"] is True

        result = self.runner.invoke(
            main, ["--noask", "-c", str(config_file), "--log-format", "text", "+DATA"], env=self.env
        )
        assert result.exit_code == 0
        assert mock_setup_logging.call_args[1]["structured_logging"] is False

    def test_unsupported_config_file(self, tmp_path):
        config_file = tmp_path / "settings.ini"
        config_file.write_text("[oracle]\n")

        result = self.runner.invoke(main, ["--noask", "-c", str(config_file), "+DATA"], env=self.env)

        assert result.exit_code == 1
        assert "Error loading configuration" in result.output

    def test_invalid_config_value(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("command_timeout: -5\n")

        result = self.runner.invoke(main, ["--noask", "-c", str(config_file), "+DATA"], env=self.env)

        assert result.exit_code == 1
        assert "Invalid arguments" in result.output
