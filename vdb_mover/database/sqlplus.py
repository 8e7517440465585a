"""SQL*Plus implementation of the database administration client."""

import logging
from typing import List, Optional

from vdb_mover.database.base import COLUMN_SEPARATOR, DatabaseAdminClient, require
from vdb_mover.models.config import EnvironmentConfig
from vdb_mover.models.session import CommandResult
from vdb_mover.utils.process import run_tool

logger = logging.getLogger(__name__)

QUERY_SETTINGS = (
    "SET ECHO OFF NEWP 0 SPA 0 PAGES 0 FEED OFF HEAD OFF TRIMS ON TAB OFF LINES 32767"
)
STOP_ON_ERROR = "WHENEVER SQLERROR EXIT 1"

# SQL*Plus reports its own command errors with SP2- and still exits 0.
SQLPLUS_ERROR_PREFIX = "SP2-"


class SqlPlusClient(DatabaseAdminClient):
    """Runs statements through `sqlplus -S` with the configured logon string."""

    def __init__(self, environment: EnvironmentConfig, executable: Optional[str] = None):
        """Initialize the client.

        Args:
            environment: Oracle environment (home, SID, logon string, timeout)
            executable: sqlplus binary; defaults to $ORACLE_HOME/bin/sqlplus
        """
        self.environment = environment
        self.executable = executable or (
            str(environment.tool_path(environment.oracle_home, "sqlplus"))
            if environment.oracle_home else "sqlplus"
        )
        self._instance = environment.oracle_sid

    @property
    def instance(self) -> Optional[str]:
        return self._instance

    def set_instance(self, instance_name: str) -> None:
        logger.info(f"Switching local instance from {self._instance} to {instance_name}")
        self._instance = instance_name

    def _command(self) -> List[str]:
        return [self.executable, "-S", "-R", "3", self.environment.logon_string]

    def _env(self):
        env = self.environment.process_env()
        if self._instance:
            env["ORACLE_SID"] = self._instance
        return env

    async def _run(self, script: str) -> CommandResult:
        result = await run_tool(
            self._command(),
            input_text=script,
            env=self._env(),
            timeout=self.environment.command_timeout
        )
        if result.succeeded and any(
            line.startswith(SQLPLUS_ERROR_PREFIX) for line in result.lines
        ):
            return result.model_copy(update={"succeeded": False})
        return result

    async def query_rows(self, sql: str) -> List[List[str]]:
        script = f"{QUERY_SETTINGS}\n{STOP_ON_ERROR};\n{sql};\nexit;\n"
        result = require(await self._run(script), f"Query failed: {sql}")
        return [line.split(COLUMN_SEPARATOR) for line in result.lines]

    async def execute(self, statements: List[str]) -> CommandResult:
        body = "".join(f"{stmt};\n" for stmt in statements)
        script = f"set serveroutput on\n{STOP_ON_ERROR};\n{body}exit;\n"
        return await self._run(script)
