"""Database administration client abstract class and catalog readers."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from vdb_mover.core.exceptions import EngineCommandError, EngineTimeoutError
from vdb_mover.models.catalog import (
    InstanceInfo,
    RedoLogGroup,
    Tablespace,
    TablespaceStatus,
    TempFile,
)
from vdb_mover.models.session import CommandResult, CommandSet
from vdb_mover.utils.helpers import quote_sql_literal

COLUMN_SEPARATOR = "|"


class StartupMode(str, Enum):
    """State an instance is started into."""
    OPEN = "open"
    MOUNT = "mount"
    NOMOUNT = "nomount"


class ShutdownMode(str, Enum):
    """Shutdown modes."""
    IMMEDIATE = "immediate"
    ABORT = "abort"


def require(result: CommandResult, message: str) -> CommandResult:
    """Raise if an administrative command failed, carrying its output.

    Args:
        result: Result returned by the client
        message: Description of what failed

    Returns:
        The result, when it succeeded
    """
    if result.succeeded:
        return result
    if result.timed_out:
        raise EngineTimeoutError(message, output=result.output)
    raise EngineCommandError(message, output=result.output)


def concat_columns(*columns: str) -> str:
    """Select expression returning several columns as one separated value."""
    return f" || '{COLUMN_SEPARATOR}' || ".join(columns)


def startup_statement(
    mode: StartupMode = StartupMode.OPEN,
    pfile: Optional[str] = None,
    force: bool = True
) -> str:
    parts = ["startup"]
    if force:
        parts.append("force")
    if mode != StartupMode.OPEN:
        parts.append(mode.value)
    if pfile:
        parts.append(f'pfile="{pfile}"')
    return " ".join(parts)


class DatabaseAdminClient(ABC):
    """Abstract base class for clients issuing administrative commands to the engine.

    Concrete clients implement three primitives: running a query, running
    a batch of statements and switching the instance they talk to. The
    catalog readers used by the pipeline are built on top of them.
    """

    @property
    @abstractmethod
    def instance(self) -> Optional[str]:
        """Instance (ORACLE_SID) commands are sent to."""
        pass

    @abstractmethod
    def set_instance(self, instance_name: str) -> None:
        """Send subsequent commands to another local instance."""
        pass

    @abstractmethod
    async def query_rows(self, sql: str) -> List[List[str]]:
        """Run a query and return its rows split into columns.

        Raises:
            EngineCommandError: If the query fails
        """
        pass

    @abstractmethod
    async def execute(self, statements: List[str]) -> CommandResult:
        """Run statements in order, stopping at the first error.

        Returns:
            CommandResult; failures are reported, never raised
        """
        pass

    async def execute_command_set(self, command_set: CommandSet) -> CommandResult:
        if command_set.is_empty:
            return CommandResult(succeeded=True, output="")
        return await self.execute(command_set.statements)

    async def query_value(self, sql: str) -> Optional[str]:
        rows = await self.query_rows(sql)
        if not rows or not rows[0] or rows[0][0] == "":
            return None
        return rows[0][0]

    async def generate_script(self, name: str, sql: str) -> CommandSet:
        """Build a command set from a query that selects statement text."""
        rows = await self.query_rows(sql)
        statements = [
            COLUMN_SEPARATOR.join(row).strip().rstrip(";")
            for row in rows
            if row and COLUMN_SEPARATOR.join(row).strip()
        ]
        return CommandSet(name=name, statements=statements)

    async def get_parameter(self, name: str) -> Optional[str]:
        return await self.query_value(
            f"select value from v$parameter where name = {quote_sql_literal(name)}"
        )

    async def get_unique_name(self) -> Optional[str]:
        return await self.query_value("select db_unique_name from v$database")

    async def get_controlfile_name(self) -> Optional[str]:
        return await self.query_value("select max(name) from v$controlfile")

    async def get_mandatory_archive_dest(self) -> Optional[str]:
        """Name of the log_archive_dest_n parameter holding the mandatory local destination."""
        return await self.query_value(
            "select max(name) from v$parameter where name like 'log_archive_dest%' "
            "and lower(value) like 'location%mandatory'"
        )

    async def list_tablespaces(self) -> List[Tablespace]:
        rows = await self.query_rows(
            f"select {concat_columns('tablespace_name', 'status')} "
            "from dba_tablespaces order by tablespace_name"
        )
        return [
            Tablespace(name=row[0], status=TablespaceStatus(row[1]))
            for row in rows
        ]

    async def list_tempfiles(self) -> List[TempFile]:
        rows = await self.query_rows(
            f"select {concat_columns('tablespace_name', 'file_name', 'bytes')} "
            "from dba_temp_files order by file_id"
        )
        return [
            TempFile(tablespace_name=row[0], file_name=row[1], size_bytes=int(row[2]))
            for row in rows
        ]

    async def list_redo_log_groups(self) -> List[RedoLogGroup]:
        rows = await self.query_rows(
            f"select {concat_columns('group#', 'thread#', 'ceil(bytes/1024)')} "
            "from v$log order by group#"
        )
        return [
            RedoLogGroup(group_number=int(row[0]), thread_number=int(row[1]), size_kb=int(row[2]))
            for row in rows
        ]

    async def list_instances(self) -> List[InstanceInfo]:
        rows = await self.query_rows(
            f"select {concat_columns('instance_name', 'host_name')} "
            "from gv$instance order by inst_id"
        )
        return [InstanceInfo(instance_name=row[0], host_name=row[1]) for row in rows]

    async def startup(
        self,
        mode: StartupMode = StartupMode.OPEN,
        pfile: Optional[str] = None
    ) -> CommandResult:
        """Force-restart the instance into the given state."""
        return await self.execute([startup_statement(mode, pfile)])

    async def shutdown(self, mode: ShutdownMode = ShutdownMode.IMMEDIATE) -> CommandResult:
        return await self.execute([f"shutdown {mode.value}"])
