"""RMAN implementation of the storage relocation engine."""

import logging
from typing import Optional

from vdb_mover.models.config import EnvironmentConfig
from vdb_mover.models.session import CommandResult
from vdb_mover.storage.base import StorageRelocationEngine
from vdb_mover.utils.helpers import quote_sql_literal
from vdb_mover.utils.process import run_tool

logger = logging.getLogger(__name__)

# RMAN prints this banner above the error stack of any failed command.
RMAN_ERROR_MARKER = "RMAN-00571"


def build_relocation_script(
    controlfile: str,
    destination: str,
    parallelism: int,
    snapshot_controlfile: str,
    skip_offline: bool = True
) -> str:
    """RMAN script copying the database into the destination."""
    copy_format = quote_sql_literal(
        destination if destination.startswith("+") else f"{destination}/%U"
    )
    backup = f"backup as copy format {copy_format} database"
    if skip_offline:
        backup += " skip offline"
    return "\n".join([
        f"restore controlfile from {quote_sql_literal(controlfile)};",
        "alter database mount;",
        f"configure device type disk parallelism {parallelism};",
        f"{backup};",
        "switch database to copy;",
        f"configure snapshot controlfile name to {quote_sql_literal(snapshot_controlfile)};",
        "exit;",
        "",
    ])


class RmanRelocationEngine(StorageRelocationEngine):
    """Runs `rman target /` with a generated copy-and-switch script."""

    def __init__(self, environment: EnvironmentConfig, executable: Optional[str] = None):
        self.environment = environment
        self.executable = executable or (
            str(environment.tool_path(environment.oracle_home, "rman"))
            if environment.oracle_home else "rman"
        )

    async def relocate(
        self,
        controlfile: str,
        destination: str,
        parallelism: int,
        snapshot_controlfile: str,
        skip_offline: bool = True
    ) -> CommandResult:
        script = build_relocation_script(
            controlfile, destination, parallelism, snapshot_controlfile, skip_offline
        )
        logger.info(f"Copying datafiles to {destination} with {parallelism} channels")
        result = await run_tool(
            [self.executable, "target", "/"],
            input_text=script,
            env=self.environment.process_env(),
            timeout=self.environment.command_timeout
        )
        if result.succeeded and RMAN_ERROR_MARKER in result.output:
            return result.model_copy(update={"succeeded": False})
        return result
