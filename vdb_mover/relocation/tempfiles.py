"""Temp file relocation."""

import logging
from typing import List

from vdb_mover.core.exceptions import VdbMoverError
from vdb_mover.database.base import DatabaseAdminClient, require
from vdb_mover.models.catalog import TempFile
from vdb_mover.models.session import CommandResult, CommandSet
from vdb_mover.utils.helpers import quote_sql_literal

logger = logging.getLogger(__name__)

ADD_TEMPFILES = "move_tempfiles"
DROP_TEMPFILES = "drop_tempfiles"


class TempFileRelocator:
    """Adds replacement tempfiles at the new destination and drops the old ones.

    Replacement files are created through db_create_file_dest, which
    points at the new destination by the time they are added. Old files
    may only be dropped once their replacements exist.
    """

    def __init__(self, admin: DatabaseAdminClient):
        self.admin = admin
        self._replacements_added = False

    @staticmethod
    def compute_additions(tempfiles: List[TempFile]) -> CommandSet:
        return CommandSet(
            name=ADD_TEMPFILES,
            statements=[
                f"alter tablespace {tf.tablespace_name} add tempfile size {tf.size_bytes}"
                for tf in tempfiles
            ]
        )

    @staticmethod
    def compute_drops(tempfiles: List[TempFile]) -> CommandSet:
        return CommandSet(
            name=DROP_TEMPFILES,
            statements=[
                f"alter database tempfile {quote_sql_literal(tf.file_name)} drop"
                for tf in tempfiles
            ]
        )

    async def add_replacements(self, command_set: CommandSet) -> CommandResult:
        result = await self.admin.execute_command_set(command_set)
        require(result, "Failed to add tempfiles at the new destination")
        self._replacements_added = True
        logger.info(f"Added {len(command_set.statements)} replacement tempfile(s)")
        return result

    async def drop_originals(self, command_set: CommandSet) -> CommandResult:
        """
        Drop the original tempfiles.

        Raises:
            VdbMoverError: If replacements were not added first
            EngineCommandError: If a drop fails
        """
        if not command_set.is_empty and not self._replacements_added:
            raise VdbMoverError("Refusing to drop tempfiles before their replacements exist")
        result = await self.admin.execute_command_set(command_set)
        require(result, "Failed to drop old tempfiles")
        logger.info(f"Dropped {len(command_set.statements)} old tempfile(s)")
        return result
