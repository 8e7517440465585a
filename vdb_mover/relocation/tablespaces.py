"""
Tablespace status transitions.

Offline tablespaces cannot be copied, so they are dropped. Read-only
tablespaces are opened read-write for the move and put back to read-only
afterwards; the restoration set is recomputed from the same records that
produced the toggle, in the same order.
"""

import logging
from typing import List

from vdb_mover.database.base import DatabaseAdminClient, require
from vdb_mover.models.catalog import Tablespace, TablespaceStatus
from vdb_mover.models.session import CommandResult, CommandSet

logger = logging.getLogger(__name__)

DROP_OFFLINE = "drop_offline"
READ_WRITE = "read_write"
READ_ONLY = "read_only"


class TablespaceStateManager:
    """Computes and applies tablespace status changes."""

    def __init__(self, admin: DatabaseAdminClient):
        self.admin = admin

    @staticmethod
    def compute_offline_drop(tablespaces: List[Tablespace]) -> CommandSet:
        return CommandSet(
            name=DROP_OFFLINE,
            statements=[
                f"drop tablespace {ts.name} including contents"
                for ts in tablespaces if ts.status == TablespaceStatus.OFFLINE
            ]
        )

    @staticmethod
    def compute_read_write_toggle(tablespaces: List[Tablespace]) -> CommandSet:
        return CommandSet(
            name=READ_WRITE,
            statements=[
                f"alter tablespace {ts.name} read write"
                for ts in tablespaces if ts.status == TablespaceStatus.READ_ONLY
            ]
        )

    @staticmethod
    def compute_read_only_restore(tablespaces: List[Tablespace]) -> CommandSet:
        return CommandSet(
            name=READ_ONLY,
            statements=[
                f"alter tablespace {ts.name} read only"
                for ts in tablespaces if ts.status == TablespaceStatus.READ_ONLY
            ]
        )

    async def apply(self, command_set: CommandSet, description: str) -> CommandResult:
        """
        Execute a command set; tablespaces changed before a failure stay changed.

        Raises:
            EngineCommandError: If any statement fails
        """
        if command_set.is_empty:
            logger.info(f"{description}: nothing to do")
            return CommandResult(succeeded=True)

        logger.info(f"{description}: {len(command_set.statements)} statement(s)")
        result = await self.admin.execute_command_set(command_set)
        return require(result, f"Failed to {description[0].lower()}{description[1:]}")
