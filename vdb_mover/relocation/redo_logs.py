"""
Online redo log relocation.

Every group is moved by adding a new group of the same size at the redo
destination and dropping the old one. A group that is CURRENT or ACTIVE
cannot be dropped; forcing a log switch and a global checkpoint frees it,
after which the drop is retried exactly once:

    ADD -> DROP -> DONE
              \\-> RECOVER -> DROP_RETRY -> DONE
    any failure outside DROP -> FATAL
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from vdb_mover.core.exceptions import EngineCommandError, RecoverableLogDropError
from vdb_mover.database.base import DatabaseAdminClient
from vdb_mover.models.catalog import RedoLogGroup
from vdb_mover.models.session import CommandResult
from vdb_mover.utils.helpers import quote_sql_literal

logger = logging.getLogger(__name__)

SWITCH_LOG = "alter system archive log current"
CHECKPOINT = "alter system checkpoint global"


class RelocationState(str, Enum):
    """States of a single group's relocation."""
    ADD = "add"
    DROP = "drop"
    RECOVER = "recover"
    DROP_RETRY = "drop_retry"
    DONE = "done"
    FATAL = "fatal"


TERMINAL_STATES = (RelocationState.DONE, RelocationState.FATAL)


@dataclass
class GroupRelocation:
    """Trace of one group's relocation."""
    group: RedoLogGroup
    state: RelocationState = RelocationState.ADD
    transitions: List[RelocationState] = field(default_factory=list)
    statements: List[str] = field(default_factory=list)
    output: str = ""
    drop_error: Optional[RecoverableLogDropError] = None

    @property
    def retried(self) -> bool:
        return RelocationState.DROP_RETRY in self.transitions


class RedoLogRelocator:
    """Moves online redo log groups to the redo destination, one group at a time."""

    def __init__(self, admin: DatabaseAdminClient, destination: str):
        self.admin = admin
        self.destination = destination

    def add_statement(self, group: RedoLogGroup) -> str:
        # Directories go through db_create_online_log_dest_1; disk groups are named.
        target = f" {quote_sql_literal(self.destination)}" if self.destination.startswith("+") else ""
        return (
            f"alter database add logfile thread {group.thread_number}{target} "
            f"size {group.size_kb}K"
        )

    @staticmethod
    def drop_statement(group: RedoLogGroup) -> str:
        return f"alter database drop logfile group {group.group_number}"

    async def _run(self, relocation: GroupRelocation, statements: List[str]) -> CommandResult:
        relocation.statements.extend(statements)
        result = await self.admin.execute(statements)
        relocation.output += result.output
        return result

    async def _step(self, relocation: GroupRelocation) -> RelocationState:
        group = relocation.group
        state = relocation.state

        if state == RelocationState.ADD:
            result = await self._run(relocation, [self.add_statement(group)])
            return RelocationState.DROP if result.succeeded else RelocationState.FATAL

        if state == RelocationState.DROP:
            result = await self._run(relocation, [self.drop_statement(group)])
            if result.succeeded:
                return RelocationState.DONE
            relocation.drop_error = RecoverableLogDropError(
                f"Log group {group.group_number} could not be dropped, forcing a log switch",
                output=result.output
            )
            logger.warning(relocation.drop_error.message)
            return RelocationState.RECOVER

        if state == RelocationState.RECOVER:
            result = await self._run(relocation, [SWITCH_LOG, CHECKPOINT])
            return RelocationState.DROP_RETRY if result.succeeded else RelocationState.FATAL

        if state == RelocationState.DROP_RETRY:
            result = await self._run(relocation, [self.drop_statement(group)])
            return RelocationState.DONE if result.succeeded else RelocationState.FATAL

        raise ValueError(f"No transition out of {state}")

    async def relocate_group(self, group: RedoLogGroup) -> GroupRelocation:
        """Drive one group through the state machine to DONE or FATAL."""
        relocation = GroupRelocation(group=group)
        while relocation.state not in TERMINAL_STATES:
            relocation.transitions.append(relocation.state)
            relocation.state = await self._step(relocation)
        relocation.transitions.append(relocation.state)
        return relocation

    async def relocate(self, groups: List[RedoLogGroup]) -> List[GroupRelocation]:
        """
        Relocate every group in ascending group-number order.

        Raises:
            EngineCommandError: On the first group that ends FATAL
        """
        relocations = []
        for group in sorted(groups, key=lambda g: g.group_number):
            relocation = await self.relocate_group(group)
            relocations.append(relocation)
            if relocation.state == RelocationState.FATAL:
                raise EngineCommandError(
                    f"Failed to move online log group {group.group_number}",
                    output="".join(r.output for r in relocations),
                    details={"transitions": [s.value for s in relocation.transitions]}
                )
            logger.info(
                f"Moved log group {group.group_number} (thread {group.thread_number}, {group.size_kb}K)"
                + (" after forced log switch" if relocation.retried else "")
            )
        return relocations
