"""Cluster registrar client abstract class."""

import re
from abc import ABC, abstractmethod
from typing import List, Optional

from vdb_mover.models.session import CommandResult

_INSTANCES_LINE = re.compile(r"^Database instances:\s*(.*)$", re.IGNORECASE)
_INSTANCE_STATUS = re.compile(r"^Instance (\S+) is ")


class ClusterClient(ABC):
    """Abstract base class for clients of the cluster registrar.

    Every mutating call reports failure through its CommandResult; the
    coordinator decides which failures are fatal.
    """

    @abstractmethod
    async def add_database(
        self,
        unique_name: str,
        oracle_home: str,
        db_name: str,
        spfile: str
    ) -> CommandResult:
        pass

    @abstractmethod
    async def remove_database(self, unique_name: str) -> CommandResult:
        """Forcibly remove a database registration."""
        pass

    @abstractmethod
    async def add_instance(self, unique_name: str, instance_name: str, node_name: str) -> CommandResult:
        pass

    @abstractmethod
    async def remove_instance(self, unique_name: str, instance_name: str) -> CommandResult:
        pass

    @abstractmethod
    async def status_database(self, unique_name: str) -> CommandResult:
        pass

    @abstractmethod
    async def config_database(self, unique_name: str) -> CommandResult:
        pass

    @abstractmethod
    async def status_instance(self, unique_name: str, node_name: str) -> CommandResult:
        pass

    @abstractmethod
    async def start_database(self, unique_name: str) -> CommandResult:
        pass

    @abstractmethod
    async def stop_database(self, unique_name: str, abort: bool = False) -> CommandResult:
        pass

    @abstractmethod
    async def modify_database_spfile(self, unique_name: str, spfile: str) -> CommandResult:
        pass

    @abstractmethod
    async def local_node_name(self) -> Optional[str]:
        """Name of the cluster node this process runs on."""
        pass

    async def configured_instances(self, unique_name: str) -> Optional[List[str]]:
        """Instance names configured for a registered database.

        Returns:
            The instance names, or None if the configuration could not be read
        """
        result = await self.config_database(unique_name)
        if not result.succeeded:
            return None
        for line in result.lines:
            match = _INSTANCES_LINE.match(line)
            if match:
                return [name.strip() for name in match.group(1).split(",") if name.strip()]
        return []

    async def local_instance_name(self, unique_name: str) -> Optional[str]:
        """Instance of a registered database placed on the local node."""
        node = await self.local_node_name()
        if not node:
            return None
        result = await self.status_instance(unique_name, node)
        if not result.succeeded:
            return None
        for line in result.lines:
            match = _INSTANCE_STATUS.match(line)
            if match:
                return match.group(1)
        return None
