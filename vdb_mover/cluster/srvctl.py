"""srvctl/olsnodes implementation of the cluster registrar client."""

import logging
from typing import List, Optional

from vdb_mover.cluster.base import ClusterClient
from vdb_mover.models.config import EnvironmentConfig
from vdb_mover.models.session import CommandResult
from vdb_mover.utils.process import run_tool

logger = logging.getLogger(__name__)


class SrvctlClient(ClusterClient):
    """Drives the clusterware through the srvctl and olsnodes utilities in CRS_HOME."""

    def __init__(self, environment: EnvironmentConfig):
        self.environment = environment
        self.srvctl = str(environment.tool_path(environment.crs_home, "srvctl"))
        self.olsnodes = str(environment.tool_path(environment.crs_home, "olsnodes"))

    async def _srvctl(self, *args: str) -> CommandResult:
        cmd: List[str] = [self.srvctl, *args]
        logger.debug("srvctl " + " ".join(args))
        return await run_tool(
            cmd,
            env=self.environment.process_env(include_crs=True),
            timeout=self.environment.command_timeout
        )

    async def add_database(
        self,
        unique_name: str,
        oracle_home: str,
        db_name: str,
        spfile: str
    ) -> CommandResult:
        return await self._srvctl(
            "add", "database", "-d", unique_name, "-o", oracle_home, "-n", db_name, "-p", spfile
        )

    async def remove_database(self, unique_name: str) -> CommandResult:
        return await self._srvctl("remove", "database", "-d", unique_name, "-f", "-y")

    async def add_instance(self, unique_name: str, instance_name: str, node_name: str) -> CommandResult:
        return await self._srvctl(
            "add", "instance", "-d", unique_name, "-i", instance_name, "-n", node_name, "-f"
        )

    async def remove_instance(self, unique_name: str, instance_name: str) -> CommandResult:
        return await self._srvctl(
            "remove", "instance", "-d", unique_name, "-i", instance_name, "-f", "-y"
        )

    async def status_database(self, unique_name: str) -> CommandResult:
        return await self._srvctl("status", "database", "-d", unique_name)

    async def config_database(self, unique_name: str) -> CommandResult:
        return await self._srvctl("config", "database", "-d", unique_name)

    async def status_instance(self, unique_name: str, node_name: str) -> CommandResult:
        return await self._srvctl("status", "instance", "-d", unique_name, "-n", node_name)

    async def start_database(self, unique_name: str) -> CommandResult:
        return await self._srvctl("start", "database", "-d", unique_name)

    async def stop_database(self, unique_name: str, abort: bool = False) -> CommandResult:
        args = ["stop", "database", "-d", unique_name]
        if abort:
            args += ["-o", "abort"]
        return await self._srvctl(*args)

    async def modify_database_spfile(self, unique_name: str, spfile: str) -> CommandResult:
        return await self._srvctl("modify", "database", "-d", unique_name, "-p", spfile)

    async def local_node_name(self) -> Optional[str]:
        result = await run_tool(
            [self.olsnodes, "-l"],
            env=self.environment.process_env(include_crs=True),
            timeout=self.environment.command_timeout
        )
        if not result.succeeded or not result.lines:
            return None
        return result.lines[0]
