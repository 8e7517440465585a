"""
Cluster coordination for the move.

A coordinator is selected once, at preflight, from the source's cluster
membership. The no-op variant keeps single-instance runs free of cluster
checks; the clustered variant registers the VDB with the clusterware,
restarts it through srvctl and removes the transient registration at the
end of the move.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from vdb_mover.cluster.base import ClusterClient
from vdb_mover.core.exceptions import ClusterStartupError, ClusterTeardownError, PreconditionError
from vdb_mover.database.base import DatabaseAdminClient, StartupMode, require
from vdb_mover.models.session import CommandResult

logger = logging.getLogger(__name__)


def _transcript(label: str, result: CommandResult) -> str:
    status = "ok" if result.succeeded else f"failed (rc={result.return_code})"
    text = f"$ {label}: {status}\n"
    if result.output:
        text += result.output.rstrip("\n") + "\n"
    return text


class ClusterCoordinator(ABC):
    """Cluster-dependent steps of the move.

    Methods return the diagnostic transcript of what they ran; fatal
    failures are raised.
    """

    def __init__(self, admin: DatabaseAdminClient):
        self.admin = admin

    @property
    @abstractmethod
    def clustered(self) -> bool:
        pass

    @abstractmethod
    async def register(
        self,
        vdb_name: str,
        target_name: str,
        install_path: str,
        spfile_path: str,
        db_name: Optional[str] = None
    ) -> str:
        pass

    @abstractmethod
    async def resolve_local_identity(self, target_name: str) -> Optional[str]:
        pass

    @abstractmethod
    async def start_relocated(self, target_name: str, spfile_path: str, init_file: str) -> str:
        """Start the database on its relocated files and new parameter file."""
        pass

    @abstractmethod
    async def teardown(self, vdb_name: str, target_name: str) -> List[ClusterTeardownError]:
        """Remove the transient registration; failures are returned, not raised."""
        pass

    @abstractmethod
    async def final_startup(self, target_name: str) -> Tuple[str, Optional[ClusterStartupError]]:
        """Start the moved database; a failure is returned, not raised."""
        pass


class NoClusterCoordinator(ClusterCoordinator):
    """Coordinator for single-instance databases."""

    @property
    def clustered(self) -> bool:
        return False

    async def register(self, vdb_name, target_name, install_path, spfile_path, db_name=None) -> str:
        return ""

    async def resolve_local_identity(self, target_name: str) -> Optional[str]:
        return self.admin.instance

    async def start_relocated(self, target_name: str, spfile_path: str, init_file: str) -> str:
        result = await self.admin.startup(StartupMode.OPEN, pfile=init_file)
        require(result, "Failed to startup database with new parameter file")
        return result.output

    async def teardown(self, vdb_name: str, target_name: str) -> List[ClusterTeardownError]:
        return []

    async def final_startup(self, target_name: str) -> Tuple[str, Optional[ClusterStartupError]]:
        return "", None


class ClusteredCoordinator(ClusterCoordinator):
    """Coordinator for databases registered with the clusterware."""

    def __init__(self, admin: DatabaseAdminClient, cluster: ClusterClient):
        super().__init__(admin)
        self.cluster = cluster

    @property
    def clustered(self) -> bool:
        return True

    async def _verify_target(self, target_name: str) -> str:
        status = await self.cluster.status_database(target_name)
        if not status.succeeded:
            raise PreconditionError(
                f"Target RAC database {target_name} is not registered with the clusterware",
                details={"output": status.output}
            )

        instances = await self.cluster.configured_instances(target_name)
        if not instances or self.admin.instance not in instances:
            raise PreconditionError(
                f"VDB instance names must match target RAC database {target_name}",
                details={
                    "configured_instances": instances or [],
                    "local_instance": self.admin.instance,
                }
            )
        return _transcript(f"status database -d {target_name}", status)

    async def register(
        self,
        vdb_name: str,
        target_name: str,
        install_path: str,
        spfile_path: str,
        db_name: Optional[str] = None
    ) -> str:
        """
        Register the VDB with the clusterware under its own unique name.

        Raises:
            PreconditionError: If a differently named target is not usable
            EngineCommandError: If a registration step fails
        """
        transcript = ""
        if target_name != vdb_name:
            transcript += await self._verify_target(target_name)

        # A stale registration is expected to be absent most of the time.
        removed = await self.cluster.remove_database(vdb_name)
        transcript += _transcript(f"remove database -d {vdb_name}", removed)

        added = await self.cluster.add_database(vdb_name, install_path, db_name or vdb_name, spfile_path)
        transcript += _transcript(f"add database -d {vdb_name}", added)
        require(added, "Failed to register the VDB with the clusterware; use the Oracle install user to run this script")

        for instance in await self.admin.list_instances():
            result = await self.cluster.remove_instance(vdb_name, instance.instance_name)
            transcript += _transcript(f"remove instance -i {instance.instance_name}", result)
            result = await self.cluster.add_instance(vdb_name, instance.instance_name, instance.host_name)
            transcript += _transcript(
                f"add instance -i {instance.instance_name} -n {instance.host_name}", result
            )
            require(result, f"Failed to add instance {instance.instance_name} on {instance.host_name}")

        started = await self.cluster.start_database(vdb_name)
        transcript += _transcript(f"start database -d {vdb_name}", started)
        if not started.succeeded:
            logger.warning(f"srvctl start of {vdb_name} reported an error; the instance may already be running")

        stopped = await self.cluster.stop_database(vdb_name, abort=True)
        transcript += _transcript(f"stop database -d {vdb_name} -o abort", stopped)
        require(stopped, f"Failed to stop {vdb_name} through the clusterware")
        return transcript

    async def resolve_local_identity(self, target_name: str) -> Optional[str]:
        """Adopt the local node's instance name under the target registration."""
        instance_name = await self.cluster.local_instance_name(target_name)
        if instance_name and instance_name != self.admin.instance:
            self.admin.set_instance(instance_name)
        return self.admin.instance

    async def start_relocated(self, target_name: str, spfile_path: str, init_file: str) -> str:
        await self.resolve_local_identity(target_name)

        modified = await self.cluster.modify_database_spfile(target_name, spfile_path)
        transcript = _transcript(f"modify database -d {target_name} -p {spfile_path}", modified)
        require(modified, f"Failed to point {target_name} at {spfile_path}")

        started = await self.cluster.start_database(target_name)
        transcript += _transcript(f"start database -d {target_name}", started)
        require(started, "Failed to startup database with new parameter file")
        return transcript

    async def teardown(self, vdb_name: str, target_name: str) -> List[ClusterTeardownError]:
        errors: List[ClusterTeardownError] = []

        stopped = await self.cluster.stop_database(target_name, abort=True)
        if not stopped.succeeded:
            errors.append(ClusterTeardownError(
                f"Failed to stop {target_name} through the clusterware",
                details={"output": stopped.output}
            ))

        if vdb_name != target_name:
            removed = await self.cluster.remove_database(vdb_name)
            if not removed.succeeded:
                errors.append(ClusterTeardownError(
                    f"Failed to remove obsolete registration {vdb_name}",
                    details={"output": removed.output}
                ))
        return errors

    async def final_startup(self, target_name: str) -> Tuple[str, Optional[ClusterStartupError]]:
        started = await self.cluster.start_database(target_name)
        transcript = _transcript(f"start database -d {target_name}", started)
        if started.succeeded:
            return transcript, None
        return transcript, ClusterStartupError(
            f"Failed to start RAC database {target_name}",
            details={"output": started.output}
        )


def select_coordinator(
    is_clustered: bool,
    admin: DatabaseAdminClient,
    cluster: Optional[ClusterClient] = None
) -> ClusterCoordinator:
    """Pick the coordinator variant for the run."""
    if not is_clustered:
        return NoClusterCoordinator(admin)
    if cluster is None:
        raise PreconditionError("A cluster client is required for a clustered database")
    return ClusteredCoordinator(admin, cluster)
