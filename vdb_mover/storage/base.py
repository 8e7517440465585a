"""Storage relocation engine abstract class."""

from abc import ABC, abstractmethod

from vdb_mover.models.session import CommandResult


class StorageRelocationEngine(ABC):
    """Abstract base class for engines that copy datafiles into a new destination."""

    @abstractmethod
    async def relocate(
        self,
        controlfile: str,
        destination: str,
        parallelism: int,
        snapshot_controlfile: str,
        skip_offline: bool = True
    ) -> CommandResult:
        """Copy the database into the destination and switch to the copies.

        Restores the controlfile from its current location, mounts, copies
        every datafile with the given number of channels, switches the
        database to the copies and repoints the snapshot controlfile.
        The call blocks until the engine finishes, whatever its internal
        concurrency.

        Args:
            controlfile: Controlfile to restore from
            destination: Directory or disk group receiving the copies
            parallelism: Number of copy channels
            snapshot_controlfile: Shared location for the snapshot controlfile
            skip_offline: Leave offline datafiles out of the copy

        Returns:
            CommandResult with the engine's output
        """
        pass
