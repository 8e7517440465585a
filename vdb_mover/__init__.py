"""
VDB mover

Moves a virtual (VDB) Oracle database onto physical storage: datafiles,
tempfiles, online redo logs and control files are relocated, and the
database is re-registered with the clusterware when it is clustered.
"""

__version__ = "0.1.0"

from vdb_mover.models.config import EnvironmentConfig, MigrationRequest
from vdb_mover.models.session import FinalReport, PipelinePhaseResult

__all__ = [
    "EnvironmentConfig",
    "MigrationRequest",
    "FinalReport",
    "PipelinePhaseResult",
]
