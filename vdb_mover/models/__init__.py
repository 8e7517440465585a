"""
Data models for the VDB mover.

This module contains Pydantic models for the migration request, the
environment, catalog records and run-time state.
"""

from vdb_mover.models.catalog import (
    ClusterConfig,
    InstanceInfo,
    RedoLogGroup,
    Tablespace,
    TablespaceStatus,
    TempFile,
)
from vdb_mover.models.config import EnvironmentConfig, MigrationRequest
from vdb_mover.models.session import (
    CommandResult,
    CommandSet,
    FinalReport,
    PhaseStatus,
    PipelinePhaseResult,
    PipelineState,
    RunContext,
)

__all__ = [
    "ClusterConfig",
    "InstanceInfo",
    "RedoLogGroup",
    "Tablespace",
    "TablespaceStatus",
    "TempFile",
    "EnvironmentConfig",
    "MigrationRequest",
    "CommandResult",
    "CommandSet",
    "FinalReport",
    "PhaseStatus",
    "PipelinePhaseResult",
    "PipelineState",
    "RunContext",
]
