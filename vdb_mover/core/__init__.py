"""
Core module for the VDB mover.

This module contains the exception hierarchy and error classification
used throughout the application.
"""

from vdb_mover.core.exceptions import (
    VdbMoverError,
    ValidationError,
    PreconditionError,
    EngineCommandError,
    EngineTimeoutError,
    RecoverableLogDropError,
    ClusterStartupError,
    ClusterTeardownError,
)

__all__ = [
    "VdbMoverError",
    "ValidationError",
    "PreconditionError",
    "EngineCommandError",
    "EngineTimeoutError",
    "RecoverableLogDropError",
    "ClusterStartupError",
    "ClusterTeardownError",
]
