"""
Custom exceptions for the VDB mover.

This module defines the exception classes raised by the migration
pipeline and its external-tool adapters.
"""

from typing import Any, Dict, List, Optional


class VdbMoverError(Exception):
    """Base exception class for VDB mover errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}


class ValidationError(VdbMoverError):
    """Raised when inputs or the environment are not ready."""

    def __init__(
        self,
        message: str,
        failed_checks: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.failed_checks = failed_checks or []


class PreconditionError(VdbMoverError):
    """Raised when the source database cannot be moved as it is configured."""
    pass


class EngineCommandError(VdbMoverError):
    """Raised when an administrative command or query fails."""

    def __init__(
        self,
        message: str,
        output: str = "",
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.output = output


class EngineTimeoutError(EngineCommandError):
    """Raised when an external tool does not answer within the configured timeout."""
    pass


class RecoverableLogDropError(EngineCommandError):
    """Raised when a redo log group cannot be dropped because it is still in use."""
    pass


class ClusterTeardownError(VdbMoverError):
    """Raised when removing the transient cluster registration fails."""
    pass


class ClusterStartupError(VdbMoverError):
    """Raised when the final clusterware start of the moved database fails."""
    pass
