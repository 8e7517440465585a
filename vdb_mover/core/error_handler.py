"""
Error classification for the VDB mover.

This module maps pipeline exceptions to categories and severities and
attaches the remediation steps an operator should follow before
resuming or aborting a partially completed move.
"""

import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from .exceptions import (
    ClusterStartupError,
    ClusterTeardownError,
    EngineCommandError,
    EngineTimeoutError,
    PreconditionError,
    RecoverableLogDropError,
    ValidationError,
)


class ErrorCategory(str, Enum):
    """Categories of errors for better handling and reporting."""
    VALIDATION = "validation"
    PRECONDITION = "precondition"
    ENGINE = "engine"
    TIMEOUT = "timeout"
    REDO = "redo"
    CLUSTER = "cluster"
    FILESYSTEM = "filesystem"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    """Severity levels for errors."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for an error occurrence."""
    timestamp: datetime = field(default_factory=datetime.now)
    phase: Optional[str] = None
    run_id: Optional[str] = None
    additional_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ErrorInfo:
    """Comprehensive error information."""
    error: Exception
    category: ErrorCategory
    severity: ErrorSeverity
    context: ErrorContext
    remediation_steps: List[str]
    traceback_str: str
    is_fatal: bool = True

    @property
    def diagnostic_output(self) -> str:
        """Captured tool output carried by the error, if any."""
        return getattr(self.error, "output", "") or ""


class ErrorHandler:
    """
    Error handler that categorizes pipeline failures and logs remediation hints.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._error_mappings = self._build_error_mappings()
        self._remediation_guides = self._build_remediation_guides()

    def _build_error_mappings(self) -> Dict[Type[Exception], Dict[str, Any]]:
        """Build mapping of exception types to error categories and severities.

        Ordered from most to least specific; the first isinstance match wins.
        """
        return {
            ValidationError: {
                "category": ErrorCategory.VALIDATION,
                "severity": ErrorSeverity.HIGH,
                "fatal": True,
            },
            PreconditionError: {
                "category": ErrorCategory.PRECONDITION,
                "severity": ErrorSeverity.HIGH,
                "fatal": True,
            },
            EngineTimeoutError: {
                "category": ErrorCategory.TIMEOUT,
                "severity": ErrorSeverity.CRITICAL,
                "fatal": True,
            },
            RecoverableLogDropError: {
                "category": ErrorCategory.REDO,
                "severity": ErrorSeverity.MEDIUM,
                "fatal": False,
            },
            EngineCommandError: {
                "category": ErrorCategory.ENGINE,
                "severity": ErrorSeverity.CRITICAL,
                "fatal": True,
            },
            ClusterTeardownError: {
                "category": ErrorCategory.CLUSTER,
                "severity": ErrorSeverity.MEDIUM,
                "fatal": False,
            },
            ClusterStartupError: {
                "category": ErrorCategory.CLUSTER,
                "severity": ErrorSeverity.MEDIUM,
                "fatal": False,
            },
            FileNotFoundError: {
                "category": ErrorCategory.FILESYSTEM,
                "severity": ErrorSeverity.HIGH,
                "fatal": True,
            },
            OSError: {
                "category": ErrorCategory.FILESYSTEM,
                "severity": ErrorSeverity.HIGH,
                "fatal": True,
            },
        }

    def _build_remediation_guides(self) -> Dict[ErrorCategory, List[str]]:
        """Build remediation guides for each error category."""
        return {
            ErrorCategory.VALIDATION: [
                "Check ORACLE_SID, ORACLE_HOME and CRS_HOME in the calling environment",
                "Verify the destination arguments and the channel count",
                "Ensure the work directory is writable",
            ],
            ErrorCategory.PRECONDITION: [
                "Make sure the VDB is running from an SPFILE",
                "For a clustered target, register it with the cluster first and match its instance names to ORACLE_SID",
            ],
            ErrorCategory.ENGINE: [
                "Inspect the captured diagnostic output in the run log",
                "Run the script as the Oracle install user",
                "The move is not transactional: decide whether to resume manually or abort and reprovision",
            ],
            ErrorCategory.TIMEOUT: [
                "Check whether the instance or tool is hung",
                "Raise command_timeout in the settings file if the operation is merely slow",
                "The move is not transactional: decide whether to resume manually or abort and reprovision",
            ],
            ErrorCategory.REDO: [
                "Check v$log for groups still in CURRENT or ACTIVE state",
            ],
            ErrorCategory.CLUSTER: [
                "Remove the stale registration manually with srvctl remove database",
                "Start the moved database manually with srvctl start database",
            ],
            ErrorCategory.FILESYSTEM: [
                "Check that the referenced files exist and are accessible",
                "Verify free space at the destination",
            ],
            ErrorCategory.UNKNOWN: [
                "Review the run log for additional context",
            ],
        }

    def categorize_error(self, error: Exception, context: Optional[ErrorContext] = None) -> ErrorInfo:
        """
        Categorize an error and create comprehensive error information.

        Args:
            error: The exception that occurred
            context: Optional context information

        Returns:
            ErrorInfo object with categorized error details
        """
        mapping = None
        for exc_type, exc_mapping in self._error_mappings.items():
            if isinstance(error, exc_type):
                mapping = exc_mapping
                break

        if not mapping:
            mapping = {
                "category": ErrorCategory.UNKNOWN,
                "severity": ErrorSeverity.CRITICAL,
                "fatal": True,
            }

        category = mapping["category"]
        return ErrorInfo(
            error=error,
            category=category,
            severity=mapping["severity"],
            context=context or ErrorContext(),
            remediation_steps=self._remediation_guides.get(category, []),
            traceback_str="".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
            is_fatal=mapping["fatal"],
        )

    async def handle_error(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None,
    ) -> ErrorInfo:
        """
        Categorize and log an error.

        Args:
            error: The exception that occurred
            context: Optional context information

        Returns:
            ErrorInfo object with error details
        """
        error_info = self.categorize_error(error, context)
        self._log_error(error_info)
        return error_info

    def _log_error(self, error_info: ErrorInfo) -> None:
        """Log error information with appropriate level."""
        log_data = {
            "error_type": type(error_info.error).__name__,
            "category": error_info.category.value,
            "severity": error_info.severity.value,
            "phase": error_info.context.phase,
            "run_id": error_info.context.run_id,
            "is_fatal": error_info.is_fatal,
        }
        message = f"{error_info.error}"

        if error_info.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(message, extra=log_data)
        elif error_info.severity == ErrorSeverity.HIGH:
            self.logger.error(message, extra=log_data)
        elif error_info.severity == ErrorSeverity.MEDIUM:
            self.logger.warning(message, extra=log_data)
        else:
            self.logger.info(message, extra=log_data)

        for step in error_info.remediation_steps:
            self.logger.info(f"  remediation: {step}")

        if error_info.severity in [ErrorSeverity.HIGH, ErrorSeverity.CRITICAL]:
            self.logger.debug(error_info.traceback_str)
