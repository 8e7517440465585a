"""
Utilities module for the VDB mover.

This module contains logging setup and small helper functions
used throughout the application.
"""

from vdb_mover.utils.helpers import (
    format_duration,
    is_writable_directory,
    load_config_file,
    quote_sql_literal,
)
from vdb_mover.utils.logging import (
    RunLogger,
    get_logger,
    setup_logging,
)

__all__ = [
    # Helper functions
    "format_duration",
    "is_writable_directory",
    "load_config_file",
    "quote_sql_literal",
    # Logging utilities
    "RunLogger",
    "get_logger",
    "setup_logging",
]
