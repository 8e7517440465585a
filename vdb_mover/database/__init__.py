"""Database administration clients for the VDB mover."""

from .base import (
    DatabaseAdminClient,
    ShutdownMode,
    StartupMode,
    require,
)
from .sqlplus import SqlPlusClient

__all__ = [
    "DatabaseAdminClient",
    "ShutdownMode",
    "StartupMode",
    "require",
    "SqlPlusClient",
]
