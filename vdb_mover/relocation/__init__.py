"""Tablespace, tempfile and redo log relocation components."""

from .redo_logs import GroupRelocation, RedoLogRelocator, RelocationState
from .tablespaces import TablespaceStateManager
from .tempfiles import TempFileRelocator

__all__ = [
    "GroupRelocation",
    "RedoLogRelocator",
    "RelocationState",
    "TablespaceStateManager",
    "TempFileRelocator",
]
