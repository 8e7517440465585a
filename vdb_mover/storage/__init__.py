"""Storage relocation engines for the VDB mover."""

from .base import StorageRelocationEngine
from .rman import RmanRelocationEngine, build_relocation_script

__all__ = [
    "StorageRelocationEngine",
    "RmanRelocationEngine",
    "build_relocation_script",
]
