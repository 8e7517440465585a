"""Cluster registrar clients and coordination for the VDB mover."""

from .base import ClusterClient
from .coordinator import (
    ClusterCoordinator,
    ClusteredCoordinator,
    NoClusterCoordinator,
    select_coordinator,
)
from .srvctl import SrvctlClient

__all__ = [
    "ClusterClient",
    "ClusterCoordinator",
    "ClusteredCoordinator",
    "NoClusterCoordinator",
    "select_coordinator",
    "SrvctlClient",
]
