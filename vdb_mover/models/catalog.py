"""
Catalog records read from the source database and the cluster registrar.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class TablespaceStatus(str, Enum):
    """Tablespace status as reported by dba_tablespaces."""
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    READ_ONLY = "READ ONLY"


class Tablespace(BaseModel):
    name: str
    status: TablespaceStatus


class TempFile(BaseModel):
    tablespace_name: str
    file_name: str
    size_bytes: int = Field(ge=0)


class RedoLogGroup(BaseModel):
    group_number: int
    thread_number: int
    size_kb: int = Field(ge=0)


class InstanceInfo(BaseModel):
    """A running instance as listed by gv$instance."""
    instance_name: str
    host_name: str


class ClusterConfig(BaseModel):
    """Cluster membership of the source, fixed for the whole run."""
    is_clustered: bool = False
    home_path: Optional[str] = None
    node_names: List[str] = Field(default_factory=list)
    instance_names: List[str] = Field(default_factory=list)
