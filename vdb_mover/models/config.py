"""
Configuration models for the VDB mover.

This module defines Pydantic models for the migration request and the
Oracle environment the move runs in.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_LOGON_STRING = "/ as sysdba"
DEFAULT_ARCHIVE_ROOT = "/apps/orafra"
DEFAULT_CHANNEL_PARALLELISM = 8


def _is_valid_destination(value: str) -> bool:
    """Destinations are absolute directories or ASM disk groups."""
    return value.startswith("/") or value.startswith("+")


class MigrationRequest(BaseModel):
    """What to move and where to put it.

    Immutable once created: the orchestrator never rewrites the request,
    discovered values live in the pipeline state instead.
    """
    model_config = ConfigDict(frozen=True)

    source_instance_id: str = Field(..., min_length=1, description="ORACLE_SID of the VDB")
    target_unique_name: Optional[str] = Field(
        default=None,
        description="db_unique_name of the physical database; defaults to the VDB's"
    )
    data_destination: str = Field(..., description="Directory or disk group for datafiles and control files")
    redo_destination: Optional[str] = Field(
        default=None,
        description="Directory or disk group for online redo; defaults to data_destination"
    )
    channel_parallelism: int = Field(default=DEFAULT_CHANNEL_PARALLELISM, ge=1)
    confirmation_required: bool = True

    @field_validator('data_destination', 'redo_destination')
    @classmethod
    def destination_must_be_absolute(cls, v):
        if v is None:
            return v
        v = v.rstrip('/') if len(v) > 1 else v
        if not v or not _is_valid_destination(v):
            raise ValueError('Destination must be an absolute path or an ASM disk group (+NAME)')
        return v

    @field_validator('target_unique_name')
    @classmethod
    def target_name_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Target unique name cannot be blank')
        return v.strip() if v else v

    @property
    def effective_redo_destination(self) -> str:
        """Redo destination with the data-destination default applied."""
        return self.redo_destination or self.data_destination

    @property
    def separate_redo_destination(self) -> bool:
        return self.redo_destination is not None

    def resolve_target_name(self, source_unique_name: str) -> str:
        """Target db_unique_name, defaulting to the source's."""
        return self.target_unique_name or source_unique_name


class EnvironmentConfig(BaseModel):
    """Oracle environment of the host the VDB runs on."""
    oracle_sid: Optional[str] = None
    oracle_home: Optional[str] = None
    crs_home: Optional[str] = None
    logon_string: str = DEFAULT_LOGON_STRING
    archive_root: str = DEFAULT_ARCHIVE_ROOT
    command_timeout: Optional[float] = Field(default=None, gt=0)
    structured_logging: bool = False

    @classmethod
    def from_environ(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        settings: Optional[Dict[str, Any]] = None
    ) -> "EnvironmentConfig":
        """
        Build the environment from process variables layered over a settings file.

        Args:
            environ: Variables to read (defaults to os.environ)
            settings: Values loaded from a YAML/JSON settings file

        Returns:
            EnvironmentConfig instance
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {
            key: value for key, value in (settings or {}).items()
            if key in cls.model_fields
        }

        env_mapping = {
            "ORACLE_SID": "oracle_sid",
            "ORACLE_HOME": "oracle_home",
            "CRS_HOME": "crs_home",
            "LOGON_STR": "logon_string",
        }
        for env_name, field_name in env_mapping.items():
            if environ.get(env_name):
                values[field_name] = environ[env_name]

        return cls(**values)

    @property
    def dbs_dir(self) -> Path:
        return Path(self.oracle_home or "") / "dbs"

    @property
    def init_ora_path(self) -> Path:
        """Text parameter file the VDB was provisioned with."""
        return self.dbs_dir / f"init{self.oracle_sid}.ora"

    def spfile_path_for(self, unique_name: str) -> Path:
        return self.dbs_dir / f"spfile{unique_name}.ora"

    @property
    def snapshot_controlfile_path(self) -> Path:
        return self.dbs_dir / "snapshot_cfile.f"

    def tool_path(self, home: Optional[str], tool: str) -> Path:
        return Path(home or "") / "bin" / tool

    def process_env(
        self,
        include_crs: bool = False,
        base: Optional[Mapping[str, str]] = None
    ) -> Dict[str, str]:
        """
        Environment for spawned Oracle tools.

        Prefixes PATH and LD_LIBRARY_PATH with the Oracle home (and the
        clusterware home when requested) unless they are already present.
        """
        env = dict(os.environ if base is None else base)
        if self.oracle_sid:
            env["ORACLE_SID"] = self.oracle_sid
        if self.oracle_home:
            env["ORACLE_HOME"] = self.oracle_home
            env["PATH"] = _prepend_path(env.get("PATH", ""), f"{self.oracle_home}/bin")
            env["LD_LIBRARY_PATH"] = _prepend_path(
                env.get("LD_LIBRARY_PATH", ""), f"{self.oracle_home}/lib"
            )
        if include_crs and self.crs_home:
            env["PATH"] = _prepend_path(env.get("PATH", ""), f"{self.crs_home}/bin")
        return env


def _prepend_path(current: str, entry: str) -> str:
    parts = [p for p in current.split(os.pathsep) if p]
    if entry in parts:
        return current
    return os.pathsep.join([entry] + parts)
