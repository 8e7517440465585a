"""
Pytest configuration and fixtures for the VDB mover tests.

This module provides an Oracle home laid out on disk, the environment
and request models pointing at it, and in-memory fakes for the
database, the clusterware and the storage engine.
"""

import stat
from pathlib import Path

import pytest

from fakes import FakeAdminClient, FakeClusterClient, FakeStorageEngine
from vdb_mover.models.config import EnvironmentConfig, MigrationRequest


@pytest.fixture
def oracle_home(tmp_path: Path) -> Path:
    """Oracle home with the VDB's text parameter file in dbs/."""
    home = tmp_path / "oracle_home"
    (home / "dbs").mkdir(parents=True)
    (home / "bin").mkdir()
    (home / "dbs" / "initVDB1.ora").write_text("spfile='/vdb/VDB1/spfileVDB1.ora'\n")
    return home


@pytest.fixture
def crs_home(tmp_path: Path) -> Path:
    """Clusterware home with executable srvctl and olsnodes."""
    home = tmp_path / "crs_home"
    (home / "bin").mkdir(parents=True)
    for tool in ("srvctl", "olsnodes"):
        path = home / "bin" / tool
        path.write_text("#!/bin/sh\nexit 0\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return home


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def data_destination(tmp_path: Path) -> str:
    return str(tmp_path / "oradata")


@pytest.fixture
def vdb_spfile_dir(tmp_path: Path) -> Path:
    """Directory the VDB's spfile lives in."""
    path = tmp_path / "vdb"
    path.mkdir()
    return path


@pytest.fixture
def environment(oracle_home: Path) -> EnvironmentConfig:
    return EnvironmentConfig(oracle_sid="VDB1", oracle_home=str(oracle_home))


@pytest.fixture
def request_model(data_destination: str) -> MigrationRequest:
    return MigrationRequest(
        source_instance_id="VDB1",
        data_destination=data_destination,
        confirmation_required=False,
    )


@pytest.fixture
def admin(vdb_spfile_dir: Path) -> FakeAdminClient:
    """VDB matching the documented example: two offline and one read-only tablespace."""
    return FakeAdminClient(
        parameters={"spfile": str(vdb_spfile_dir / "spfileVDB1.ora"), "db_name": "VDB1"},
        tablespaces=[
            ("SYSTEM", "ONLINE"),
            ("SYSAUX", "ONLINE"),
            ("TS_OLD1", "OFFLINE"),
            ("TS_OLD2", "OFFLINE"),
            ("TS_ARCH", "READ ONLY"),
            ("USERS", "ONLINE"),
        ],
        tempfiles=[("TEMP", "/vdb/VDB1/temp01.dbf", 104857600)],
        redo_groups=[(1, 1, 51200), (2, 1, 51200), (3, 1, 51200)],
        current_groups={1},
    )


@pytest.fixture
def cluster_client() -> FakeClusterClient:
    return FakeClusterClient(instances={"VDB1": ["VDB1"], "PHYS1": ["VDB1"]})


@pytest.fixture
def storage() -> FakeStorageEngine:
    return FakeStorageEngine()


@pytest.fixture(autouse=True)
def clean_oracle_environment(monkeypatch):
    """Keep the caller's Oracle variables out of the tests."""
    for name in ("ORACLE_SID", "ORACLE_HOME", "CRS_HOME", "LOGON_STR"):
        monkeypatch.delenv(name, raising=False)
