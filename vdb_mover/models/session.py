"""
Run-time models for the VDB mover.

This module defines the structured results returned by external tools,
the typed command sets the pipeline executes, the per-phase audit
records and the run context that owns every artifact of a single move.
"""

import json
import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from vdb_mover.models.catalog import (
    ClusterConfig,
    RedoLogGroup,
    Tablespace,
    TempFile,
)


class CommandResult(BaseModel):
    """Outcome of one invocation of an external administrative tool."""
    succeeded: bool
    output: str = ""
    return_code: Optional[int] = None
    timed_out: bool = False

    @property
    def lines(self) -> List[str]:
        return [line.strip() for line in self.output.splitlines() if line.strip()]


class CommandSet(BaseModel):
    """An ordered list of statements generated for one pipeline action."""
    name: str
    statements: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.statements

    def render(self) -> str:
        """SQL*Plus script text, one terminated statement per line."""
        return "".join(f"{stmt};\n" for stmt in self.statements)


class PhaseStatus(str, Enum):
    """Pipeline phase status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelinePhaseResult(BaseModel):
    """Audit record produced by every phase, successful or not."""
    phase_name: str
    succeeded: bool
    diagnostic_output: str = ""
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    duration: Optional[float] = None  # seconds
    error_code: Optional[str] = None

    @property
    def status(self) -> PhaseStatus:
        return PhaseStatus.COMPLETED if self.succeeded else PhaseStatus.FAILED


class PipelineState(BaseModel):
    """Metadata discovered and generated as the pipeline advances."""
    source_unique_name: Optional[str] = None
    target_unique_name: Optional[str] = None
    db_name: Optional[str] = None
    spfile_path: Optional[str] = None
    controlfile_name: Optional[str] = None
    archive_dest_parameter: Optional[str] = None
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)

    tablespaces: List[Tablespace] = Field(default_factory=list)
    tempfiles: List[TempFile] = Field(default_factory=list)
    redo_log_groups: List[RedoLogGroup] = Field(default_factory=list)

    command_sets: Dict[str, CommandSet] = Field(default_factory=dict)

    run_pfile: Optional[str] = None
    new_spfile_path: Optional[str] = None
    new_init_file: Optional[str] = None
    source_parameters_file: Optional[str] = None
    source_parameters_copy: Optional[str] = None
    final_startup_pending: bool = False

    def command_set(self, name: str) -> CommandSet:
        if name in self.command_sets:
            return self.command_sets[name]
        return CommandSet(name=name)


class FinalReport(BaseModel):
    """Operator-facing summary of a move."""
    success: bool
    run_id: str
    target_unique_name: Optional[str] = None
    clustered: bool = False
    steps: List[str] = Field(default_factory=list)
    new_init_file: Optional[str] = None
    source_parameters_copy: Optional[str] = None
    log_file: Optional[str] = None
    failed_phase: Optional[str] = None
    error: Optional[str] = None
    phase_results: List[PipelinePhaseResult] = Field(default_factory=list)


class RunContext:
    """
    Everything a single run owns: identifiers, artifacts and the log sink.

    Created by the orchestrator at the start of a run. Transient artifacts
    are removed once the move succeeds and left in place for diagnosis
    when it fails.
    """

    def __init__(self, run_id: str, work_dir: Path, logger: Any):
        self.run_id = run_id
        self.work_dir = Path(work_dir)
        self.logger = logger
        self.artifacts: Dict[str, Path] = {}
        self.phase_results: List[PipelinePhaseResult] = []
        self._transient: List[str] = []

    @classmethod
    def build_run_id(cls, instance_id: str, pid: Optional[int] = None) -> str:
        return f"{instance_id}_run{os.getpid() if pid is None else pid}"

    @property
    def log_file(self) -> Path:
        return self.work_dir / f"move_to_physical_{self.run_id}.log"

    @property
    def phase_results_file(self) -> Path:
        return self.work_dir / f"phase_results_{self.run_id}.json"

    def register_artifact(self, name: str, filename: str, transient: bool = True) -> Path:
        """Reserve a path in the work directory for a named artifact."""
        path = self.work_dir / filename
        self.artifacts[name] = path
        if transient and name not in self._transient:
            self._transient.append(name)
        return path

    def write_artifact(self, name: str, filename: str, content: str, transient: bool = True) -> Path:
        path = self.register_artifact(name, filename, transient=transient)
        path.write_text(content, encoding="utf-8")
        return path

    def write_command_set(self, command_set: CommandSet) -> Path:
        return self.write_artifact(
            command_set.name, f"{command_set.name}_{self.run_id}.sql", command_set.render()
        )

    def append_diagnostic(self, phase_name: str, text: str) -> Path:
        """Append tool output to the phase's diagnostic log."""
        name = f"{phase_name}_log"
        path = self.artifacts.get(name) or self.register_artifact(name, f"{phase_name}_{self.run_id}.log")
        with open(path, "a", encoding="utf-8") as f:
            f.write(text)
            if text and not text.endswith("\n"):
                f.write("\n")
        return path

    def is_transient(self, name: str) -> bool:
        return name in self._transient

    def retained_artifacts(self) -> List[Path]:
        """Transient artifacts still present on disk."""
        paths = [self.artifacts.get(name) for name in self._transient]
        return [path for path in paths if path is not None and path.exists()]

    def remove_transient_artifacts(self) -> List[Path]:
        """Delete every transient artifact that exists on disk."""
        removed = []
        for name in list(self._transient):
            path = self.artifacts.get(name)
            if path is not None and path.exists():
                path.unlink()
                removed.append(path)
            self._transient.remove(name)
            self.artifacts.pop(name, None)
        return removed

    def record(self, result: PipelinePhaseResult) -> None:
        self.phase_results.append(result)

    def write_phase_results(self) -> Path:
        """Persist the phase audit trail; kept regardless of outcome."""
        payload = {
            "run_id": self.run_id,
            "phases": [json.loads(r.model_dump_json()) for r in self.phase_results],
        }
        self.phase_results_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return self.phase_results_file
