"""Migration orchestration for the VDB mover."""

from .orchestrator import PHASE_DESCRIPTIONS, MigrationOrchestrator, OrchestrationPhase
from .report import build_final_report, build_final_steps, render_report

__all__ = [
    "MigrationOrchestrator",
    "OrchestrationPhase",
    "PHASE_DESCRIPTIONS",
    "build_final_report",
    "build_final_steps",
    "render_report",
]
