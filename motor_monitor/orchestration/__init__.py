"""Monitoring loop orchestration."""

from .loop import (
    Backoff,
    CycleOutcome,
    CycleReport,
    LoopConfig,
    LoopState,
    MonitoringLoop,
    RunSummary,
)

__all__ = [
    "Backoff",
    "CycleOutcome",
    "CycleReport",
    "LoopConfig",
    "LoopState",
    "MonitoringLoop",
    "RunSummary",
]
