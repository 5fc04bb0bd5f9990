"""
Snapshot Pipeline Module
"""
from .orchestrator import (
    BrandWorkPayload,
    PipelineState,
    SnapshotOrchestrator,
    SnapshotResult,
    run_brand_analytics,
)
from .snapshot import load_snapshot_inputs, read_snapshot, run_snapshot, write_snapshot

__all__ = [
    "BrandWorkPayload",
    "PipelineState",
    "SnapshotOrchestrator",
    "SnapshotResult",
    "run_brand_analytics",
    "load_snapshot_inputs",
    "read_snapshot",
    "run_snapshot",
    "write_snapshot",
]
