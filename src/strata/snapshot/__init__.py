"""Snapshot-and-diff engine for content-addressed hierarchies."""

from strata.snapshot.builder import SnapshotBuilder, build_snapshot
from strata.snapshot.differ import (
    Connection,
    DiffSummary,
    SnapshotDiffer,
    connections,
    diff_snapshots,
    summarize,
)
from strata.snapshot.errors import InconsistentSnapshot, LookupFailure, SnapshotError
from strata.snapshot.models import ROOT_NAME, Snapshot, Vertex

__all__ = [
    "Connection",
    "DiffSummary",
    "InconsistentSnapshot",
    "LookupFailure",
    "ROOT_NAME",
    "Snapshot",
    "SnapshotBuilder",
    "SnapshotDiffer",
    "SnapshotError",
    "Vertex",
    "build_snapshot",
    "connections",
    "diff_snapshots",
    "summarize",
]
