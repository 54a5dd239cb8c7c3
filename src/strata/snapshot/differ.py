"""Divergence detection between two snapshots of the same hierarchy."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from strata.snapshot.models import Level, SiblingGroup, Snapshot, Vertex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Connection:
    """A parent-to-child edge in a diff result.

    ``cross_reference`` marks edges leading to a suppressed vertex: the child
    already exists elsewhere and should be linked to rather than redrawn.
    """

    parent_identity: str
    child_identity: str
    cross_reference: bool = False


@dataclass(frozen=True)
class DiffSummary:
    """Counts and paths describing a diff result."""

    added: tuple[str, ...] = ()
    moved: tuple[str, ...] = ()
    unchanged: int = 0
    root_changed: bool = False
    old_root_identity: str = ""
    new_root_identity: str = ""


class SnapshotDiffer:
    """Finds the vertices of a current snapshot that a previous one lacks."""

    @staticmethod
    def diff(current: Snapshot, previous: Snapshot) -> Snapshot | None:
        """Prune *current* down to its new and reparented vertices.

        Returns None when both roots share an identity: content addressing
        guarantees the two hierarchies are then identical.
        """
        current.validate()
        previous.validate()

        if current.root.identity == previous.root.identity:
            logger.debug("Root %s unchanged, nothing to diff", current.root.identity)
            return None

        history = SnapshotDiffer._index(previous)

        levels: list[Level] = []
        for level in current.levels:
            kept_level: Level = []
            for siblings in level:
                kept = SnapshotDiffer._diff_siblings(siblings, history)
                if kept:
                    kept_level.append(kept)
            if kept_level:
                levels.append(kept_level)

        result = Snapshot(
            current.root_node,
            current.store,
            levels,
            taken_at=current.taken_at,
            origin=current,
        )
        logger.debug(
            "Diffed %s against %s: %d of %d vertices diverge",
            current.root.identity,
            previous.root.identity,
            len(result),
            len(current),
        )
        return result

    @staticmethod
    def _index(snapshot: Snapshot) -> dict[str, Vertex]:
        """Map identity to the first vertex carrying it, in traversal order."""
        history: dict[str, Vertex] = {}
        for vertex in snapshot.vertices():
            history.setdefault(vertex.identity, vertex)
        return history

    @staticmethod
    def _diff_siblings(siblings: SiblingGroup, history: dict[str, Vertex]) -> SiblingGroup:
        kept: SiblingGroup = []
        for vertex in siblings:
            match = history.get(vertex.identity)
            if match is None:
                kept.append(vertex)
            elif match.parent_identity != vertex.parent_identity:
                # Same content under a different parent: reference it, don't redraw.
                kept.append(vertex.as_suppressed())
        return kept


def diff_snapshots(current: Snapshot, previous: Snapshot) -> Snapshot | None:
    """Convenience wrapper around SnapshotDiffer.diff()."""
    return SnapshotDiffer.diff(current, previous)


def connections(snapshot: Snapshot) -> list[Connection]:
    """Parent-to-child edges for every non-root vertex, in traversal order."""
    edges: list[Connection] = []
    for vertex in snapshot.vertices():
        parent = vertex.parent
        if parent is None:
            continue
        edges.append(Connection(parent.identity, vertex.identity, vertex.suppressed))
    return edges


def summarize(result: Snapshot | None, current: Snapshot, previous: Snapshot) -> DiffSummary:
    """Describe a diff result in terms of added and moved paths."""
    if result is None:
        return DiffSummary(
            unchanged=len(current),
            old_root_identity=previous.root.identity,
            new_root_identity=current.root.identity,
        )

    added = [v.path for v in result.vertices() if not v.suppressed]
    moved = [v.path for v in result.vertices() if v.suppressed]
    return DiffSummary(
        added=tuple(added),
        moved=tuple(moved),
        unchanged=len(current) - len(result),
        root_changed=True,
        old_root_identity=previous.root.identity,
        new_root_identity=current.root.identity,
    )
