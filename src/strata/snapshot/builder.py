"""Breadth-first materialization of a content-addressed hierarchy."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from strata.snapshot.errors import LookupFailure
from strata.snapshot.models import ROOT_NAME, Level, SiblingGroup, Snapshot, Vertex

logger = logging.getLogger(__name__)


class SnapshotBuilder:
    """Expands a root node level by level into a Snapshot.

    With ``concurrency=1`` every list and lookup call is awaited one after
    another. Larger values expand up to that many vertices of the same level
    at once; sibling groups are still emitted in listing order, so the
    resulting Snapshot does not depend on the setting.
    """

    def __init__(self, store: Any, concurrency: int = 1) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.store = store
        self.concurrency = concurrency

    async def build(self, root_node: Any) -> Snapshot:
        """Traverse from *root_node* until a level yields no children."""
        try:
            root = Vertex.wrap(ROOT_NAME, root_node)
        except Exception as e:
            raise LookupFailure("/", "identity", e) from e
        levels: list[Level] = [[[root]]]

        current = levels[0]
        while True:
            current = await self._expand_level(current)
            if not current:
                break
            levels.append(current)
            logger.debug(
                "level %d: %d sibling groups, %d vertices",
                len(levels) - 1,
                len(current),
                sum(len(siblings) for siblings in current),
            )

        snapshot = Snapshot(root_node, self.store, levels)
        logger.info(
            "Built snapshot of %s: %d levels, %d vertices",
            root.identity,
            snapshot.depth,
            len(snapshot),
        )
        return snapshot

    async def _expand_level(self, level: Level) -> Level:
        parents = [vertex for siblings in level for vertex in siblings]

        if self.concurrency == 1:
            groups = [await self._children_of(vertex) for vertex in parents]
        else:
            semaphore = asyncio.Semaphore(self.concurrency)

            async def bounded(vertex: Vertex) -> SiblingGroup:
                async with semaphore:
                    return await self._children_of(vertex)

            # gather preserves argument order, which keeps listing order intact
            groups = await asyncio.gather(*(bounded(v) for v in parents))

        return [group for group in groups if group]

    async def _children_of(self, vertex: Vertex) -> SiblingGroup:
        """One sibling group holding every child of *vertex*, in listing order."""
        if not vertex.is_container:
            return []

        try:
            names = await vertex.node.list_entry_names(self.store)
        except Exception as e:
            raise LookupFailure(vertex.path, "list", e) from e

        children: SiblingGroup = []
        for name in names:
            try:
                node = await vertex.node.lookup_child(name, self.store)
            except Exception as e:
                raise LookupFailure(vertex.path, "lookup", e, name=name) from e
            try:
                children.append(Vertex.wrap(name, node, vertex))
            except Exception as e:
                raise LookupFailure(vertex.path, "identity", e, name=name) from e
        return children


async def build_snapshot(root_node: Any, store: Any, *, concurrency: int = 1) -> Snapshot:
    """Convenience wrapper around SnapshotBuilder(store, concurrency).build()."""
    return await SnapshotBuilder(store, concurrency=concurrency).build(root_node)
