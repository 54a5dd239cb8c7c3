"""Vertex and Snapshot: the leveled, in-memory copy of a hierarchy."""

from __future__ import annotations

import json
import weakref
from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from strata.snapshot.errors import InconsistentSnapshot

ROOT_NAME = "root"

# A level is a list of sibling groups; a sibling group shares one parent.
SiblingGroup = list["Vertex"]
Level = list[SiblingGroup]


@dataclass(frozen=True, eq=False)
class Vertex:
    """One file or directory as seen in a particular snapshot.

    Equality and hashing use ``identity`` only, so vertices taken from two
    different snapshots compare equal when they wrap the same content.
    """

    name: str
    identity: str
    is_container: bool
    node: Any = field(default=None, repr=False)
    _parent: weakref.ref[Vertex] | None = field(default=None, repr=False)
    suppressed: bool = False

    @classmethod
    def wrap(cls, name: str, node: Any, parent: Vertex | None = None) -> Vertex:
        """Create a vertex for *node*, reading its identity once."""
        return cls(
            name=name,
            identity=node.identity(),
            is_container=node.is_container(),
            node=node,
            _parent=weakref.ref(parent) if parent is not None else None,
        )

    @classmethod
    def detached(
        cls,
        name: str,
        identity: str,
        is_container: bool,
        parent: Vertex | None = None,
        suppressed: bool = False,
    ) -> Vertex:
        """Create a vertex with no backing node (e.g. loaded from JSON)."""
        return cls(
            name=name,
            identity=identity,
            is_container=is_container,
            _parent=weakref.ref(parent) if parent is not None else None,
            suppressed=suppressed,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vertex):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    @property
    def parent(self) -> Vertex | None:
        return self._parent() if self._parent is not None else None

    @property
    def parent_identity(self) -> str | None:
        parent = self.parent
        return parent.identity if parent is not None else None

    @property
    def depth(self) -> int:
        """Number of ancestor hops between this vertex and the root."""
        hops = 0
        vertex = self.parent
        while vertex is not None:
            hops += 1
            vertex = vertex.parent
        return hops

    def root_path(self) -> tuple[list[str], Vertex]:
        """Return the entry names leading from the root to this vertex, and the root.

        The root itself contributes no segment, so the root's own path is empty.
        """
        segments: list[str] = []
        vertex = self
        while vertex.parent is not None:
            segments.append(vertex.name)
            vertex = vertex.parent
        segments.reverse()
        return segments, vertex

    @property
    def path(self) -> str:
        segments, _ = self.root_path()
        return "/" + "/".join(segments)

    def as_suppressed(self) -> Vertex:
        """Copy of this vertex flagged to be drawn as a reference only."""
        return replace(self, suppressed=True)


class Snapshot:
    """A fully materialized hierarchy, stored level by level.

    ``levels[n]`` holds the sibling groups found ``n`` hops below the root.
    Level 0 is always a single group containing only the synthetic root.
    """

    version: int = 1

    def __init__(
        self,
        root_node: Any,
        store: Any,
        levels: list[Level] | None = None,
        taken_at: datetime | None = None,
        origin: Snapshot | None = None,
    ) -> None:
        self.root_node = root_node
        self.store = store
        if levels is not None:
            self.levels = levels
        else:
            self.levels = [[[Vertex.wrap(ROOT_NAME, root_node)]]]
        self.taken_at = taken_at or datetime.now(timezone.utc)
        # Parent references are weak; keep their owner alive.
        self.origin = origin

    def __repr__(self) -> str:
        return f"Snapshot(root={self.root.identity!r}, depth={self.depth}, vertices={len(self)})"

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def root(self) -> Vertex:
        return self.levels[0][0][0]

    @property
    def depth(self) -> int:
        return len(self.levels)

    def vertices(self) -> Iterator[Vertex]:
        """Yield every vertex, level by level, in traversal order."""
        for level in self.levels:
            for siblings in level:
                yield from siblings

    def __len__(self) -> int:
        return sum(len(siblings) for level in self.levels for siblings in level)

    def __iter__(self) -> Iterator[Vertex]:
        return self.vertices()

    def find(self, identity: str) -> Vertex | None:
        """First vertex with *identity* in traversal order, if any."""
        for vertex in self.vertices():
            if vertex.identity == identity:
                return vertex
        return None

    def validate(self) -> None:
        """Raise InconsistentSnapshot unless this is a well-formed leveled tree."""
        if not self.levels:
            raise InconsistentSnapshot("snapshot has no levels")
        top = self.levels[0]
        if len(top) != 1 or len(top[0]) != 1:
            raise InconsistentSnapshot("level 0 must hold exactly one root vertex")
        if top[0][0].parent is not None:
            raise InconsistentSnapshot("root vertex must not have a parent")

        above = {id(top[0][0])}
        for index, level in enumerate(self.levels[1:], start=1):
            current: set[int] = set()
            for siblings in level:
                if not siblings:
                    raise InconsistentSnapshot(f"empty sibling group at level {index}")
                for vertex in siblings:
                    parent = vertex.parent
                    if parent is None or id(parent) not in above:
                        raise InconsistentSnapshot(
                            f"{vertex.name!r} at level {index} has no parent at level {index - 1}"
                        )
                    current.add(id(vertex))
            above = current

    def diff(self, previous: Snapshot) -> Snapshot | None:
        """Vertices of *self* that diverge from *previous*; None if roots match."""
        from strata.snapshot.differ import diff_snapshots

        return diff_snapshots(self, previous)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_json(self) -> str:
        """Serialize the snapshot to a JSON string.

        Each vertex records the index of its parent within the flattened
        previous level, so the leveled shape can be rebuilt exactly. Only
        snapshots that pass validate() serialize; a pruned diff result raises
        InconsistentSnapshot since its parents are not all present.
        """
        self.validate()
        levels: list[list[list[dict[str, Any]]]] = []
        previous_index: dict[int, int] = {}
        for level in self.levels:
            index: dict[int, int] = {}
            out_level = []
            for siblings in level:
                out_group = []
                for vertex in siblings:
                    parent = vertex.parent
                    out_group.append({
                        "name": vertex.name,
                        "identity": vertex.identity,
                        "is_container": vertex.is_container,
                        "suppressed": vertex.suppressed,
                        "parent": previous_index.get(id(parent)) if parent is not None else None,
                    })
                    index[id(vertex)] = len(index)
                out_level.append(out_group)
            levels.append(out_level)
            previous_index = index

        data = {
            "version": self.version,
            "root_identity": self.root.identity,
            "taken_at": self.taken_at.isoformat(),
            "levels": levels,
        }
        return json.dumps(data, indent=2)

    @classmethod
    def from_json(cls, data: str) -> Snapshot:
        """Rebuild a detached snapshot (no nodes, no store) from JSON."""
        try:
            obj = json.loads(data)
            raw_levels = obj["levels"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise InconsistentSnapshot(f"unreadable snapshot data: {e}") from e

        if not isinstance(raw_levels, list):
            raise InconsistentSnapshot(f"levels must be a list, got {type(raw_levels).__name__}")

        levels: list[Level] = []
        above: list[Vertex] = []
        try:
            for raw_level in raw_levels:
                flat: list[Vertex] = []
                level: Level = []
                for raw_group in raw_level:
                    group: SiblingGroup = []
                    for raw in raw_group:
                        vertex = cls._decode_vertex(raw, above)
                        group.append(vertex)
                        flat.append(vertex)
                    level.append(group)
                levels.append(level)
                above = flat
        except (KeyError, TypeError, AttributeError) as e:
            raise InconsistentSnapshot(f"malformed vertex data: {e!r}") from e

        if not levels:
            raise InconsistentSnapshot("snapshot has no levels")

        taken_at = obj.get("taken_at")
        try:
            stamp = datetime.fromisoformat(taken_at) if taken_at else None
        except (TypeError, ValueError) as e:
            raise InconsistentSnapshot(f"bad taken_at {taken_at!r}") from e
        return cls(root_node=None, store=None, levels=levels, taken_at=stamp)

    @staticmethod
    def _decode_vertex(raw: dict[str, Any], above: list[Vertex]) -> Vertex:
        name = raw["name"]
        identity = raw["identity"]
        if not isinstance(name, str) or not isinstance(identity, str):
            raise InconsistentSnapshot(f"name and identity must be strings in {raw!r}")

        parent_index = raw.get("parent")
        if parent_index is not None:
            # bool is an int subclass; true/false is never a valid index
            if not isinstance(parent_index, int) or isinstance(parent_index, bool):
                raise InconsistentSnapshot(f"parent index {parent_index!r} of {name!r} is not an integer")
            if not 0 <= parent_index < len(above):
                raise InconsistentSnapshot(f"parent index {parent_index} out of range for {name!r}")

        return Vertex.detached(
            name=name,
            identity=identity,
            is_container=bool(raw.get("is_container", False)),
            parent=above[parent_index] if parent_index is not None else None,
            suppressed=bool(raw.get("suppressed", False)),
        )

    def save(self, path: Path) -> None:
        """Write the snapshot to a JSON file."""
        path.write_text(self.to_json())

    @classmethod
    def load(cls, path: Path) -> Snapshot:
        """Read a snapshot from a JSON file."""
        return cls.from_json(path.read_text())
