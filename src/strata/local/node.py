"""DirectoryNode adapter over a directory on local disk."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Entries always skipped when listing
DEFAULT_IGNORE = {
    ".git",
    "node_modules",
    "__pycache__",
    ".venv",
}


def compute_hash(content: bytes) -> str:
    """SHA-256 hash, truncated to the first 12 hex characters."""
    return hashlib.sha256(content).hexdigest()[:12]


def compute_directory_hash(entries: dict[str, str]) -> str:
    """Hash a directory from its ``name -> identity`` entries.

    Entries are sorted by name, so listing order never affects the result,
    while renaming an entry does.
    """
    joined = "\n".join(f"{name}:{entries[name]}" for name in sorted(entries))
    return compute_hash(b"dir\n" + joined.encode())


class LocalStore:
    """Store handle for local nodes; only remembers where the tree is rooted."""

    def __init__(self, root_path: Path) -> None:
        self.root_path = root_path

    def __repr__(self) -> str:
        return f"LocalStore({str(self.root_path)!r})"


class LocalNode:
    """A file or directory on disk, identified by a hash of its content.

    A directory's identity covers every descendant, so changing any file
    changes the identity of all of its ancestors.
    """

    def __init__(
        self,
        path: Path,
        ignore_patterns: set[str] | None = None,
        _cache: dict[Path, str] | None = None,
    ) -> None:
        self.path = path
        self.ignore = set(DEFAULT_IGNORE) if ignore_patterns is None else set(ignore_patterns)
        # identity cache shared by every node under the same root
        self._cache = _cache if _cache is not None else {}

    def __repr__(self) -> str:
        return f"LocalNode({str(self.path)!r})"

    def is_container(self) -> bool:
        return self.path.is_dir() and not self.path.is_symlink()

    def identity(self) -> str:
        cached = self._cache.get(self.path)
        if cached is not None:
            return cached

        if self.is_container():
            entries = {name: self._child(name).identity() for name in self._names()}
            ident = compute_directory_hash(entries)
        else:
            ident = compute_hash(b"file\n" + self.path.read_bytes())
        self._cache[self.path] = ident
        return ident

    async def list_entry_names(self, store: LocalStore) -> list[str]:
        return await asyncio.to_thread(self._names)

    async def lookup_child(self, name: str, store: LocalStore) -> LocalNode:
        if name in self.ignore or "/" in name or name in (".", ".."):
            raise FileNotFoundError(f"No such entry: {self.path / name}")
        child = self._child(name)
        if not _is_snapshottable(child.path):
            raise FileNotFoundError(f"No such entry: {child.path}")
        # hash off the event loop so wrapping the child never blocks
        await asyncio.to_thread(child.identity)
        return child

    def _names(self) -> list[str]:
        return sorted(
            p.name
            for p in self.path.iterdir()
            if p.name not in self.ignore and _is_snapshottable(p)
        )

    def _child(self, name: str) -> LocalNode:
        return LocalNode(self.path / name, self.ignore, _cache=self._cache)


def _is_snapshottable(path: Path) -> bool:
    """Regular files (symlinked or not) and real directories.

    Dangling links, sockets, fifos and symlinked directories are skipped,
    which also keeps link cycles out of the traversal.
    """
    if path.is_symlink():
        return path.is_file()
    return path.is_file() or path.is_dir()


def open_local(root_path: Path, ignore_patterns: list[str] | None = None) -> tuple[LocalNode, LocalStore]:
    """Return the root node and store for a directory on disk."""
    root_path = root_path.resolve()
    if not root_path.is_dir():
        raise FileNotFoundError(f"Not a directory: {root_path}")
    ignore = set(DEFAULT_IGNORE)
    if ignore_patterns:
        ignore.update(ignore_patterns)
    logger.debug("Opening %s (ignoring %s)", root_path, sorted(ignore))
    return LocalNode(root_path, ignore), LocalStore(root_path)


async def hash_local(node: LocalNode) -> str:
    """Compute (and cache) the identity of a whole local tree in a worker thread."""
    return await asyncio.to_thread(node.identity)
