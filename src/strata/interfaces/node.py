"""Contracts for the content-addressed filesystem the snapshot engine reads."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class BlockStore(Protocol):
    """Opaque storage handle handed through to every node call.

    The snapshot engine never reads from or writes to it directly.
    """


@runtime_checkable
class DirectoryNode(Protocol):
    """A file or directory in an immutable, content-addressed hierarchy."""

    def is_container(self) -> bool: ...

    def identity(self) -> str: ...

    async def list_entry_names(self, store: Any) -> list[str]: ...

    async def lookup_child(self, name: str, store: Any) -> DirectoryNode: ...
