"""Interfaces implemented by filesystems that strata can snapshot."""

from strata.interfaces.node import BlockStore, DirectoryNode

__all__ = [
    "BlockStore",
    "DirectoryNode",
]
