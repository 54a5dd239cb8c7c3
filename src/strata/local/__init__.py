"""Snapshot directories on local disk."""

from strata.local.node import (
    DEFAULT_IGNORE,
    LocalNode,
    LocalStore,
    compute_directory_hash,
    compute_hash,
    hash_local,
    open_local,
)

__all__ = [
    "DEFAULT_IGNORE",
    "LocalNode",
    "LocalStore",
    "compute_directory_hash",
    "compute_hash",
    "hash_local",
    "open_local",
]
