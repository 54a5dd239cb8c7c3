"""Error types raised while building and diffing snapshots."""

from __future__ import annotations


class SnapshotError(Exception):
    """Base class for all snapshot build and diff failures."""


class LookupFailure(SnapshotError):
    """The directory interface could not list or resolve an expected entry.

    Always fatal to the build in progress. Retrying is the caller's business.
    """

    def __init__(
        self, path: str, operation: str, cause: Exception, name: str | None = None
    ) -> None:
        self.path = path
        self.name = name
        self.operation = operation
        target = f"{path.rstrip('/')}/{name}" if name is not None else path
        super().__init__(f"{operation} failed at {target}: {cause}")
        self.__cause__ = cause


class InconsistentSnapshot(SnapshotError):
    """A snapshot does not have the shape a diff requires."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"inconsistent snapshot: {reason}")
