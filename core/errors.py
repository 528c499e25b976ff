"""Exception taxonomy for context verification."""

from __future__ import annotations


class SentinelError(Exception):
    """Base class for all context-sentinel errors."""


class MalformedArtifactError(SentinelError):
    """A stored artifact could not be parsed into the expected shape."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Malformed artifact {path}: {reason}")
        self.path = path
        self.reason = reason


class ConcurrentModificationError(SentinelError):
    """A versioned write lost a compare-and-swap against a newer writer."""

    def __init__(self, resource: str, expected: str | None, actual: str | None) -> None:
        super().__init__(
            f"Concurrent modification of {resource}: expected {expected!r}, found {actual!r}"
        )
        self.resource = resource
        self.expected = expected
        self.actual = actual


class ResolutionNotFoundError(SentinelError):
    """Raised when a caller references an unknown resolution id."""

    def __init__(self, resolution_id: str) -> None:
        super().__init__(f"Resolution {resolution_id} not found")
        self.resolution_id = resolution_id


class StorageError(SentinelError):
    """Durable store read or write failed."""
