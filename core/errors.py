"""Error taxonomy shared by the memory engine and the CLI."""

from __future__ import annotations

from typing import Any


class MemoError(Exception):
    """Base class for every error surfaced to a memo command."""


class NotFoundError(MemoError):
    """Raised when a memory id does not exist."""

    def __init__(self, memory_id: str) -> None:
        super().__init__(f"memory not found: {memory_id}")
        self.memory_id = memory_id


class ValidationError(MemoError):
    """Raised for empty content, malformed arguments or bad timestamps."""


class DependencyUnavailableError(MemoError):
    """Raised when the embedding service or a store cannot be reached."""


class EmbeddingUnavailableError(DependencyUnavailableError):
    """Embedding service unreachable or answered with a non-2xx status."""


class NoEmbeddingError(DependencyUnavailableError):
    """Embedding service answered, but with an empty or malformed body."""


class NotIndexedError(MemoError):
    """Raised when a vector query runs before anything was indexed."""


class ConflictError(MemoError):
    """Raised for duplicate tags and blocked duplicate writes."""


class DuplicateMemoryError(ConflictError):
    """Raised when remember is blocked by an existing duplicate."""

    def __init__(self, report: Any) -> None:
        super().__init__("duplicate memory exists - use --force to save anyway")
        self.report = report
