"""Memory record models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from core.project import project_from_tags


class MemoryType(str, Enum):
    """Memory types recognised by stats and filters."""

    FACT = "fact"
    LEARNED = "learned"
    PREFERENCE = "preference"
    CONTEXT = "context"


class Memory(BaseModel):
    """A persisted note with type, content, tags and access metadata."""

    id: str
    type: str
    content: str
    tags: list[str] = Field(default_factory=list)
    created: str
    accessed: str
    access_count: int = 0

    @property
    def project(self) -> str | None:
        return project_from_tags(self.tags)


class SimilarityCandidate(BaseModel):
    """A memory paired with its normalised similarity score."""

    memory: Memory
    score: float = Field(ge=0.0, le=1.0)
