"""Typed memory payload models."""

from memory.types.memory import Memory, MemoryType, SimilarityCandidate
from memory.types.query import MemoryQuery

__all__ = [
    "Memory",
    "MemoryQuery",
    "MemoryType",
    "SimilarityCandidate",
]
