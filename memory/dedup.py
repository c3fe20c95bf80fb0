"""Semantic duplicate detection for new memories."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from core.errors import DependencyUnavailableError, NotIndexedError
from embeddings.base_embedder import BaseEmbedder, embedding_text
from memory.memory_manager import MemoryManager
from memory.retrieval import MemoryRetriever
from memory.types import Memory, SimilarityCandidate

logger = logging.getLogger("memo.dedup")

DUPLICATE_THRESHOLD = 0.93
SIMILAR_THRESHOLD = 0.85
NEIGHBOURS = 3
TEXT_FALLBACK_LIMIT = 5


@dataclass
class DedupReport:
    """Outcome of a duplicate check. `vector` is reused by the write path."""

    vector: list[float] | None = None
    duplicates: list[SimilarityCandidate] = field(default_factory=list)
    similar: list[SimilarityCandidate] = field(default_factory=list)
    text_match: Memory | None = None

    @property
    def blocked(self) -> bool:
        return bool(self.duplicates) or self.text_match is not None


def classify(candidates: Sequence[SimilarityCandidate]) -> tuple[list[SimilarityCandidate], list[SimilarityCandidate]]:
    """Split candidates into (duplicate, similar) tiers; the rest are ignored."""
    duplicates: list[SimilarityCandidate] = []
    similar: list[SimilarityCandidate] = []
    for candidate in candidates:
        if candidate.score >= DUPLICATE_THRESHOLD:
            duplicates.append(candidate)
        elif candidate.score >= SIMILAR_THRESHOLD:
            similar.append(candidate)
    return duplicates, similar


class DeduplicationEngine:
    """Checks proposed content against existing memories before a write."""

    def __init__(
        self,
        memory_manager: MemoryManager,
        retriever: MemoryRetriever,
        embedder: BaseEmbedder,
    ) -> None:
        self.memory_manager = memory_manager
        self.retriever = retriever
        self.embedder = embedder

    def check(self, content: str, tags: Sequence[str] = ()) -> DedupReport:
        """Classify neighbours by similarity, falling back to exact text matching."""
        report = DedupReport()
        try:
            report.vector = self.embedder.embed_document(embedding_text(tags, content))
        except DependencyUnavailableError as exc:
            logger.warning("embedding service unavailable, using text search for dedup: %s", exc)

        if report.vector is not None:
            try:
                # Global on purpose: duplicates are detected across projects.
                neighbours = self.retriever.similar(report.vector, limit=NEIGHBOURS)
            except (NotIndexedError, DependencyUnavailableError) as exc:
                logger.warning("vector search failed (%s), falling back to text search", exc)
            else:
                report.duplicates, report.similar = classify(neighbours)

        if report.vector is None or not report.duplicates:
            report.text_match = self._exact_text_match(content)
        return report

    def _exact_text_match(self, content: str) -> Memory | None:
        try:
            candidates = self.memory_manager.text_search(content, limit=TEXT_FALLBACK_LIMIT)
        except DependencyUnavailableError as exc:
            logger.warning("text search for dedup failed: %s", exc)
            return None
        for memory in candidates:
            if memory.content == content:
                return memory
        return None
