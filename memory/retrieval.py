"""Similarity retrieval with project-scoped post-filtering."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from core.errors import NotFoundError, NotIndexedError
from core.project import project_tag
from embeddings.base_embedder import BaseEmbedder
from memory.memory_manager import MemoryManager
from memory.types import Memory, SimilarityCandidate

logger = logging.getLogger("memo.retrieval")

# Over-fetch factor when a project filter will discard part of the neighbours.
PROJECT_OVERFETCH = 3


class MemoryRetriever:
    """Runs vector queries and shapes them into ranked candidates."""

    def __init__(self, memory_manager: MemoryManager, embedder: BaseEmbedder) -> None:
        self.memory_manager = memory_manager
        self.embedder = embedder

    def similar(
        self,
        vector: Sequence[float],
        limit: int = 5,
        project: str | None = None,
    ) -> list[SimilarityCandidate]:
        """Return up to `limit` neighbours in native ranking order.

        With a project filter, `limit * 3` neighbours are fetched and those
        outside the project dropped. There is no second round trip, so fewer
        than `limit` results may come back.
        """
        if self.memory_manager.vector_count() == 0:
            raise NotIndexedError("no embeddings found - run 'memo reindex' first")

        fetch_limit = limit * PROJECT_OVERFETCH if project else limit
        wanted_tag = project_tag(project) if project else None

        results: list[SimilarityCandidate] = []
        for memory_id, score in self.memory_manager.vector_query_knn(vector, fetch_limit):
            if len(results) >= limit:
                break
            try:
                memory = self.memory_manager.fetch_raw(memory_id)
            except NotFoundError:
                logger.debug("skipping orphaned vector %s", memory_id)
                continue
            if wanted_tag is not None and wanted_tag not in memory.tags:
                continue
            results.append(SimilarityCandidate(memory=memory, score=score))
        return results

    def search(self, query: str, limit: int = 5, project: str | None = None) -> list[SimilarityCandidate]:
        """Embed a free-text query and run `similar`."""
        vector = self.embedder.embed_query(query)
        return self.similar(vector, limit=limit, project=project)

    def related(self, memory_id: str, limit: int = 5) -> list[SimilarityCandidate]:
        """Return neighbours of a stored memory, excluding the memory itself."""
        vector = self.memory_manager.vector_get(memory_id)
        if vector is None:
            raise NotIndexedError(f"memory not indexed: {memory_id} (run 'memo reindex')")
        candidates = self.similar(vector, limit=limit + 1)
        return [c for c in candidates if c.memory.id != memory_id][:limit]

    def context(self, project: str, limit: int = 10) -> list[Memory]:
        """Return memories scoped to a project."""
        return self.memory_manager.context(project, limit=limit)
