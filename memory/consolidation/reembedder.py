"""Background re-embedding after content updates."""

from __future__ import annotations

import logging
import threading

from core.errors import MemoError
from embeddings.base_embedder import BaseEmbedder, embedding_text
from memory.memory_manager import MemoryManager

logger = logging.getLogger("memo.reembedder")


class Reembedder:
    """Refreshes a memory's vector on a detached worker thread.

    Failures are logged and dropped: until the next successful refresh or
    reindex the stored vector may describe the previous content.
    """

    def __init__(self, memory_manager: MemoryManager, embedder: BaseEmbedder) -> None:
        self.memory_manager = memory_manager
        self.embedder = embedder

    def refresh(self, memory_id: str) -> None:
        """Embed the memory's current tags and content and upsert the vector."""
        memory = self.memory_manager.fetch_raw(memory_id)
        vector = self.embedder.embed_document(embedding_text(memory.tags, memory.content))
        self.memory_manager.vector_upsert(memory_id, vector)

    def _refresh_quietly(self, memory_id: str) -> None:
        try:
            self.refresh(memory_id)
        except MemoError as exc:
            logger.debug("background re-embed of %s dropped: %s", memory_id, exc)

    def submit(self, memory_id: str) -> threading.Thread:
        """Start a refresh; non-daemon so a short-lived CLI still lets it finish."""
        worker = threading.Thread(
            target=self._refresh_quietly,
            args=(memory_id,),
            name=f"memo-reembed-{memory_id}",
            daemon=False,
        )
        worker.start()
        return worker
