"""Base embedding gateway interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

QUERY_PREFIX = "search_query: "
DOCUMENT_PREFIX = "search_document: "


def embedding_text(tags: Sequence[str], content: str) -> str:
    """Prepend tags to content so they bias the document embedding."""
    if tags:
        return " ".join(tags) + " " + content
    return content


class BaseEmbedder(ABC):
    """Maps text to dense vectors with asymmetric query/document modes."""

    def embed_query(self, text: str) -> list[float]:
        """Embed text that will be used as a search query."""
        return self._embed(QUERY_PREFIX + text)

    def embed_document(self, text: str) -> list[float]:
        """Embed text that will be stored and searched against."""
        return self._embed(DOCUMENT_PREFIX + text)

    @abstractmethod
    def _embed(self, text: str) -> list[float]:
        """Return the embedding for already-prefixed text."""
