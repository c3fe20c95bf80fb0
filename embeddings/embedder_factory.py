"""Embedding provider factory."""

from __future__ import annotations

from core.policy_runtime import Settings
from embeddings.base_embedder import BaseEmbedder
from embeddings.providers.hash_provider import HashEmbedder
from embeddings.providers.tei_provider import TEIEmbedder


def build_embedder(settings: Settings) -> BaseEmbedder:
    """Build the embedding gateway from settings, defaulting to the TEI service."""
    cfg = settings.embeddings
    if cfg.provider == "hash":
        return HashEmbedder(dimension=cfg.dimension)
    return TEIEmbedder(url=cfg.url)
