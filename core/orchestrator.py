"""Top-level application orchestrator."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.policy_runtime import Settings, build_settings, load_effective_config
from embeddings.base_embedder import BaseEmbedder
from embeddings.embedder_factory import build_embedder
from memory.dedup import DeduplicationEngine
from memory.lifecycle import MemoryLifecycle
from memory.memory_manager import MemoryManager
from memory.retrieval import MemoryRetriever
from memory.stores.sql_store import SQLStore


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    settings: Settings
    memory: MemoryManager
    embedder: BaseEmbedder
    retriever: MemoryRetriever
    dedup: DeduplicationEngine
    lifecycle: MemoryLifecycle


class Orchestrator:
    """Creates and wires runtime components for CLI use."""

    def __init__(
        self,
        root: Path | None = None,
        environ: Mapping[str, str] | None = None,
        embedder: BaseEmbedder | None = None,
    ) -> None:
        default_root = Path(__file__).resolve().parents[1]
        self.root = (root or default_root).resolve()
        self.environ = os.environ if environ is None else environ
        self._embedder = embedder

    def build(self) -> RuntimeBundle:
        config = load_effective_config(self.root, self.environ)
        settings = build_settings(config)

        sql_store = SQLStore(settings.db_path)
        memory = MemoryManager(sql_store=sql_store)
        embedder = self._embedder or build_embedder(settings)
        retriever = MemoryRetriever(memory_manager=memory, embedder=embedder)
        dedup = DeduplicationEngine(memory_manager=memory, retriever=retriever, embedder=embedder)
        lifecycle = MemoryLifecycle(memory_manager=memory, embedder=embedder, dedup=dedup)

        return RuntimeBundle(
            config=config,
            settings=settings,
            memory=memory,
            embedder=embedder,
            retriever=retriever,
            dedup=dedup,
            lifecycle=lifecycle,
        )