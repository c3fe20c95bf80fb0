"""Multi-step memory workflows: remember, update, merge, forget, prune, reindex."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field

from core.errors import DependencyUnavailableError, DuplicateMemoryError, MemoError, ValidationError
from embeddings.base_embedder import BaseEmbedder, embedding_text
from memory.consolidation.forgetting import DEFAULT_RETENTION_DAYS, ForgettingPolicy, PruneReport
from memory.consolidation.reembedder import Reembedder
from memory.dedup import DedupReport, DeduplicationEngine
from memory.memory_manager import MemoryManager, check_project_tag
from memory.types import Memory

logger = logging.getLogger("memo.lifecycle")

MERGE_SEPARATOR = " | "


@dataclass
class RememberResult:
    memory: Memory
    report: DedupReport | None = None
    embedded: bool = False


@dataclass
class MergeResult:
    memory_id: str
    merged_id: str
    content: str
    added_tags: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    embedded: bool = False


@dataclass
class ReindexReport:
    total: int = 0
    indexed: int = 0
    failures: dict[str, str] = field(default_factory=dict)


class MemoryLifecycle:
    """Composes the store, dedup engine and embedder into user-facing workflows."""

    def __init__(
        self,
        memory_manager: MemoryManager,
        embedder: BaseEmbedder,
        dedup: DeduplicationEngine,
    ) -> None:
        self.memory_manager = memory_manager
        self.embedder = embedder
        self.dedup = dedup
        self.reembedder = Reembedder(memory_manager, embedder)
        self.forgetting = ForgettingPolicy(memory_manager)

    def remember(
        self,
        memory_type: str,
        content: str,
        tags: Sequence[str] = (),
        project: str | None = None,
        force: bool = False,
    ) -> RememberResult:
        """Dedup-check, persist, then embed synchronously.

        Embedding before returning keeps two back-to-back remembers from both
        passing the duplicate check. Raises DuplicateMemoryError when blocked.
        """
        if not content or not content.strip():
            raise ValidationError("content cannot be empty")
        tags = [t.strip() for t in tags if t.strip()]
        for tag in tags:
            check_project_tag(tag)

        report: DedupReport | None = None
        if not force:
            report = self.dedup.check(content, tags)
            if report.blocked:
                raise DuplicateMemoryError(report)

        memory = self.memory_manager.create(memory_type, content, tags, project)
        result = RememberResult(memory=memory, report=report)

        vector = report.vector if report is not None else None
        try:
            if vector is None:
                vector = self.embedder.embed_document(embedding_text(tags, content))
            self.memory_manager.vector_upsert(memory.id, vector)
            result.embedded = True
        except DependencyUnavailableError as exc:
            logger.warning("memory %s saved without embedding (run 'memo reindex' later): %s", memory.id, exc)
        return result

    def update(self, memory_id: str, content: str) -> threading.Thread:
        """Replace content now; refresh the embedding in the background."""
        self.memory_manager.update(memory_id, content)
        return self.reembedder.submit(memory_id)

    def forget(self, memory_id: str) -> None:
        self.memory_manager.delete(memory_id)

    def merge(self, first_id: str, second_id: str, content: str | None = None) -> MergeResult:
        """Fold the second memory into the first. Best effort, not transactional."""
        if first_id == second_id:
            raise ValidationError("cannot merge a memory with itself")
        first = self.memory_manager.fetch(first_id)
        second = self.memory_manager.fetch(second_id)

        merged = content if content and content.strip() else first.content + MERGE_SEPARATOR + second.content
        self.memory_manager.update(first_id, merged)
        result = MergeResult(memory_id=first_id, merged_id=second_id, content=merged)

        for tag in second.tags:
            if tag in first.tags or tag in result.added_tags:
                continue
            try:
                self.memory_manager.add_tag(first_id, tag)
            except MemoError as exc:
                result.failures[f"tag {tag}"] = str(exc)
                continue
            result.added_tags.append(tag)

        try:
            self.memory_manager.delete(second_id)
        except MemoError as exc:
            result.failures[f"delete {second_id}"] = str(exc)

        try:
            self.reembedder.refresh(first_id)
            result.embedded = True
        except MemoError as exc:
            result.failures["embed"] = str(exc)
        return result

    def prune(self, days: int = DEFAULT_RETENTION_DAYS, delete: bool = False) -> PruneReport:
        return self.forgetting.run(days=days, delete=delete)

    def reindex(self) -> ReindexReport:
        """Rebuild the whole vector index from stored tags and content."""
        self.memory_manager.vector_drop_all()
        ids = self.memory_manager.all_ids()
        report = ReindexReport(total=len(ids))
        for memory_id in ids:
            try:
                memory = self.memory_manager.fetch_raw(memory_id)
                vector = self.embedder.embed_document(embedding_text(memory.tags, memory.content))
                self.memory_manager.vector_upsert(memory_id, vector)
            except MemoError as exc:
                logger.info("reindex skipped %s: %s", memory_id, exc)
                report.failures[memory_id] = str(exc)
                continue
            report.indexed += 1
        return report
