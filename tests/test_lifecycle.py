"""Remember, update, merge and reindex workflow tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import DuplicateMemoryError, EmbeddingUnavailableError, NoEmbeddingError, NotFoundError, NotIndexedError, ValidationError
from embeddings.base_embedder import BaseEmbedder
from memory.dedup import DeduplicationEngine
from memory.lifecycle import MERGE_SEPARATOR, MemoryLifecycle
from memory.memory_manager import MemoryManager
from memory.retrieval import MemoryRetriever
from memory.stores.sql_store import SQLStore

BASE = [1.0, 0.0, 0.0]
OTHER = [0.0, 1.0, 0.0]
DISTINCT = [0.0, 0.0, 1.0]


class FakeEmbedder(BaseEmbedder):
    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        available: bool = True,
        failing: tuple[str, ...] = (),
    ) -> None:
        self.vectors = vectors or {}
        self.available = available
        self.failing = failing
        self.calls: list[str] = []

    def _embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if not self.available:
            raise EmbeddingUnavailableError("embeddings service unavailable: connection refused")
        if any(marker in text for marker in self.failing):
            raise NoEmbeddingError("no embedding returned")
        for key, vector in self.vectors.items():
            if key in text:
                return vector
        return DISTINCT


def build_lifecycle(tmp_path: Path, embedder: BaseEmbedder) -> tuple[MemoryManager, MemoryLifecycle, MemoryRetriever]:
    store = SQLStore(db_path=tmp_path / "memo.db")
    store.create_all()
    memory = MemoryManager(sql_store=store)
    retriever = MemoryRetriever(memory_manager=memory, embedder=embedder)
    dedup = DeduplicationEngine(memory_manager=memory, retriever=retriever, embedder=embedder)
    return memory, MemoryLifecycle(memory_manager=memory, embedder=embedder, dedup=dedup), retriever


def test_blocked_remember_persists_nothing(tmp_path: Path) -> None:
    memory, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder({"vim": BASE}))
    first = lifecycle.remember("preference", "vim everywhere", ["editor"], project="demo")
    assert first.embedded

    with pytest.raises(DuplicateMemoryError) as excinfo:
        lifecycle.remember("preference", "vim everywhere please", ["editor"], project="demo")

    assert [d.memory.id for d in excinfo.value.report.duplicates] == [first.memory.id]
    assert memory.all_ids() == [first.memory.id]
    assert memory.vector_count() == 1


def test_force_skips_the_duplicate_check(tmp_path: Path) -> None:
    embedder = FakeEmbedder({"vim": BASE})
    memory, lifecycle, _ = build_lifecycle(tmp_path, embedder)
    lifecycle.remember("preference", "vim everywhere", [], project="demo")
    embedder.calls.clear()

    forced = lifecycle.remember("preference", "vim everywhere", [], project="demo", force=True)

    assert forced.report is None
    assert forced.embedded
    assert len(memory.all_ids()) == 2
    assert embedder.calls == ["search_document: vim everywhere"]


def test_remember_reuses_the_dedup_vector(tmp_path: Path) -> None:
    embedder = FakeEmbedder({"tabs": OTHER})
    memory, lifecycle, _ = build_lifecycle(tmp_path, embedder)

    result = lifecycle.remember("preference", "tabs over spaces", ["style"], project="demo")

    assert len(embedder.calls) == 1
    assert embedder.calls[0] == "search_document: style tabs over spaces"
    assert result.memory.tags == ["project:demo", "style"]
    assert memory.vector_get(result.memory.id) == OTHER


def test_remember_survives_embedding_outage(tmp_path: Path) -> None:
    memory, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder(available=False))

    result = lifecycle.remember("fact", "CI runs on push", [], project="demo")

    assert not result.embedded
    assert memory.fetch_raw(result.memory.id).content == "CI runs on push"
    assert memory.vector_count() == 0


def test_remember_rejects_empty_content(tmp_path: Path) -> None:
    memory, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder())

    with pytest.raises(ValidationError):
        lifecycle.remember("fact", "   ", [], project="demo")
    assert memory.all_ids() == []


def test_update_refreshes_vector_in_background(tmp_path: Path) -> None:
    memory, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder({"old": BASE, "new": OTHER}))
    saved = lifecycle.remember("fact", "old content", [], project="demo").memory
    assert memory.vector_get(saved.id) == BASE

    worker = lifecycle.update(saved.id, "new content")
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert memory.fetch_raw(saved.id).content == "new content"
    assert memory.vector_get(saved.id) == OTHER


def test_update_missing_memory_raises(tmp_path: Path) -> None:
    _, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder())

    with pytest.raises(NotFoundError):
        lifecycle.update("deadbeef", "anything")


def test_forget_removes_document_and_vector(tmp_path: Path) -> None:
    memory, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder())
    saved = lifecycle.remember("fact", "temporary", [], project="demo").memory

    lifecycle.forget(saved.id)

    with pytest.raises(NotFoundError):
        memory.fetch_raw(saved.id)
    assert memory.vector_get(saved.id) is None


def test_merge_concatenates_and_unions_tags(tmp_path: Path) -> None:
    memory, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder())
    first = memory.create("preference", "Likes tea", ["drink"], "demo")
    second = memory.create("preference", "Likes green tea", ["drink", "green"], "demo")

    result = lifecycle.merge(first.id, second.id)

    assert result.content == "Likes tea" + MERGE_SEPARATOR + "Likes green tea"
    assert result.added_tags == ["green"]
    assert result.failures == {}
    assert result.embedded
    merged = memory.fetch_raw(first.id)
    assert merged.content == result.content
    assert merged.tags == ["project:demo", "drink", "green"]
    with pytest.raises(NotFoundError):
        memory.fetch_raw(second.id)
    assert memory.vector_get(first.id) is not None


def test_merge_with_content_override(tmp_path: Path) -> None:
    memory, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder())
    first = memory.create("fact", "A", [], "demo")
    second = memory.create("fact", "B", [], "demo")

    result = lifecycle.merge(first.id, second.id, "A and B together")

    assert memory.fetch_raw(first.id).content == "A and B together"
    assert result.content == "A and B together"


def test_merge_across_projects_records_tag_failure(tmp_path: Path) -> None:
    memory, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder())
    first = memory.create("fact", "A", [], "demo")
    second = memory.create("fact", "B", [], "other")

    result = lifecycle.merge(first.id, second.id)

    assert "tag project:other" in result.failures
    assert memory.fetch_raw(first.id).tags == ["project:demo"]
    with pytest.raises(NotFoundError):
        memory.fetch_raw(second.id)


def test_merge_rejects_same_or_missing_ids(tmp_path: Path) -> None:
    memory, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder())
    first = memory.create("fact", "A", [], "demo")

    with pytest.raises(ValidationError):
        lifecycle.merge(first.id, first.id)
    with pytest.raises(NotFoundError):
        lifecycle.merge(first.id, "deadbeef")
    assert memory.fetch_raw(first.id).content == "A"


def test_reindex_rebuilds_every_vector(tmp_path: Path) -> None:
    memory, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder(failing=("broken",)))
    good = memory.create("fact", "fine", [], "demo")
    other = memory.create("fact", "also fine", [], "")
    bad = memory.create("fact", "broken entry", [], "demo")
    memory.vector_upsert("0rphan00", BASE)

    report = lifecycle.reindex()

    assert report.total == 3
    assert report.indexed == 2
    assert list(report.failures) == [bad.id]
    assert memory.vector_count() == 2
    assert memory.vector_get("0rphan00") is None
    assert memory.vector_get(good.id) is not None
    assert memory.vector_get(other.id) is not None
    assert memory.fetch_raw(good.id).access_count == 0


def test_reindex_makes_unembedded_memories_related(tmp_path: Path) -> None:
    memory, lifecycle, retriever = build_lifecycle(tmp_path, FakeEmbedder({"alpha": BASE, "beta": BASE}))
    first = memory.create("fact", "alpha note", ["a", "b"], "demo")
    second = memory.create("fact", "beta note", [], "demo")

    with pytest.raises(NotIndexedError, match=first.id):
        retriever.related(first.id)

    lifecycle.reindex()
    related = retriever.related(first.id, limit=5)

    assert [c.memory.id for c in related] == [second.id]
    assert related[0].score == pytest.approx(1.0)


def test_remember_rejects_nameless_project_tag_before_embedding(tmp_path: Path) -> None:
    embedder = FakeEmbedder()
    memory, lifecycle, _ = build_lifecycle(tmp_path, embedder)

    with pytest.raises(ValidationError, match="project tags need a name"):
        lifecycle.remember("fact", "Scoped note", ["project:"], project="demo")

    assert embedder.calls == []
    assert memory.all_ids() == []


def test_merge_keeps_at_most_one_project_tag(tmp_path: Path) -> None:
    memory, lifecycle, _ = build_lifecycle(tmp_path, FakeEmbedder())
    global_note = memory.create("fact", "A", ["shared"], None)
    scoped = memory.create("fact", "B", [], "demo")
    other = memory.create("fact", "C", [], "other")

    lifecycle.merge(global_note.id, scoped.id)
    result = lifecycle.merge(global_note.id, other.id)

    tags = memory.fetch_raw(global_note.id).tags
    assert tags == ["shared", "project:demo"]
    assert sum(tag.startswith("project:") for tag in tags) == 1
    assert "tag project:other" in result.failures
