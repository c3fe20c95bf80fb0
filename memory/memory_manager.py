"""Memory store adapter over the SQL index store and the vector index."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from sqlalchemy import Select, case, func, or_, select, update

from core.errors import ConflictError, MemoError, NotFoundError, ValidationError
from core.identity import new_id, now
from core.project import PROJECT_PREFIX, has_project_prefix, is_project_tag, project_from_tags, project_tag
from memory.schemas import MemoryRecord, MemoryTagRecord
from memory.stores.sql_store import SQLStore
from memory.stores.vector_store import VectorStore
from memory.types import Memory, MemoryQuery, MemoryType

logger = logging.getLogger("memo.store")

_ID_ATTEMPTS = 8


@dataclass
class SearchEnvelope:
    """Raw result of one index-store query, tagged by the shape requested."""

    kind: Literal["documents", "attributes", "count"]
    total: int = 0
    rows: list[Any] = field(default_factory=list)


@dataclass
class SearchResult:
    """Normalised search result: whole memories and/or tag attributes."""

    total: int
    memories: list[Memory] = field(default_factory=list)
    tags_by_id: dict[str, list[str]] = field(default_factory=dict)


def check_project_tag(tag: str) -> None:
    """Reject `project:` with no name; it would pass as a second project tag."""
    if has_project_prefix(tag) and not is_project_tag(tag):
        raise ValidationError(f"invalid tag: {tag!r} (project tags need a name)")


def normalize_tags(tags: Sequence[str], project: str | None) -> list[str]:
    """Strip, dedupe and order tags, keeping at most one project tag first."""
    result: list[str] = [project_tag(project)] if project else []
    has_project = bool(project)
    for raw in tags:
        tag = raw.strip()
        if not tag or tag in result:
            continue
        check_project_tag(tag)
        if is_project_tag(tag):
            if has_project:
                logger.warning("ignoring extra project tag %r", tag)
                continue
            has_project = True
        result.append(tag)
    return result


class MemoryManager:
    """CRUD, filtering and vector operations for memories."""

    def __init__(self, sql_store: SQLStore, vector_store: VectorStore | None = None) -> None:
        self.sql_store = sql_store
        self.sql_store.create_all()
        self.vectors = vector_store or VectorStore(sql_store)

    def init_index(self) -> int:
        """Rebuild the secondary indexes without touching documents."""
        return self.sql_store.rebuild_indexes()

    def create(
        self,
        memory_type: str,
        content: str,
        tags: Sequence[str] = (),
        project: str | None = None,
    ) -> Memory:
        """Persist a new memory, prefixing the project tag unless project is empty."""
        if not memory_type or not memory_type.strip():
            raise ValidationError("type cannot be empty")
        if not content or not content.strip():
            raise ValidationError("content cannot be empty")

        all_tags = normalize_tags(tags, project)
        ts = now()
        with self.sql_store.session() as sess:
            row = MemoryRecord(
                id=self._unused_id(sess),
                type=memory_type.strip(),
                content=content,
                created=ts,
                accessed=ts,
                access_count=0,
            )
            row.tags = [MemoryTagRecord(tag=tag, position=pos) for pos, tag in enumerate(all_tags)]
            sess.add(row)
            sess.flush()
            return self._to_memory(row)

    def fetch(self, memory_id: str) -> Memory:
        """Return a memory and bump its access stats.

        The returned snapshot is taken before the increment.
        """
        with self.sql_store.session() as sess:
            row = sess.get(MemoryRecord, memory_id)
            if row is None:
                raise NotFoundError(memory_id)
            snapshot = self._to_memory(row)
            sess.execute(
                update(MemoryRecord)
                .where(MemoryRecord.id == memory_id)
                .values(access_count=MemoryRecord.access_count + 1, accessed=now())
            )
        return snapshot

    def fetch_raw(self, memory_id: str) -> Memory:
        """Return a memory without touching access stats."""
        with self.sql_store.session() as sess:
            row = sess.get(MemoryRecord, memory_id)
            if row is None:
                raise NotFoundError(memory_id)
            return self._to_memory(row)

    def update(self, memory_id: str, content: str) -> None:
        """Replace content. The existence check goes through `fetch`."""
        if not content or not content.strip():
            raise ValidationError("content cannot be empty")
        self.fetch(memory_id)
        with self.sql_store.session() as sess:
            result = sess.execute(
                update(MemoryRecord).where(MemoryRecord.id == memory_id).values(content=content)
            )
            if not result.rowcount:
                raise NotFoundError(memory_id)

    def add_tag(self, memory_id: str, tag: str) -> None:
        """Append a tag. Existing tags and second project tags are conflicts."""
        tag = tag.strip()
        if not tag:
            raise ValidationError("tag cannot be empty")
        check_project_tag(tag)
        with self.sql_store.session() as sess:
            row = sess.get(MemoryRecord, memory_id)
            if row is None:
                raise NotFoundError(memory_id)
            existing = row.tag_names
            if tag in existing:
                raise ConflictError(f"tag already exists: {tag}")
            current_project = project_from_tags(existing)
            if is_project_tag(tag) and current_project is not None:
                raise ConflictError(f"memory already belongs to project: {current_project}")
            position = max((t.position for t in row.tags), default=-1) + 1
            row.tags.append(MemoryTagRecord(tag=tag, position=position))

    def delete(self, memory_id: str) -> None:
        """Delete the document, then best-effort its vector entry."""
        with self.sql_store.session() as sess:
            row = sess.get(MemoryRecord, memory_id)
            if row is None:
                raise NotFoundError(memory_id)
            sess.delete(row)
        try:
            self.vectors.delete(memory_id)
        except MemoError as exc:
            logger.warning("vector entry for %s not removed: %s", memory_id, exc)

    def list_memories(self, query: MemoryQuery, limit: int = 100, offset: int = 0) -> list[Memory]:
        """Return memories matching a structured query, newest first."""
        return self._normalize(self._search(query, limit=limit, offset=offset)).memories

    def list_by_filter(
        self,
        type_filter: str | None = None,
        tag_filter: str | None = None,
        limit: int = 100,
        project: str | None = None,
    ) -> list[Memory]:
        return self.list_memories(MemoryQuery.from_filters(type_filter, tag_filter, project), limit=limit)

    def text_search(self, query: str, limit: int = 10) -> list[Memory]:
        """Match every query term against content; exact content matches rank first."""
        if not query.strip():
            raise ValidationError("query cannot be empty")
        envelope = self._search(MemoryQuery.for_text(query), limit=limit, exact_first=query)
        return self._normalize(envelope).memories

    def context(self, project: str, limit: int = 10) -> list[Memory]:
        """Return memories tagged with the given project."""
        return self.list_memories(MemoryQuery(project=project), limit=limit)

    def all_ids(self) -> list[str]:
        with self.sql_store.session() as sess:
            return list(sess.scalars(select(MemoryRecord.id).order_by(MemoryRecord.created, MemoryRecord.id)))

    def all_memories(self) -> list[Memory]:
        with self.sql_store.session() as sess:
            rows = sess.scalars(select(MemoryRecord).order_by(MemoryRecord.created, MemoryRecord.id))
            return [self._to_memory(row) for row in rows]

    def stats(self) -> dict[str, int]:
        """Count memories per recognised type, plus the total."""
        stats: dict[str, int] = {}
        for memory_type in MemoryType:
            envelope = self._search(MemoryQuery(type=memory_type.value), returning="count")
            stats[memory_type.value] = self._normalize(envelope).total
        stats["total"] = self._normalize(self._search(MemoryQuery(), returning="count")).total
        return stats

    def projects(self) -> dict[str, int]:
        """Return memory counts keyed by project name."""
        query = MemoryQuery(tag_prefixes=[PROJECT_PREFIX])
        result = self._normalize(self._search(query, limit=None, returning="attributes"))
        counts: Counter[str] = Counter()
        for tags in result.tags_by_id.values():
            name = project_from_tags(tags)
            if name is not None:
                counts[name] += 1
        return dict(counts)

    def vector_upsert(self, memory_id: str, vector: Sequence[float]) -> None:
        self.vectors.upsert(memory_id, vector)

    def vector_query_knn(self, vector: Sequence[float], k: int) -> list[tuple[str, float]]:
        return self.vectors.knn(vector, k)

    def vector_get(self, memory_id: str) -> list[float] | None:
        return self.vectors.get(memory_id)

    def vector_delete(self, memory_id: str) -> bool:
        return self.vectors.delete(memory_id)

    def vector_drop_all(self) -> None:
        self.vectors.drop_all()

    def vector_count(self) -> int:
        return self.vectors.count()

    def _unused_id(self, sess: Any) -> str:
        for _ in range(_ID_ATTEMPTS):
            candidate = new_id()
            if sess.get(MemoryRecord, candidate) is None:
                return candidate
        raise ConflictError("could not allocate a free memory id")

    @staticmethod
    def _apply_query(stmt: Select[Any], query: MemoryQuery) -> Select[Any]:
        """Translate a MemoryQuery into SQL filters. The only place this happens."""
        if query.type:
            stmt = stmt.where(MemoryRecord.type == query.type)
        if query.has_tag_filter:
            conditions = []
            if query.tags:
                conditions.append(MemoryTagRecord.tag.in_(query.tags))
            for prefix in query.tag_prefixes:
                conditions.append(MemoryTagRecord.tag.startswith(prefix, autoescape=True))
            stmt = stmt.where(MemoryRecord.tags.any(or_(*conditions)))
        if query.project_tag:
            stmt = stmt.where(MemoryRecord.tags.any(MemoryTagRecord.tag == query.project_tag))
        for term in query.text:
            stmt = stmt.where(MemoryRecord.content.icontains(term, autoescape=True))
        return stmt

    def _search(
        self,
        query: MemoryQuery,
        limit: int | None = 100,
        offset: int = 0,
        returning: Literal["documents", "attributes", "count"] = "documents",
        exact_first: str | None = None,
    ) -> SearchEnvelope:
        with self.sql_store.session() as sess:
            if returning == "count":
                stmt = self._apply_query(select(func.count(MemoryRecord.id)), query)
                return SearchEnvelope(kind="count", total=int(sess.scalar(stmt) or 0))

            ids = self._apply_query(select(MemoryRecord.id), query)
            if exact_first is not None:
                ids = ids.order_by(case((MemoryRecord.content == exact_first, 0), else_=1))
            ids = ids.order_by(MemoryRecord.created.desc(), MemoryRecord.id).offset(offset)
            if limit is not None:
                ids = ids.limit(limit)
            matched = list(sess.scalars(ids))

            if returning == "attributes":
                rows = sess.execute(
                    select(MemoryTagRecord.memory_id, MemoryTagRecord.tag)
                    .where(MemoryTagRecord.memory_id.in_(matched))
                    .order_by(MemoryTagRecord.memory_id, MemoryTagRecord.position)
                ).all()
                return SearchEnvelope(kind="attributes", total=len(matched), rows=[tuple(r) for r in rows])

            by_id = {
                row.id: row
                for row in sess.scalars(select(MemoryRecord).where(MemoryRecord.id.in_(matched)))
            }
            docs = [self._to_memory(by_id[memory_id]) for memory_id in matched if memory_id in by_id]
            return SearchEnvelope(kind="documents", total=len(docs), rows=docs)

    @staticmethod
    def _normalize(envelope: SearchEnvelope) -> SearchResult:
        """Collapse any envelope shape into a SearchResult."""
        if envelope.kind == "count":
            return SearchResult(total=envelope.total)
        if envelope.kind == "attributes":
            tags_by_id: dict[str, list[str]] = {}
            for memory_id, tag in envelope.rows:
                tags_by_id.setdefault(memory_id, []).append(tag)
            return SearchResult(total=envelope.total, tags_by_id=tags_by_id)
        return SearchResult(
            total=envelope.total,
            memories=list(envelope.rows),
            tags_by_id={m.id: list(m.tags) for m in envelope.rows},
        )

    @staticmethod
    def _to_memory(row: MemoryRecord) -> Memory:
        return Memory(
            id=row.id,
            type=row.type,
            content=row.content,
            tags=row.tag_names,
            created=row.created,
            accessed=row.accessed,
            access_count=row.access_count,
        )
