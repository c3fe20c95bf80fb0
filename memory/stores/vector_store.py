"""Persistent vector index with cosine k-nearest-neighbour search."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from sqlalchemy import delete, func, select

from memory.schemas import MemoryVectorRecord
from memory.stores.sql_store import SQLStore


class VectorStore:
    """Stores one vector per memory id and ranks by normalised cosine similarity.

    Scores are mapped from cosine [-1, 1] onto [0, 1] as (1 + cos) / 2, so
    1.0 means identical direction.
    """

    def __init__(self, sql_store: SQLStore) -> None:
        self.sql_store = sql_store

    def upsert(self, key: str, vector: Sequence[float]) -> None:
        """Insert or replace the vector stored under key."""
        values = [float(v) for v in vector]
        with self.sql_store.session() as sess:
            row = sess.get(MemoryVectorRecord, key)
            if row is None:
                sess.add(MemoryVectorRecord(memory_id=key, dimension=len(values), vector=values))
            else:
                row.dimension = len(values)
                row.vector = values

    def get(self, key: str) -> list[float] | None:
        with self.sql_store.session() as sess:
            row = sess.get(MemoryVectorRecord, key)
            return list(row.vector) if row is not None else None

    def delete(self, key: str) -> bool:
        """Remove key. Returns whether anything was removed."""
        with self.sql_store.session() as sess:
            result = sess.execute(delete(MemoryVectorRecord).where(MemoryVectorRecord.memory_id == key))
            return bool(result.rowcount)

    def drop_all(self) -> None:
        with self.sql_store.session() as sess:
            sess.execute(delete(MemoryVectorRecord))

    def count(self) -> int:
        with self.sql_store.session() as sess:
            return int(sess.scalar(select(func.count()).select_from(MemoryVectorRecord)) or 0)

    def knn(self, vector: Sequence[float], k: int) -> list[tuple[str, float]]:
        """Return up to k (key, score) pairs in descending score order."""
        if k <= 0:
            return []
        query = np.asarray(vector, dtype=np.float64)
        query_norm = np.linalg.norm(query)
        if query_norm == 0:
            return []

        with self.sql_store.session() as sess:
            rows = sess.execute(
                select(MemoryVectorRecord.memory_id, MemoryVectorRecord.vector).where(
                    MemoryVectorRecord.dimension == len(query)
                )
            ).all()
        if not rows:
            return []

        keys = [row[0] for row in rows]
        matrix = np.asarray([row[1] for row in rows], dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1)
        norms[norms == 0] = 1.0
        cosine = (matrix @ query) / (norms * query_norm)
        scores = np.clip((1.0 + cosine) / 2.0, 0.0, 1.0)

        # Stable sort keeps insertion order among equal scores.
        order = np.argsort(-scores, kind="stable")[:k]
        return [(keys[i], float(scores[i])) for i in order]
