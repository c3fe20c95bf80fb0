"""Deterministic offline embedding provider."""

from __future__ import annotations

import hashlib
import math
import re

from embeddings.base_embedder import BaseEmbedder


class HashEmbedder(BaseEmbedder):
    """Hashes tokens into a fixed-size bag-of-words vector.

    Texts that share words land close together, which is enough for
    air-gapped use and tests. Mode prefixes are stripped so query and
    document embeddings of the same words are identical.
    """

    def __init__(self, dimension: int = 768) -> None:
        self.dimension = dimension

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        text = re.sub(r"^search_(query|document): ", "", text)
        return [token for token in re.split(r"[^a-zA-Z0-9]+", text.lower()) if token]

    def _embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in self._tokenize(text):
            digest = hashlib.md5(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimension
            sign = 1.0 if digest[4] % 2 == 0 else -1.0
            vector[bucket] += sign
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return vector
        return [v / norm for v in vector]
