"""Text Embeddings Inference HTTP provider."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from core.errors import EmbeddingUnavailableError, NoEmbeddingError
from embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger("memo.embeddings.tei")

_REQUEST_TIMEOUT_SECONDS = 30.0


class TEIEmbedder(BaseEmbedder):
    """Calls a TEI-compatible `/embed` endpoint, one input per request."""

    def __init__(self, url: str, client: httpx.Client | None = None) -> None:
        self.url = url
        self._client = client

    def _post(self, payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return self._client.post(self.url, json=payload)
        return httpx.post(self.url, json=payload, timeout=_REQUEST_TIMEOUT_SECONDS)

    def _embed(self, text: str) -> list[float]:
        try:
            resp = self._post({"inputs": text})
        except httpx.HTTPError as exc:
            raise EmbeddingUnavailableError(f"embeddings service unavailable: {exc}") from exc

        if not resp.is_success:
            raise EmbeddingUnavailableError(f"embeddings service error: {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise NoEmbeddingError("no embedding returned: malformed response body") from exc
        return self._first_vector(body)

    @staticmethod
    def _first_vector(body: Any) -> list[float]:
        # TEI answers [[float, ...]] for a single input.
        if not isinstance(body, list) or not body:
            raise NoEmbeddingError("no embedding returned")
        first = body[0]
        if not isinstance(first, list) or not first:
            raise NoEmbeddingError("no embedding returned")
        try:
            return [float(value) for value in first]
        except (TypeError, ValueError) as exc:
            raise NoEmbeddingError("no embedding returned: non-numeric values") from exc
