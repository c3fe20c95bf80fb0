"""Embedding gateway tests."""

from __future__ import annotations

import json

import httpx
import pytest

from core.errors import EmbeddingUnavailableError, NoEmbeddingError
from embeddings.base_embedder import embedding_text
from embeddings.providers.hash_provider import HashEmbedder
from embeddings.providers.tei_provider import TEIEmbedder

URL = "http://tei.test/embed"


def build_tei(handler) -> TEIEmbedder:
    return TEIEmbedder(url=URL, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_query_and_document_prefixes() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content)["inputs"])
        return httpx.Response(200, json=[[0.1, 0.2, 0.3]])

    embedder = build_tei(handler)

    assert embedder.embed_query("editor") == [0.1, 0.2, 0.3]
    assert embedder.embed_document("vim rules") == [0.1, 0.2, 0.3]
    assert seen == ["search_query: editor", "search_document: vim rules"]


def test_non_success_status_is_unavailable() -> None:
    embedder = build_tei(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(EmbeddingUnavailableError, match="500"):
        embedder.embed_query("x")


def test_connection_error_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(EmbeddingUnavailableError):
        build_tei(handler).embed_document("x")


@pytest.mark.parametrize("body", [b"[]", b"[[]]", b"{}", b"not json", b'[["a", "b"]]'])
def test_malformed_body_is_no_embedding(body: bytes) -> None:
    embedder = build_tei(lambda request: httpx.Response(200, content=body))

    with pytest.raises(NoEmbeddingError):
        embedder.embed_document("x")


def test_embedding_text_prepends_tags() -> None:
    assert embedding_text(["user", "editor"], "likes vim") == "user editor likes vim"
    assert embedding_text([], "likes vim") == "likes vim"


def test_hash_embedder_is_deterministic_and_normalised() -> None:
    embedder = HashEmbedder(dimension=64)

    first = embedder.embed_document("Likes vim keybindings")
    second = embedder.embed_query("likes VIM keybindings")

    assert first == second
    assert len(first) == 64
    assert sum(v * v for v in first) == pytest.approx(1.0)
    assert embedder.embed_document("") == [0.0] * 64
