"""Unit tests for the VoyageReranker."""

import json

import httpx
import pytest

from app.domain.entities import ChunkMatch
from app.domain.exceptions import RerankerError
from app.infrastructure.voyage import VoyageReranker


# ── Helpers ──


def _matches(*contents: str) -> list[ChunkMatch]:
    return [
        ChunkMatch(
            chunk_id=f"doc-{i}-chunk-0",
            document_id=f"doc-{i}",
            score=0.9 - i * 0.1,
            content=content,
            topic="unclassified",
            metadata={"start_sequence": 0},
        )
        for i, content in enumerate(contents)
    ]


def _ranking(*pairs: tuple[int, float]) -> dict:
    return {
        "object": "list",
        "data": [{"index": index, "relevance_score": score} for index, score in pairs],
        "model": "rerank-2",
    }


def _reranker(handler, **options) -> VoyageReranker:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return VoyageReranker(api_key="test-key", http_client=client, **options)


# ── Tests ──


@pytest.mark.asyncio
async def test_results_follow_relevance_and_keep_vector_score():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        captured["auth"] = request.headers["Authorization"]
        captured["url"] = str(request.url)
        return httpx.Response(200, json=_ranking((2, 0.95), (0, 0.7)))

    matches = _matches("lunch menu", "budget draft", "budget review")
    result = await _reranker(handler).rerank("budget review", matches, top_n=2)

    assert [m.document_id for m in result] == ["doc-2", "doc-0"]
    assert [m.score for m in result] == [0.95, 0.7]
    assert result[0].metadata == {"start_sequence": 0, "vector_score": pytest.approx(0.7)}
    assert captured["body"] == {
        "query": "budget review",
        "documents": ["lunch menu", "budget draft", "budget review"],
        "model": "rerank-2",
        "top_k": 2,
        "truncation": True,
    }
    assert captured["auth"] == "Bearer test-key"
    assert captured["url"] == "https://api.voyageai.com/v1/rerank"


@pytest.mark.asyncio
async def test_scores_below_threshold_are_dropped():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_ranking((0, 0.8), (1, 0.2)))

    result = await _reranker(handler, score_threshold=0.5).rerank("q", _matches("a", "b"), top_n=2)

    assert [m.document_id for m in result] == ["doc-0"]


@pytest.mark.asyncio
async def test_empty_candidates_make_no_request():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert await _reranker(handler).rerank("q", [], top_n=5) == []


@pytest.mark.asyncio
async def test_api_error_raises_reranker_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"detail": "Invalid API key"})

    with pytest.raises(RerankerError) as exc_info:
        await _reranker(handler).rerank("q", _matches("a"), top_n=1)

    assert exc_info.value.status_code == 401
    assert "Invalid API key" in exc_info.value.message


@pytest.mark.asyncio
async def test_transport_failure_is_a_503():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    with pytest.raises(RerankerError) as exc_info:
        await _reranker(handler).rerank("q", _matches("a"), top_n=1)

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_out_of_range_index_is_a_bad_gateway():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_ranking((4, 0.9)))

    with pytest.raises(RerankerError) as exc_info:
        await _reranker(handler).rerank("q", _matches("a", "b"), top_n=2)

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_non_json_body_is_a_bad_gateway():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(RerankerError) as exc_info:
        await _reranker(handler).rerank("q", _matches("a"), top_n=1)

    assert exc_info.value.status_code == 502
