"""Voyage AI reranker: calls the /rerank endpoint.

Vector-search candidates are re-scored against the query; the top
``top_n`` above ``score_threshold`` are returned with the relevance score
as their score and the original cosine score kept as ``vector_score``.
"""

import logging
from dataclasses import replace
from typing import Any

import httpx

from app.application.interfaces.reranker import Reranker
from app.domain.entities import ChunkMatch
from app.domain.exceptions import RerankerError

logger = logging.getLogger(__name__)


class VoyageReranker(Reranker):
    """Infrastructure adapter for the Voyage AI rerank API.

    Every failure (HTTP status, transport error, malformed body) surfaces
    as ``RerankerError``.
    """

    candidate_multiplier = 2

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.voyageai.com/v1",
        model: str = "rerank-2",
        score_threshold: float = 0.5,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._score_threshold = score_threshold
        self._http_client = http_client

    @property
    def provider_name(self) -> str:
        return "voyage"

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=30.0)

    async def rerank(self, query: str, matches: list[ChunkMatch], top_n: int) -> list[ChunkMatch]:
        if not matches or top_n <= 0:
            return []

        url = f"{self._base_url}/rerank"
        payload: dict[str, Any] = {
            "query": query,
            "documents": [match.content for match in matches],
            "model": self._model,
            "top_k": min(top_n, len(matches)),
            "truncation": True,
        }

        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                response = await client.post(url, headers=self._get_headers(), json=payload)
            except httpx.HTTPError as exc:
                raise RerankerError(
                    provider=self.provider_name,
                    status_code=503,
                    message=f"{type(exc).__name__}: {exc}",
                ) from exc

            if response.status_code != 200:
                self._raise_provider_error(response)

            ranked = self._parse_ranking(response, candidates=len(matches))
        finally:
            if should_close:
                await client.aclose()

        results = [
            replace(
                matches[index],
                score=score,
                metadata={**matches[index].metadata, "vector_score": matches[index].score},
            )
            for index, score in ranked
            if score >= self._score_threshold
        ][:top_n]
        logger.debug(
            "Reranked %d candidates to %d (model=%s, threshold=%.2f)",
            len(matches),
            len(results),
            self._model,
            self._score_threshold,
        )
        return results

    def _parse_ranking(self, response: httpx.Response, *, candidates: int) -> list[tuple[int, float]]:
        """``(candidate index, relevance score)`` pairs, best first."""
        try:
            data = list(response.json().get("data") or [])
        except ValueError as exc:
            raise RerankerError(
                provider=self.provider_name, status_code=502, message="Response is not JSON"
            ) from exc

        ranked = []
        for item in data:
            index = item.get("index")
            if not isinstance(index, int) or not 0 <= index < candidates:
                raise RerankerError(
                    provider=self.provider_name,
                    status_code=502,
                    message=f"Result index {index!r} outside {candidates} candidates",
                )
            ranked.append((index, float(item.get("relevance_score", 0.0))))

        ranked.sort(key=lambda pair: pair[1], reverse=True)
        return ranked

    def _raise_provider_error(self, response: httpx.Response) -> None:
        try:
            body = response.json()
            message = body.get("detail", response.text) if isinstance(body, dict) else response.text
        except ValueError:
            message = response.text

        logger.error("Rerank API error %d: %s", response.status_code, str(message)[:500])
        raise RerankerError(
            provider=self.provider_name,
            status_code=response.status_code,
            message=str(message)[:500],
        )
