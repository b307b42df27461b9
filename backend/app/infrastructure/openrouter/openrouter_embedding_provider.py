"""OpenRouter-based embedding provider — calls the /embeddings endpoint.

Any OpenAI-compatible ``/embeddings`` API works (OpenRouter by default).
Default model: google/gemini-embedding-001, truncated to the configured
dimensionality.
"""

import logging
from typing import Any

import httpx

from app.application.interfaces.embedding_provider import EmbeddingProvider
from app.domain.exceptions import EmbeddingProviderError

logger = logging.getLogger(__name__)

# nomic-embed-text models require a task prefix; Gemini models do not.
_NOMIC_DOCUMENT_PREFIX = "search_document: "
_NOMIC_QUERY_PREFIX = "search_query: "


class OpenRouterEmbeddingProvider(EmbeddingProvider):
    """Infrastructure adapter — generates embeddings via the OpenRouter /embeddings API.

    Every failure (HTTP status, transport error, malformed body) surfaces
    as ``EmbeddingProviderError`` so the caller's retry policy applies.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        app_name: str = "Transcript Knowledge Index",
        model: str = "google/gemini-embedding-001",
        model_dimensions: int = 768,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._app_name = app_name
        self._model = model
        self._dimensions = model_dimensions
        self._http_client = http_client

    @property
    def provider_name(self) -> str:
        return "openrouter"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "X-Title": self._app_name,
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=120.0)

    @property
    def _is_nomic(self) -> bool:
        """Whether the configured model is a nomic model requiring task prefixes."""
        return "nomic" in self._model.lower()

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Generate document embeddings for a batch of texts, in input order."""
        return await self._embed(texts, query_mode=False)

    async def generate_query_embedding(self, query: str) -> list[float]:
        """Generate a single embedding for a search query."""
        results = await self._embed([query], query_mode=True)
        return results[0]

    async def _embed(self, texts: list[str], *, query_mode: bool) -> list[list[float]]:
        if not texts:
            return []

        # Apply nomic task prefix if needed
        if self._is_nomic:
            prefix = _NOMIC_QUERY_PREFIX if query_mode else _NOMIC_DOCUMENT_PREFIX
            input_texts = [f"{prefix}{t}" for t in texts]
        else:
            input_texts = texts

        url = f"{self._base_url}/embeddings"
        payload: dict[str, Any] = {
            "model": self._model,
            "input": input_texts,
            "dimensions": self._dimensions,
        }

        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                response = await client.post(url, headers=self._get_headers(), json=payload)
            except httpx.HTTPError as exc:
                raise EmbeddingProviderError(
                    provider=self.provider_name,
                    status_code=503,
                    message=f"{type(exc).__name__}: {exc}",
                ) from exc

            if response.status_code != 200:
                self._raise_provider_error(response)

            result = self._parse_embeddings(response, expected=len(texts))
            logger.debug(
                "Generated %d embeddings (model=%s, dims=%d)",
                len(result),
                self._model,
                len(result[0]) if result else 0,
            )
            return result

        finally:
            if should_close:
                await client.aclose()

    def _parse_embeddings(self, response: httpx.Response, *, expected: int) -> list[list[float]]:
        try:
            embeddings_data = list(response.json().get("data") or [])
        except ValueError as exc:
            raise EmbeddingProviderError(
                provider=self.provider_name, status_code=502, message="Response is not JSON"
            ) from exc

        if len(embeddings_data) != expected:
            raise EmbeddingProviderError(
                provider=self.provider_name,
                status_code=502,
                message=f"Expected {expected} embeddings, got {len(embeddings_data)}",
            )

        # Sort by index to ensure correct ordering
        embeddings_data.sort(key=lambda x: x.get("index", 0))
        return [item["embedding"] for item in embeddings_data]

    def _raise_provider_error(self, response: httpx.Response) -> None:
        """Raise EmbeddingProviderError from a non-200 httpx Response."""
        try:
            error = response.json().get("error", {})
            message = error.get("message", response.text) if isinstance(error, dict) else str(error)
        except ValueError:
            message = response.text

        logger.error("Embedding API error %d: %s", response.status_code, message[:500])
        raise EmbeddingProviderError(
            provider=self.provider_name,
            status_code=response.status_code,
            message=message[:500],
        )
