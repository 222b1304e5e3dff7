"""Embedding service module for vector generation via a remote embeddings API."""

from typing import Any, Literal, Optional

import httpx

from core.config import get_settings
from core.exceptions import EmbeddingError
from core.logger import LoggerMixin, get_logger
from core.retry import retrying

logger = get_logger(__name__)

InputType = Literal["query", "document"]


def _is_transient(error: BaseException) -> bool:
    """Network errors, rate limiting and 5xx responses are worth another attempt."""
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500
    return False


class EmbeddingService(LoggerMixin):
    """
    Client for the Voyage embeddings endpoint (MongoDB AI embeddings API).

    Requests carry a bearer token; a per-call key overrides the configured
    one. Query and document texts are embedded with their own input_type so
    the index and the queries live in the same space.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the EmbeddingService.

        Args:
            api_key: Default bearer token (default: EMBEDDING_API_KEY).
            model_name: Embedding model (default: EMBEDDING_MODEL_NAME).
            http_client: Pre-built client, e.g. with a mock transport.
        """
        self._settings = get_settings()
        self._api_key = api_key or self._settings.EMBEDDING_API_KEY
        self._model_name = model_name or self._settings.EMBEDDING_MODEL_NAME
        self._dimension = self._settings.EMBEDDING_DIMENSION
        self._client = http_client

    @property
    def dimension(self) -> int:
        """Output vector dimension requested from the endpoint."""
        return self._dimension

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazily create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.EMBEDDING_TIMEOUT_SECONDS)
        return self._client

    async def _request(
        self,
        texts: list[str],
        input_type: InputType,
        api_key: Optional[str],
    ) -> list[list[float]]:
        key = api_key or self._api_key
        if not key:
            raise EmbeddingError(
                message="Embedding API key is not configured",
                details={"model_name": self._model_name},
            )

        payload: dict[str, Any] = {
            "model": self._model_name,
            "input": texts,
            "input_type": input_type,
            "output_dimension": self._dimension,
        }
        headers = {"Authorization": f"Bearer {key}"}

        try:
            async for attempt in retrying(_is_transient):
                with attempt:
                    response = await self.client.post(
                        self._settings.EMBEDDING_API_URL,
                        json=payload,
                        headers=headers,
                    )
                    response.raise_for_status()
            body = response.json()
            data = sorted(body["data"], key=lambda item: item.get("index", 0))
            vectors = [item["embedding"] for item in data]
        except httpx.HTTPStatusError as e:
            self.logger.error(
                "Embedding request rejected",
                status_code=e.response.status_code,
                text_count=len(texts),
            )
            raise EmbeddingError(
                message=f"Embedding HTTP {e.response.status_code}",
                details={"status_code": e.response.status_code},
            ) from e
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            self.logger.error(
                "Failed to generate embeddings",
                text_count=len(texts),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise EmbeddingError(
                message="Failed to generate embeddings",
                details={"text_count": len(texts), "error": str(e)},
            ) from e

        if len(vectors) != len(texts):
            raise EmbeddingError(
                message="Embedding count does not match input count",
                details={"expected": len(texts), "received": len(vectors)},
            )
        return vectors

    async def embed_query(self, text: str, api_key: Optional[str] = None) -> list[float]:
        """
        Generate the embedding for a single query text.

        Args:
            text: Query string.
            api_key: Optional per-request bearer token.

        Returns:
            list[float]: Embedding vector.

        Raises:
            EmbeddingError: If no key is available or the request fails.
        """
        if not text or not text.strip():
            raise ValueError("Query text cannot be empty")

        vectors = await self._request([text], "query", api_key)
        self.logger.debug("Query embedded", text_length=len(text), embedding_dim=len(vectors[0]))
        return vectors[0]

    async def embed_texts(
        self,
        texts: list[str],
        input_type: InputType = "document",
        api_key: Optional[str] = None,
    ) -> list[list[float]]:
        """
        Generate embeddings for many texts, batched by EMBEDDING_BATCH_SIZE.

        Returns:
            list[list[float]]: One vector per input text, in order.

        Raises:
            EmbeddingError: If any batch fails.
        """
        if not texts:
            return []

        batch_size = self._settings.EMBEDDING_BATCH_SIZE
        embeddings: list[list[float]] = []
        for start in range(0, len(texts), batch_size):
            batch = texts[start:start + batch_size]
            embeddings.extend(await self._request(batch, input_type, api_key))

        self.logger.info(
            "Texts embedded",
            text_count=len(texts),
            embedding_dim=len(embeddings[0]) if embeddings else 0,
        )
        return embeddings

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
