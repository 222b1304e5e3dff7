"""Qdrant vector index of statute articles (one point per article)."""

import uuid
from typing import Any, NoReturn, Optional

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    SearchParams,
    VectorParams,
)

from core.config import get_settings
from core.exceptions import QdrantError, SearchError
from core.logger import LoggerMixin, get_logger
from core.retry import retrying
from models.schema import LawArticle

logger = get_logger(__name__)


def point_id(record_id: str) -> str:
    """Deterministic Qdrant point id for an article record id."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, record_id))


class VectorDB(LoggerMixin):
    """
    Article embeddings in a Qdrant collection.

    The payload mirrors the article fields, so a vector hit is a complete
    LawArticle and never needs a second article-store lookup. Payload
    indexes on pcode/nature/law_name back the equality filters used to
    scope a search to one statute.
    """

    DISTANCE_METRIC: Distance = Distance.COSINE

    # Keyword payload indexes; also the only keys search() filters on
    FILTERABLE_FIELDS: tuple[str, ...] = ("pcode", "nature", "law_name")

    def __init__(
        self,
        client: Optional[AsyncQdrantClient] = None,
        collection_name: Optional[str] = None,
        vector_size: Optional[int] = None,
    ) -> None:
        """Initialize VectorDB; the Qdrant client is created on first use."""
        self._settings = get_settings()
        self._client = client
        self.collection_name = collection_name or self._settings.QDRANT_COLLECTION_NAME
        self.vector_size = vector_size or self._settings.EMBEDDING_DIMENSION

    @property
    def client(self) -> AsyncQdrantClient:
        """
        Lazily initialize and return Qdrant client.

        Raises:
            QdrantError: If the client cannot be configured.
        """
        if self._client is None:
            try:
                self._client = AsyncQdrantClient(
                    url=self._settings.QDRANT_URL,
                    api_key=self._settings.QDRANT_API_KEY,
                    timeout=self._settings.QDRANT_TIMEOUT_SECONDS,
                )
            except Exception as e:
                self._fail("Qdrant client setup", e, url=self._settings.QDRANT_URL)
            self.logger.info("Qdrant client initialized", url=self._settings.QDRANT_URL)
        return self._client

    def _fail(
        self,
        operation: str,
        error: Exception,
        error_class: type[Exception] = QdrantError,
        **details: Any,
    ) -> NoReturn:
        self.logger.error(
            f"{operation} failed",
            collection=self.collection_name,
            error=str(error),
            error_type=type(error).__name__,
            **details,
        )
        raise error_class(
            message=f"{operation} failed",
            details={"collection": self.collection_name, "error": str(error), **details},
        ) from error

    # =========================================================================
    # Collection management
    # =========================================================================

    async def ensure_collection(self) -> None:
        """
        Create the collection if missing, then make sure the payload indexes exist.

        Raises:
            QdrantError: If the collection cannot be created.
        """
        client = self.client
        try:
            created = not await client.collection_exists(self.collection_name)
            if created:
                await client.create_collection(
                    collection_name=self.collection_name,
                    vectors_config=VectorParams(size=self.vector_size, distance=self.DISTANCE_METRIC),
                )
        except Exception as e:
            self._fail("Collection setup", e, vector_size=self.vector_size)

        self.logger.info(
            "Collection ready",
            collection=self.collection_name,
            created=created,
            vector_size=self.vector_size,
        )

        for field_name in self.FILTERABLE_FIELDS:
            try:
                await client.create_payload_index(
                    collection_name=self.collection_name,
                    field_name=field_name,
                    field_schema=PayloadSchemaType.KEYWORD,
                )
            except Exception as e:
                # Existing indexes are reported as errors by some server versions
                self.logger.warning("Payload index not created", field=field_name, error=str(e))

    async def get_collection_info(self) -> dict[str, Any]:
        """Point count, status and vector configuration of the collection."""
        try:
            info = await self.client.get_collection(self.collection_name)
        except Exception as e:
            self._fail("Collection info", e)
        return {
            "name": self.collection_name,
            "points_count": info.points_count,
            "status": str(info.status),
            "vector_size": self.vector_size,
            "distance": str(self.DISTANCE_METRIC),
        }

    async def delete_collection(self) -> bool:
        """Drop the collection (used by a full re-index)."""
        try:
            await self.client.delete_collection(self.collection_name)
        except Exception as e:
            self._fail("Collection delete", e)
        self.logger.info("Collection deleted", collection=self.collection_name)
        return True

    # =========================================================================
    # Indexing
    # =========================================================================

    @staticmethod
    def _article_to_point(article: LawArticle, vector: list[float]) -> PointStruct:
        payload = article.model_dump(by_alias=True, exclude={"score"}, exclude_none=True)
        return PointStruct(id=point_id(article.id), vector=vector, payload=payload)

    async def upsert_articles(
        self,
        articles: list[LawArticle],
        vectors: list[list[float]],
        batch_size: int = 100,
    ) -> int:
        """
        Upsert articles with their embeddings; re-upserting an article replaces its point.

        Returns:
            int: Number of points written.

        Raises:
            ValueError: If articles and vectors differ in length.
            QdrantError: If a write fails.
        """
        if len(articles) != len(vectors):
            raise ValueError(f"Got {len(articles)} articles but {len(vectors)} embeddings")
        if not articles:
            return 0

        points = [self._article_to_point(a, v) for a, v in zip(articles, vectors)]
        written = 0
        for start in range(0, len(points), batch_size):
            batch = points[start:start + batch_size]
            try:
                await self.client.upsert(collection_name=self.collection_name, points=batch, wait=True)
            except Exception as e:
                self._fail("Article upsert", e, written=written, batch_size=len(batch))
            written += len(batch)

        self.logger.debug("Articles upserted", collection=self.collection_name, count=written)
        return written

    # =========================================================================
    # Search
    # =========================================================================

    def _build_filter(self, filters: Optional[dict[str, Any]] = None) -> Optional[Filter]:
        """AND of exact matches; unknown keys and None values are dropped."""
        conditions = [
            FieldCondition(key=key, match=MatchValue(value=value))
            for key, value in (filters or {}).items()
            if key in self.FILTERABLE_FIELDS and value is not None
        ]
        return Filter(must=conditions) if conditions else None

    async def search(
        self,
        query_vector: list[float],
        limit: int = 5,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[LawArticle]:
        """
        Approximate nearest neighbour search over article embeddings.

        The HNSW candidate list is widened to limit * VECTOR_OVERSAMPLING.

        Args:
            query_vector: Query embedding.
            limit: Maximum number of results.
            filters: Optional exact-match filters, e.g. {'pcode': 'B0000001', 'nature': '法律'}.

        Returns:
            list[LawArticle]: Articles carrying their cosine similarity, best first.

        Raises:
            SearchError: If the query fails.
        """
        query_filter = self._build_filter(filters)
        hnsw_ef = limit * self._settings.VECTOR_OVERSAMPLING

        try:
            async for attempt in retrying(ResponseHandlingException):
                with attempt:
                    response = await self.client.query_points(
                        collection_name=self.collection_name,
                        query=query_vector,
                        query_filter=query_filter,
                        search_params=SearchParams(hnsw_ef=hnsw_ef),
                        limit=limit,
                        with_payload=True,
                        with_vectors=False,
                    )
        except Exception as e:
            self._fail("Vector search", e, error_class=SearchError, filters=filters)

        articles: list[LawArticle] = []
        for point in response.points:
            try:
                article = LawArticle.from_document(point.payload or {})
            except ValueError as e:
                self.logger.warning("Skipping malformed vector payload", point_id=str(point.id), error=str(e))
                continue
            article.score = point.score
            articles.append(article)

        self.logger.debug(
            "Vector search completed",
            limit=limit,
            hnsw_ef=hnsw_ef,
            filtered=query_filter is not None,
            results_count=len(articles),
        )
        return articles

    async def close(self) -> None:
        """Close the Qdrant client if it was opened."""
        if self._client is not None:
            await self._client.close()
            self._client = None
