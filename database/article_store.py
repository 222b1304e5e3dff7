"""Article store module for MongoDB Atlas operations (point lookups, regex scans, Atlas Search)."""

import re
from typing import Any, AsyncIterator, NoReturn, Optional

from pymongo import AsyncMongoClient
from pymongo.errors import ConnectionFailure, PyMongoError

from core.config import get_settings
from core.exceptions import ArticleStoreError
from core.logger import LoggerMixin, get_logger
from core.reference import lookup_pcode
from core.retry import retrying
from models.schema import LawArticle

logger = get_logger(__name__)


class ArticleStore(LoggerMixin):
    """
    Handles all MongoDB operations on the statute article collection.

    Documents are keyed by record id ('{pcode}-{article number}') and
    carry law_name, article_no, content, chapter, category, nature and
    aliases. The same collection backs the Atlas Search keyword index.
    """

    # Fields returned to callers; embeddings stay in the database
    PROJECTION: dict[str, int] = {
        "_id": 1,
        "pcode": 1,
        "law_name": 1,
        "article_no": 1,
        "content": 1,
        "chapter": 1,
        "category": 1,
        "nature": 1,
        "aliases": 1,
        "last_update": 1,
    }

    def __init__(self, client: Optional[AsyncMongoClient] = None) -> None:
        """Initialize the store; the Mongo client is created on first use."""
        self._settings = get_settings()
        self._client: Optional[AsyncMongoClient] = client

    @property
    def client(self) -> AsyncMongoClient:
        """
        Lazily initialize and return the MongoDB client.

        Raises:
            ArticleStoreError: If the client cannot be configured.
        """
        if self._client is None:
            try:
                self._client = AsyncMongoClient(
                    self._settings.MONGO_URL,
                    serverSelectionTimeoutMS=self._settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
                    socketTimeoutMS=self._settings.MONGO_SOCKET_TIMEOUT_MS,
                )
                self.logger.info(
                    "MongoDB client initialized",
                    database=self._settings.MONGO_DB_NAME,
                    collection=self._settings.MONGO_COLLECTION_NAME,
                )
            except PyMongoError as e:
                self.logger.error(
                    "Failed to initialize MongoDB client",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise ArticleStoreError(
                    message="Failed to connect to MongoDB",
                    details={"error": str(e)},
                ) from e
        return self._client

    @property
    def collection(self):
        """The article collection."""
        return self.client[self._settings.MONGO_DB_NAME][self._settings.MONGO_COLLECTION_NAME]

    def _to_article(self, document: dict[str, Any]) -> LawArticle:
        """Convert a raw document, filling in the official source URL."""
        article = LawArticle.from_document(document)
        if article.url is None:
            pcode = article.pcode or lookup_pcode(article.law_name)
            if pcode:
                article.url = f"{self._settings.LAW_SOURCE_URL}{pcode}"
        return article

    def _to_articles(self, documents: list[dict[str, Any]], operation: str) -> list[LawArticle]:
        """Convert documents, skipping rows that do not validate as articles."""
        articles: list[LawArticle] = []
        for document in documents:
            try:
                articles.append(self._to_article(document))
            except ValueError as e:
                self.logger.warning(
                    "Skipping malformed article document",
                    operation=operation,
                    record_id=document.get("_id"),
                    error=str(e),
                )
        return articles

    def _raise(self, operation: str, error: Exception, **details: Any) -> NoReturn:
        self.logger.error(
            f"{operation} failed",
            error=str(error),
            error_type=type(error).__name__,
            **details,
        )
        raise ArticleStoreError(
            message=f"{operation} failed",
            details={"error": str(error), **details},
        ) from error

    async def find_by_id(self, record_id: str) -> Optional[LawArticle]:
        """
        Point lookup by record id.

        Returns:
            Optional[LawArticle]: The article, or None when absent.

        Raises:
            ArticleStoreError: If the query fails.
        """
        try:
            async for attempt in retrying(ConnectionFailure):
                with attempt:
                    document = await self.collection.find_one(
                        {"_id": record_id}, self.PROJECTION
                    )
        except PyMongoError as e:
            self._raise("Article lookup", e, record_id=record_id)

        self.logger.debug("Article lookup completed", record_id=record_id, found=document is not None)
        if document is None:
            return None
        try:
            return self._to_article(document)
        except ValueError as e:
            self._raise("Article lookup", e, record_id=record_id)

    async def find_by_ids(self, record_ids: list[str]) -> list[LawArticle]:
        """
        Batch lookup with a single $in query.

        Results follow the order of record_ids; missing ids are skipped.
        """
        unique_ids = list(dict.fromkeys(record_ids))
        if not unique_ids:
            return []

        try:
            async for attempt in retrying(ConnectionFailure):
                with attempt:
                    cursor = self.collection.find({"_id": {"$in": unique_ids}}, self.PROJECTION)
                    documents = await cursor.to_list(length=len(unique_ids))
        except PyMongoError as e:
            self._raise("Batch article lookup", e, id_count=len(unique_ids))

        by_id = {doc["_id"]: doc for doc in documents}
        return self._to_articles(
            [by_id[rid] for rid in unique_ids if rid in by_id],
            "Batch article lookup",
        )

    async def find_by_article_pattern(
        self,
        law_name: str,
        article_pattern: str,
        limit: int,
        nature: Optional[str] = None,
    ) -> list[LawArticle]:
        """
        Scan articles of one statute whose label matches a regex.

        The statute matches on its exact name, its code, or an alias field
        containing the name.

        Args:
            law_name: Canonical statute name.
            article_pattern: Regex over the article_no field.
            limit: Maximum number of documents.
            nature: Optional exact document nature.

        Returns:
            list[LawArticle]: Matching articles in store order.
        """
        statute_clauses: list[dict[str, Any]] = [
            {"law_name": law_name},
            {"aliases": {"$regex": re.escape(law_name)}},
        ]
        pcode = lookup_pcode(law_name)
        if pcode:
            statute_clauses.append({"pcode": pcode})

        query: dict[str, Any] = {
            "$or": statute_clauses,
            "article_no": {"$regex": article_pattern},
        }
        if nature:
            query["nature"] = nature

        try:
            async for attempt in retrying(ConnectionFailure):
                with attempt:
                    cursor = self.collection.find(query, self.PROJECTION).limit(limit)
                    documents = await cursor.to_list(length=limit)
        except PyMongoError as e:
            self._raise("Article pattern scan", e, law_name=law_name, pattern=article_pattern)

        self.logger.debug(
            "Article pattern scan completed",
            law_name=law_name,
            pattern=article_pattern,
            results_count=len(documents),
        )
        return self._to_articles(documents, "Article pattern scan")

    async def aggregate_search(self, compound: dict[str, Any], limit: int) -> list[LawArticle]:
        """
        Run an Atlas Search compound query.

        Args:
            compound: The compound operator body.
            limit: Maximum number of results.

        Returns:
            list[LawArticle]: Articles carrying their searchScore, best first.
        """
        pipeline: list[dict[str, Any]] = [
            {"$search": {"index": self._settings.ATLAS_SEARCH_INDEX, "compound": compound}},
            {"$limit": limit},
            {"$project": {**self.PROJECTION, "score": {"$meta": "searchScore"}}},
        ]

        try:
            async for attempt in retrying(ConnectionFailure):
                with attempt:
                    cursor = await self.collection.aggregate(pipeline)
                    documents = await cursor.to_list(length=limit)
        except PyMongoError as e:
            self._raise("Atlas Search query", e, index=self._settings.ATLAS_SEARCH_INDEX)

        self.logger.debug(
            "Atlas Search completed",
            index=self._settings.ATLAS_SEARCH_INDEX,
            results_count=len(documents),
        )
        return self._to_articles(documents, "Atlas Search query")

    async def iter_articles(
        self,
        law_names: Optional[list[str]] = None,
        batch_size: int = 64,
    ) -> AsyncIterator[list[LawArticle]]:
        """
        Stream articles in batches, optionally restricted to some statutes.

        Yields:
            list[LawArticle]: Up to batch_size articles per batch.
        """
        query: dict[str, Any] = {}
        if law_names:
            pcodes = [code for code in map(lookup_pcode, law_names) if code]
            query = {"$or": [{"law_name": {"$in": law_names}}, {"pcode": {"$in": pcodes}}]}

        batch: list[LawArticle] = []
        try:
            cursor = self.collection.find(query, self.PROJECTION).batch_size(batch_size)
            async for document in cursor:
                batch.extend(self._to_articles([document], "Article scan"))
                if len(batch) >= batch_size:
                    yield batch
                    batch = []
        except PyMongoError as e:
            self._raise("Article scan", e, law_names=law_names)

        if batch:
            yield batch

    async def close(self) -> None:
        """Close the MongoDB client if it was opened."""
        if self._client is not None:
            await self._client.close()
            self._client = None
            self.logger.info("MongoDB client closed")
