"""
Shared fixtures and fakes for the law search tests.

The fakes stand in for MongoDB Atlas, Qdrant and the embedding endpoint so
the whole strategy cascade runs in memory without network access.
"""

import asyncio
import re
from typing import Any, Optional

import pytest

from core.exceptions import EmbeddingError
from core.retriever import LawSearchEngine
from models.schema import LawArticle


def make_article(
    record_id: str,
    law_name: str,
    article_no: str,
    content: str = "條文內容",
    **fields: Any,
) -> LawArticle:
    """Build a LawArticle the way the store would return it."""
    pcode = fields.pop("pcode", record_id.split("-", 1)[0])
    return LawArticle(
        id=record_id,
        pcode=pcode,
        law_name=law_name,
        article_no=article_no,
        content=content,
        **fields,
    )


# ---------------------------------------------------------------------------
# Sample articles
# ---------------------------------------------------------------------------

CIVIL_184 = make_article(
    "B0000001-184",
    "民法",
    "第 184 條",
    "因故意或過失，不法侵害他人之權利者，負損害賠償責任。",
    chapter="第一章 通則",
    nature="法律",
)
CIVIL_185 = make_article(
    "B0000001-185",
    "民法",
    "第 185 條",
    "數人共同不法侵害他人之權利者，連帶負損害賠償責任。",
    nature="法律",
)
CIVIL_186 = make_article("B0000001-186", "民法", "第 186 條", "公務員因故意違背對於第三人應執行之職務。")
CIVIL_191_2 = make_article(
    "B0000001-191-2",
    "民法",
    "第 191-2 條",
    "汽車、機車或其他非依軌道行駛之動力車輛，在使用中加損害於他人者，駕駛人應賠償因此所生之損害。",
)
CONSUMER_7 = make_article(
    "J0170001-7",
    "消費者保護法",
    "第 7 條",
    "從事設計、生產、製造商品或提供服務之企業經營者，應確保其提供之商品或服務無安全上之危險。",
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeArticleStore:
    """In-memory article store with scripted keyword index responses."""

    def __init__(
        self,
        articles: Optional[list[LawArticle]] = None,
        search_results: Optional[list[list[LawArticle]]] = None,
        search_error: Optional[Exception] = None,
    ) -> None:
        self.articles = {a.id: a for a in (articles or [])}
        self.search_results = list(search_results or [])
        self.search_error = search_error
        self.compounds: list[dict[str, Any]] = []
        self.search_limits: list[int] = []
        self.lookups: list[str] = []
        self.pattern_calls: list[tuple[str, str, int, Optional[str]]] = []
        self.closed = False

    async def find_by_id(self, record_id: str) -> Optional[LawArticle]:
        self.lookups.append(record_id)
        return self.articles.get(record_id)

    async def find_by_ids(self, record_ids: list[str]) -> list[LawArticle]:
        return [self.articles[rid] for rid in dict.fromkeys(record_ids) if rid in self.articles]

    async def find_by_article_pattern(
        self,
        law_name: str,
        article_pattern: str,
        limit: int,
        nature: Optional[str] = None,
    ) -> list[LawArticle]:
        self.pattern_calls.append((law_name, article_pattern, limit, nature))
        hits = [
            a for a in self.articles.values()
            if a.law_name == law_name
            and re.search(article_pattern, a.article_no)
            and (not nature or a.nature == nature)
        ]
        return hits[:limit]

    async def aggregate_search(self, compound: dict[str, Any], limit: int) -> list[LawArticle]:
        self.compounds.append(compound)
        self.search_limits.append(limit)
        if self.search_error is not None:
            raise self.search_error
        if self.search_results:
            return self.search_results.pop(0)[:limit]
        return []

    async def iter_articles(self, law_names: Optional[list[str]] = None, batch_size: int = 64):
        items = [a for a in self.articles.values() if not law_names or a.law_name in law_names]
        for start in range(0, len(items), batch_size):
            yield items[start:start + batch_size]

    async def close(self) -> None:
        self.closed = True


class FakeVectorDB:
    """Records vector searches and upserts; returns scripted hits."""

    collection_name = "test_articles"

    def __init__(
        self,
        results: Optional[list[LawArticle]] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ) -> None:
        self.results = list(results or [])
        self.delay = delay
        self.error = error
        self.searches: list[dict[str, Any]] = []
        self.upserted: list[LawArticle] = []
        self.deleted = False
        self.ensured = False
        self.closed = False

    async def search(
        self,
        query_vector: list[float],
        limit: int = 5,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[LawArticle]:
        self.searches.append({"vector": query_vector, "limit": limit, "filters": filters})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.results[:limit]

    async def ensure_collection(self) -> None:
        self.ensured = True

    async def delete_collection(self) -> bool:
        self.deleted = True
        return True

    async def upsert_articles(self, articles: list[LawArticle], vectors: list[list[float]]) -> int:
        assert len(articles) == len(vectors)
        self.upserted.extend(articles)
        return len(articles)

    async def close(self) -> None:
        self.closed = True


class FakeEmbeddingService:
    """Deterministic embeddings; remembers every call."""

    def __init__(self, dimension: int = 4) -> None:
        self.dimension = dimension
        self.queries: list[tuple[str, Optional[str]]] = []
        self.batches: list[list[str]] = []
        self.closed = False

    async def embed_query(self, text: str, api_key: Optional[str] = None) -> list[float]:
        self.queries.append((text, api_key))
        return [0.1] * self.dimension

    async def embed_texts(
        self,
        texts: list[str],
        input_type: str = "document",
        api_key: Optional[str] = None,
    ) -> list[list[float]]:
        self.batches.append(list(texts))
        return [[0.1] * self.dimension for _ in texts]

    async def close(self) -> None:
        self.closed = True


class FailingEmbeddingService(FakeEmbeddingService):
    """Embedding endpoint that always rejects the request."""

    async def embed_query(self, text: str, api_key: Optional[str] = None) -> list[float]:
        self.queries.append((text, api_key))
        raise EmbeddingError("Embedding HTTP 401", details={"status_code": 401})

    async def embed_texts(self, texts, input_type="document", api_key=None):
        raise EmbeddingError("Embedding HTTP 503", details={"status_code": 503})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_articles() -> list[LawArticle]:
    return [CIVIL_184, CIVIL_185, CIVIL_186, CIVIL_191_2, CONSUMER_7]


@pytest.fixture
def article_store(sample_articles) -> FakeArticleStore:
    return FakeArticleStore(sample_articles)


@pytest.fixture
def vector_db() -> FakeVectorDB:
    return FakeVectorDB()


@pytest.fixture
def embedding_service() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def engine(article_store, vector_db, embedding_service) -> LawSearchEngine:
    return LawSearchEngine(
        article_store=article_store,
        vector_db=vector_db,
        embedding_service=embedding_service,
    )
