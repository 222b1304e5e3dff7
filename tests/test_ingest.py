"""
Tests for ingest.py

Covers: skipping empty/corrupted articles, batching, statute restriction,
        re-indexing and error wrapping of the vector index build.
"""

import pytest

from conftest import (
    CIVIL_184,
    CIVIL_185,
    CONSUMER_7,
    FailingEmbeddingService,
    FakeArticleStore,
    FakeEmbeddingService,
    FakeVectorDB,
    make_article,
)
from core.exceptions import IngestionError
from ingest import build_index, is_indexable

EMPTY = make_article("B0000001-999", "民法", "第 999 條", content="  ")
CORRUPTED = make_article("B0000001-998", "民法", "第 998 條", content="因\ufffd侵害")


class TestIsIndexable:

    def test_regular_article(self):
        assert is_indexable(CIVIL_184)

    def test_blank_content(self):
        assert not is_indexable(EMPTY)

    def test_replacement_characters(self):
        assert not is_indexable(CORRUPTED)


class TestBuildIndex:

    async def test_indexes_clean_articles_in_batches(self):
        store = FakeArticleStore([CIVIL_184, CIVIL_185, EMPTY, CORRUPTED, CONSUMER_7])
        embedding_service = FakeEmbeddingService()
        db = FakeVectorDB()

        stats = await build_index(
            batch_size=2,
            article_store=store,
            embedding_service=embedding_service,
            db=db,
        )

        assert stats.scanned == 5
        assert stats.upserted == 3
        assert stats.skipped == 2
        assert sorted(stats.skipped_ids) == ["B0000001-998", "B0000001-999"]
        assert [a.id for a in db.upserted] == ["B0000001-184", "B0000001-185", "J0170001-7"]
        assert db.ensured and not db.deleted
        assert embedding_service.batches[0][0] == CIVIL_184.embedding_text()

    async def test_batch_of_only_skipped_articles_is_not_embedded(self):
        store = FakeArticleStore([EMPTY, CORRUPTED])
        embedding_service = FakeEmbeddingService()

        stats = await build_index(
            article_store=store,
            embedding_service=embedding_service,
            db=FakeVectorDB(),
        )

        assert stats.upserted == 0
        assert stats.batches == 0
        assert embedding_service.batches == []

    async def test_law_filter_resolves_aliases(self):
        store = FakeArticleStore([CIVIL_184, CONSUMER_7])
        db = FakeVectorDB()

        await build_index(
            law_names=["消保法"],
            article_store=store,
            embedding_service=FakeEmbeddingService(),
            db=db,
        )

        assert [a.id for a in db.upserted] == ["J0170001-7"]

    async def test_reindex_deletes_collection_first(self):
        db = FakeVectorDB()
        await build_index(
            reindex=True,
            article_store=FakeArticleStore([CIVIL_184]),
            embedding_service=FakeEmbeddingService(),
            db=db,
        )
        assert db.deleted and db.ensured

    async def test_failures_are_wrapped_and_clients_closed(self):
        store = FakeArticleStore([CIVIL_184])
        embedding_service = FailingEmbeddingService()
        db = FakeVectorDB()

        with pytest.raises(IngestionError) as exc_info:
            await build_index(article_store=store, embedding_service=embedding_service, db=db)

        assert exc_info.value.details["status_code"] == 503
        assert store.closed and embedding_service.closed and db.closed
