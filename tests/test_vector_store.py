"""
Tests for database/vector_store.py

Runs against qdrant-client's in-process local mode (":memory:"), so the
real collection, upsert, filter and query code paths are exercised.
"""

import pytest
from qdrant_client import AsyncQdrantClient

from conftest import CIVIL_184, CIVIL_185, CONSUMER_7, make_article
from database.vector_store import VectorDB, point_id


@pytest.fixture
async def db():
    vector_db = VectorDB(
        client=AsyncQdrantClient(location=":memory:"),
        collection_name="test_articles",
        vector_size=4,
    )
    await vector_db.ensure_collection()
    yield vector_db
    await vector_db.close()


VECTORS = {
    CIVIL_184.id: [1.0, 0.0, 0.0, 0.0],
    CIVIL_185.id: [0.9, 0.1, 0.0, 0.0],
    CONSUMER_7.id: [0.0, 0.0, 1.0, 0.0],
}


async def _index(db, articles):
    return await db.upsert_articles(articles, [VECTORS[a.id] for a in articles])


class TestPointId:

    def test_deterministic(self):
        assert point_id("B0000001-184") == point_id("B0000001-184")
        assert point_id("B0000001-184") != point_id("B0000001-185")


class TestCollection:

    async def test_ensure_collection_is_idempotent(self, db):
        await db.ensure_collection()
        info = await db.get_collection_info()
        assert info["name"] == "test_articles"
        assert info["vector_size"] == 4

    async def test_upsert_is_keyed_by_record_id(self, db):
        await _index(db, [CIVIL_184, CIVIL_185])
        await _index(db, [CIVIL_184])
        info = await db.get_collection_info()
        assert info["points_count"] == 2

    async def test_length_mismatch(self, db):
        with pytest.raises(ValueError):
            await db.upsert_articles([CIVIL_184], [])

    async def test_empty_upsert(self, db):
        assert await db.upsert_articles([], []) == 0


class TestSearch:

    async def test_nearest_first_with_scores(self, db):
        await _index(db, [CIVIL_184, CIVIL_185, CONSUMER_7])

        results = await db.search([1.0, 0.0, 0.0, 0.0], limit=2)

        assert [a.id for a in results] == ["B0000001-184", "B0000001-185"]
        assert results[0].score == pytest.approx(1.0, abs=1e-4)
        assert results[0].law_name == "民法"
        assert results[0].content == CIVIL_184.content

    async def test_pcode_filter(self, db):
        await _index(db, [CIVIL_184, CIVIL_185, CONSUMER_7])

        results = await db.search([1.0, 0.0, 0.0, 0.0], limit=5, filters={"pcode": "J0170001"})

        assert [a.id for a in results] == ["J0170001-7"]

    async def test_nature_filter(self, db):
        await _index(db, [CIVIL_184, CIVIL_185, CONSUMER_7])

        results = await db.search([1.0, 0.0, 0.0, 0.0], limit=5, filters={"nature": "法律"})

        assert {a.nature for a in results} == {"法律"}
        assert len(results) == 2

    async def test_unknown_filter_keys_are_ignored(self, db):
        await _index(db, [CIVIL_184])
        results = await db.search([1.0, 0.0, 0.0, 0.0], filters={"chapter": "x", "pcode": None})
        assert len(results) == 1

    async def test_payload_round_trips_optional_fields(self, db):
        article = make_article(
            "B0000001-184",
            "民法",
            "第 184 條",
            chapter="第一章 通則",
            last_update="20210120",
        )
        await db.upsert_articles([article], [[1.0, 0.0, 0.0, 0.0]])

        [hit] = await db.search([1.0, 0.0, 0.0, 0.0], limit=1)

        assert hit.chapter == "第一章 通則"
        assert hit.last_update == "20210120"
        assert hit.aliases is None
