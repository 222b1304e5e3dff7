"""
Tests for models/schema.py and core/config.py

Covers: request option normalization, result construction from stored
        articles, and settings validation.
"""

import pytest
from pydantic import ValidationError

from conftest import CIVIL_184, make_article
from core.config import Settings, get_settings
from models.schema import (
    LawArticle,
    Provenance,
    SearchOptions,
    SearchResponse,
    SearchResult,
    StrategyTag,
)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class TestSettings:

    def test_defaults(self):
        settings = Settings()
        assert settings.DEFAULT_SEARCH_LIMIT <= settings.MAX_SEARCH_LIMIT
        assert settings.RETRY_ATTEMPTS >= 1

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()

    def test_default_limit_cannot_exceed_max(self):
        with pytest.raises(ValidationError):
            Settings(MAX_SEARCH_LIMIT=10, DEFAULT_SEARCH_LIMIT=20)

    def test_mongo_url_scheme(self):
        with pytest.raises(ValidationError):
            Settings(MONGO_URL="http://localhost:27017")

    def test_http_url_scheme(self):
        with pytest.raises(ValidationError):
            Settings(QDRANT_URL="localhost:6333")

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("EMBEDDING_BATCH_SIZE", "16")
        assert Settings().EMBEDDING_BATCH_SIZE == 16


# ---------------------------------------------------------------------------
# Request options
# ---------------------------------------------------------------------------

class TestSearchOptions:

    @pytest.mark.parametrize("limit,expected", [(None, 5), (0, 5), (3, 3), (-1, 1), (500, 50)])
    def test_limit_clamp(self, limit, expected):
        assert SearchOptions(limit=limit).limit == expected

    def test_blank_filters_become_none(self):
        options = SearchOptions(law_name="  ", nature="")
        assert options.law_name is None
        assert options.nature is None

    def test_filters_are_trimmed(self):
        assert SearchOptions(law_name=" 民法 ").law_name == "民法"

    def test_embedding_key_hidden_from_repr(self):
        assert "secret" not in repr(SearchOptions(embedding_api_key="secret"))


# ---------------------------------------------------------------------------
# Articles and results
# ---------------------------------------------------------------------------

class TestLawArticle:

    def test_from_document_uses_mongo_id(self):
        article = LawArticle.from_document({
            "_id": "B0000001-184",
            "law_name": "民法",
            "article_no": "第 184 條",
            "content": "因故意或過失...",
            "embedding": [0.1, 0.2],
        })
        assert article.id == "B0000001-184"
        assert not hasattr(article, "embedding")

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            LawArticle.from_document({"_id": "B0000001-184", "law_name": "民法"})

    def test_embedding_text_has_header(self):
        text = CIVIL_184.embedding_text()
        assert text.startswith("民法 第 184 條 第一章 通則\n")
        assert text.endswith(CIVIL_184.content)


class TestSearchResult:

    def test_from_article(self):
        result = SearchResult.from_article(CIVIL_184, 0.9, Provenance.VECTOR)
        assert result.id == "B0000001-184"
        assert result.score == 0.9
        assert result.provenance == Provenance.VECTOR
        assert result.pcode == "B0000001"
        assert result.content_preview == CIVIL_184.content[:get_settings().CONTENT_PREVIEW_CHARS]

    def test_store_score_is_used_when_none_given(self):
        article = make_article("B0000001-1", "民法", "第 1 條", score=3.2)
        assert SearchResult.from_article(article).score == 3.2

    def test_missing_score_defaults_to_zero(self):
        article = make_article("B0000001-1", "民法", "第 1 條", content="")
        result = SearchResult.from_article(article)
        assert result.score == 0.0
        assert result.content_preview is None

    def test_results_are_immutable(self):
        result = SearchResult.from_article(CIVIL_184, 1.0)
        with pytest.raises(ValidationError):
            result.score = 0.1

    def test_response_serializes_strategy_value(self):
        response = SearchResponse(results=[], strategy=StrategyTag.REGEX_FALLBACK, elapsed_ms=3)
        assert response.model_dump(mode="json")["strategy"] == "regex_fallback"

    def test_response_schema_example_is_valid(self):
        example = SearchResponse.model_json_schema()["example"]
        response = SearchResponse.model_validate(example)
        assert response.strategy == StrategyTag.DIRECT_ID_LOOKUP
        assert response.results[0].id == "B0000001-184"
