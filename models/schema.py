"""Pydantic schemas for law search data flow."""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.config import get_settings


class StrategyTag(str, Enum):
    """How a search result set was produced. Stable diagnostic contract."""

    DIRECT_ID_LOOKUP = "direct_id_lookup"
    REGEX_FALLBACK = "regex_fallback"
    ATLAS_ARTICLE = "atlas_article"
    HYBRID_LAW_CONCEPT = "hybrid_law_concept"
    HYBRID_PURE_CONCEPT = "hybrid_pure_concept"
    KEYWORD_FALLBACK_LAW_CONCEPT = "keyword_fallback_law_concept"
    KEYWORD_FALLBACK_PURE_CONCEPT = "keyword_fallback_pure_concept"
    EMPTY = "empty"


class Provenance(str, Enum):
    """Which retrieval path surfaced a result."""

    KEYWORD = "keyword"
    VECTOR = "vector"
    BOTH = "both"


class ArticleCitation(BaseModel):
    """A '<statute> 第N條' citation parsed out of a query."""

    model_config = ConfigDict(frozen=True)

    law_name: str = Field(
        ...,
        description="Statute name exactly as written in the query",
        examples=["消保法", "民法"],
    )
    resolved_law_name: str = Field(
        ...,
        description="Canonical statute name after alias resolution",
        examples=["消費者保護法"],
    )
    raw_article: str = Field(
        ...,
        description="Article part of the query as written",
        examples=["第191條之2"],
    )
    article_label: str = Field(
        ...,
        description="Normalized article label (may be non-canonical if unrecognized)",
        examples=["第 191-2 條"],
    )


class ConceptQuery(BaseModel):
    """Classification of a query without an article citation."""

    model_config = ConfigDict(frozen=True)

    law_name: Optional[str] = Field(
        default=None,
        description="Canonical statute name scoping the search, if any",
    )
    concept: str = Field(..., description="Term sent to the keyword index", min_length=1)
    query_type: Literal["law_concept", "pure_concept"] = Field(...)


class LawArticle(BaseModel):
    """One statute article as stored in the article store."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., alias="_id", description="Record id '{pcode}-{article number}'")
    pcode: Optional[str] = Field(default=None, description="Statute code")
    law_name: str = Field(..., description="Canonical statute name")
    article_no: str = Field(..., description="Article label, e.g. '第 184 條'")
    content: str = Field(default="", description="Article text")
    chapter: Optional[str] = Field(default=None)
    category: Optional[str] = Field(default=None)
    nature: Optional[str] = Field(default=None, description="Document nature, e.g. 法律")
    aliases: Optional[str] = Field(default=None)
    last_update: Optional[str] = Field(default=None, description="Date the statute text was last amended")
    url: Optional[str] = Field(default=None)
    score: Optional[float] = Field(default=None, description="Store-assigned relevance")

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "LawArticle":
        """Build from a raw MongoDB document or Qdrant payload."""
        return cls.model_validate(document)

    def embedding_text(self) -> str:
        """Text embedded for the vector index."""
        header = " ".join(part for part in (self.law_name, self.article_no, self.chapter) if part)
        return f"{header}\n{self.content}"


class SearchResult(BaseModel):
    """A ranked statute article returned to the caller. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Record id", examples=["B0000001-184"])
    law_name: str = Field(..., examples=["民法"])
    article_no: str = Field(..., examples=["第 184 條"])
    chapter: Optional[str] = Field(default=None)
    content: str = Field(default="")
    score: float = Field(..., description="Relevance score (synthetic for fused results)")
    provenance: Provenance = Field(default=Provenance.KEYWORD)
    content_preview: Optional[str] = Field(default=None)
    pcode: Optional[str] = Field(default=None)
    url: Optional[str] = Field(default=None)

    @classmethod
    def from_article(
        cls,
        article: LawArticle,
        score: Optional[float] = None,
        provenance: Provenance = Provenance.KEYWORD,
    ) -> "SearchResult":
        """Wrap a stored article as a result."""
        preview_chars = get_settings().CONTENT_PREVIEW_CHARS
        return cls(
            id=article.id,
            law_name=article.law_name,
            article_no=article.article_no,
            chapter=article.chapter,
            content=article.content,
            score=score if score is not None else (article.score or 0.0),
            provenance=provenance,
            content_preview=article.content[:preview_chars] if article.content else None,
            pcode=article.pcode,
            url=article.url,
        )


class SearchOptions(BaseModel):
    """Per-request options for a law search."""

    limit: int = Field(default_factory=lambda: get_settings().DEFAULT_SEARCH_LIMIT)
    law_name: Optional[str] = Field(
        default=None,
        description="Explicit statute restricting a concept search",
    )
    nature: Optional[str] = Field(
        default=None,
        description="Exact document nature filter",
    )
    embedding_api_key: Optional[str] = Field(
        default=None,
        description="Per-request override of the embedding API key",
        repr=False,
    )

    @field_validator("limit", mode="before")
    @classmethod
    def clamp_limit(cls, v: Any) -> int:
        """Clamp the limit into [1, MAX_SEARCH_LIMIT]; falsy means default."""
        settings = get_settings()
        if not v:
            return settings.DEFAULT_SEARCH_LIMIT
        return min(max(int(v), 1), settings.MAX_SEARCH_LIMIT)

    @field_validator("law_name", "nature", mode="before")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat whitespace-only strings as absent."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class SearchResponse(BaseModel):
    """Result set with the strategy that produced it and its latency."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "results": [
                    {
                        "id": "B0000001-184",
                        "law_name": "民法",
                        "article_no": "第 184 條",
                        "chapter": "第一章 通則",
                        "content": "因故意或過失，不法侵害他人之權利者，負損害賠償責任。",
                        "score": 1.0,
                        "provenance": "keyword",
                    }
                ],
                "strategy": "direct_id_lookup",
                "elapsed_ms": 12,
            }
        }
    )

    results: list[SearchResult] = Field(default_factory=list)
    strategy: StrategyTag = Field(...)
    elapsed_ms: int = Field(default=0, ge=0)
