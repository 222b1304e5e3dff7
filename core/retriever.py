"""
Strategy-cascade law search engine.

A query is resolved by the cheapest strategy that can answer it:

    S0  direct_id_lookup   - '<statute>第N條' with a known statute code -> point lookup
    S1  regex_fallback     - same citation, tolerant regex over article labels
    S2a atlas_article      - same citation, ranked Atlas Search (terminal)
    S2b concept            - no citation: keyword + vector hybrid, or keyword
                             only when the vector path is unavailable (terminal)

Each strategy is a handler returning a StrategyOutcome, or None to fall
through to the next one.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from core.citation import CitationParser
from core.concepts import ConceptExtractor
from core.config import get_settings
from core.embedding import EmbeddingService
from core.exceptions import EmbeddingError, QdrantError, SearchError
from core.keyword_search import KeywordSearcher
from core.logger import LoggerMixin, get_logger, search_logger
from core.ranking import FusionPolicy, vector_first_merge
from core.reference import lookup_pcode
from database.article_store import ArticleStore
from database.vector_store import VectorDB
from models.schema import (
    ArticleCitation,
    ConceptQuery,
    LawArticle,
    Provenance,
    SearchOptions,
    SearchResponse,
    SearchResult,
    StrategyTag,
)

logger = get_logger(__name__)

REPLACEMENT_CHAR = "\ufffd"


# =============================================================================
# Request-scoped structures
# =============================================================================

@dataclass(frozen=True)
class SearchContext:
    """Everything a strategy handler needs to know about one request."""

    query: str
    limit: int
    law_name: Optional[str] = None
    nature: Optional[str] = None
    embedding_api_key: Optional[str] = None
    citation: Optional[ArticleCitation] = None


@dataclass
class StrategyOutcome:
    """Results plus the tag of the strategy that produced them."""

    strategy: StrategyTag
    results: list[SearchResult] = field(default_factory=list)


StrategyHandler = Callable[[SearchContext], Awaitable[Optional[StrategyOutcome]]]


def _exact_hits(articles: list[LawArticle]) -> list[SearchResult]:
    return [SearchResult.from_article(a, 1.0, Provenance.KEYWORD) for a in articles]


def _has_replacement_chars(article: LawArticle) -> bool:
    return REPLACEMENT_CHAR in (article.content or "")


# =============================================================================
# Engine
# =============================================================================

class LawSearchEngine(LoggerMixin):
    """
    Resolves free-form legal queries into ranked statute articles.

    Collaborators are injectable so tests can run against in-memory fakes:
        - article_store:     MongoDB Atlas articles + keyword index
        - vector_db:         Qdrant article embeddings
        - embedding_service: remote query embedding
        - fusion:            merge policy for the hybrid path
    """

    def __init__(
        self,
        article_store: Optional[ArticleStore] = None,
        vector_db: Optional[VectorDB] = None,
        embedding_service: Optional[EmbeddingService] = None,
        fusion: FusionPolicy = vector_first_merge,
    ) -> None:
        self._settings = get_settings()
        self.article_store = article_store or ArticleStore()
        self.vector_db = vector_db or VectorDB()
        self.embedding_service = embedding_service or EmbeddingService()
        self.keyword = KeywordSearcher(self.article_store)
        self.fusion = fusion

        self._handlers: tuple[StrategyHandler, ...] = (
            self._direct_id_lookup,
            self._regex_fallback,
            self._article_search,
            self._concept_search,
        )

        self.logger.info(
            "LawSearchEngine initialized",
            fusion=getattr(fusion, "__name__", type(fusion).__name__),
        )

    # =========================================================================
    # Public API
    # =========================================================================

    async def search(
        self,
        query: str,
        limit: Optional[int] = None,
        law_name: Optional[str] = None,
        nature: Optional[str] = None,
        embedding_api_key: Optional[str] = None,
    ) -> SearchResponse:
        """
        Search statute articles.

        Args:
            query: Statute citation, 'statute concept', concept, or free text.
            limit: Maximum results, clamped to [1, MAX_SEARCH_LIMIT].
            law_name: Optional statute restricting a concept search.
            nature: Optional exact document nature (e.g. 法律).
            embedding_api_key: Optional per-request embedding key.

        Returns:
            SearchResponse: Results, strategy tag and elapsed milliseconds.

        Raises:
            ArticleStoreError: If the article store or keyword index fails.
        """
        start = time.perf_counter()
        options = SearchOptions(
            limit=limit,
            law_name=law_name,
            nature=nature,
            embedding_api_key=embedding_api_key,
        )
        trimmed = (query or "").strip()
        log = search_logger("law_search", query=trimmed, limit=options.limit)

        if not trimmed:
            log.debug("Empty query")
            return SearchResponse(results=[], strategy=StrategyTag.EMPTY, elapsed_ms=self._elapsed_ms(start))

        context = SearchContext(
            query=trimmed,
            limit=options.limit,
            law_name=options.law_name,
            nature=options.nature,
            embedding_api_key=options.embedding_api_key,
            citation=CitationParser.parse(trimmed),
        )

        outcome = StrategyOutcome(StrategyTag.EMPTY)
        for handler in self._handlers:
            result = await handler(context)
            if result is not None:
                outcome = result
                break

        elapsed_ms = self._elapsed_ms(start)
        log.info(
            "Search completed",
            strategy=outcome.strategy.value,
            results_count=len(outcome.results),
            elapsed_ms=elapsed_ms,
        )
        return SearchResponse(
            results=outcome.results[:context.limit],
            strategy=outcome.strategy,
            elapsed_ms=elapsed_ms,
        )

    async def lookup_by_ids(self, record_ids: list[str]) -> list[SearchResult]:
        """Fetch articles by record id in one batch; unknown ids are skipped."""
        articles = await self.article_store.find_by_ids(record_ids)
        return _exact_hits(articles)

    async def lookup_law_refs(self, refs: list[str]) -> list[SearchResult]:
        """
        Resolve loose reference strings ('民法第184條', '民法184') and fetch them.

        Unparseable references and unknown statutes are skipped.
        """
        record_ids = []
        for raw in refs:
            reference = CitationParser.parse_reference(raw)
            if reference is None:
                self.logger.debug("Unresolvable law reference", reference=raw)
                continue
            record_ids.append(reference.record_id)
        return await self.lookup_by_ids(record_ids)

    async def lookup_mentions(self, text: str) -> list[SearchResult]:
        """
        Fetch every statute article mentioned in running text.

        Articles whose stored text contains U+FFFD replacement characters
        are dropped.
        """
        references = CitationParser.find_mentions(text)
        if not references:
            return []

        articles = await self.article_store.find_by_ids([r.record_id for r in references])
        clean = [a for a in articles if not _has_replacement_chars(a)]
        if len(clean) < len(articles):
            self.logger.warning(
                "Dropped articles with corrupted text",
                dropped=[a.id for a in articles if _has_replacement_chars(a)],
            )
        return _exact_hits(clean)

    async def close(self) -> None:
        """Release database and HTTP clients."""
        await self.article_store.close()
        await self.vector_db.close()
        await self.embedding_service.close()

    # =========================================================================
    # Strategy handlers
    # =========================================================================

    async def _direct_id_lookup(self, ctx: SearchContext) -> Optional[StrategyOutcome]:
        """S0: point lookup by '{pcode}-{number}'."""
        if ctx.citation is None:
            return None

        record_id = CitationParser.build_record_id(
            ctx.citation.resolved_law_name, ctx.citation.article_label
        )
        if record_id is None:
            return None

        article = await self.article_store.find_by_id(record_id)
        if article is None:
            self.logger.debug("Direct lookup missed", record_id=record_id)
            return None
        if ctx.nature and article.nature and article.nature != ctx.nature:
            return None

        return StrategyOutcome(StrategyTag.DIRECT_ID_LOOKUP, _exact_hits([article]))

    async def _regex_fallback(self, ctx: SearchContext) -> Optional[StrategyOutcome]:
        """S1: statute name/alias plus tolerant article-label regex."""
        if ctx.citation is None:
            return None

        pattern = CitationParser.build_article_pattern(ctx.citation.raw_article)
        if pattern is None:
            return None

        articles = await self.article_store.find_by_article_pattern(
            ctx.citation.resolved_law_name, pattern, ctx.limit, ctx.nature
        )
        if not articles:
            return None

        return StrategyOutcome(StrategyTag.REGEX_FALLBACK, _exact_hits(articles))

    async def _article_search(self, ctx: SearchContext) -> Optional[StrategyOutcome]:
        """S2a: ranked keyword search on the article label. Terminal for citations."""
        if ctx.citation is None:
            return None

        articles = await self.keyword.search_article(
            ctx.citation.resolved_law_name,
            ctx.citation.article_label,
            ctx.limit,
            ctx.nature,
        )
        results = [SearchResult.from_article(a, provenance=Provenance.KEYWORD) for a in articles]
        return StrategyOutcome(StrategyTag.ATLAS_ARTICLE, results)

    async def _concept_search(self, ctx: SearchContext) -> Optional[StrategyOutcome]:
        """
        S2b: hybrid keyword + vector search for non-citation queries.

        Keyword search and embed+vector search run concurrently. A vector
        path failure or timeout yields keyword-only results with a
        keyword_fallback_* tag; a keyword failure propagates.
        """
        concept_query = ConceptExtractor.classify(ctx.query, ctx.law_name)
        is_law_concept = concept_query.query_type == "law_concept"

        vector_task = asyncio.create_task(self._safe_vector_search(ctx, concept_query))
        try:
            keyword_articles = await self.keyword.search_concept(
                concept_query.concept,
                concept_query.law_name,
                ctx.limit,
                ctx.nature,
            )
        except BaseException:
            vector_task.cancel()
            raise
        vector_articles = await vector_task

        self.logger.debug(
            "Concept search paths joined",
            query_type=concept_query.query_type,
            law_name=concept_query.law_name,
            concept=concept_query.concept,
            keyword_hits=len(keyword_articles),
            vector_hits=None if vector_articles is None else len(vector_articles),
        )

        if vector_articles is None:
            strategy = (
                StrategyTag.KEYWORD_FALLBACK_LAW_CONCEPT
                if is_law_concept
                else StrategyTag.KEYWORD_FALLBACK_PURE_CONCEPT
            )
            results = [
                SearchResult.from_article(a, provenance=Provenance.KEYWORD)
                for a in keyword_articles[:ctx.limit]
            ]
            return StrategyOutcome(strategy, results)

        strategy = (
            StrategyTag.HYBRID_LAW_CONCEPT if is_law_concept else StrategyTag.HYBRID_PURE_CONCEPT
        )
        return StrategyOutcome(strategy, self.fusion(keyword_articles, vector_articles, ctx.limit))

    # =========================================================================
    # Vector path
    # =========================================================================

    def _vector_filters(self, ctx: SearchContext, concept_query: ConceptQuery) -> dict[str, str]:
        filters: dict[str, str] = {}
        if concept_query.law_name:
            pcode = lookup_pcode(concept_query.law_name)
            if pcode:
                filters["pcode"] = pcode
        if ctx.nature:
            filters["nature"] = ctx.nature
        return filters

    async def _vector_search(
        self,
        ctx: SearchContext,
        concept_query: ConceptQuery,
    ) -> list[LawArticle]:
        vector = await self.embedding_service.embed_query(ctx.query, api_key=ctx.embedding_api_key)
        return await self.vector_db.search(
            vector,
            limit=ctx.limit,
            filters=self._vector_filters(ctx, concept_query),
        )

    async def _safe_vector_search(
        self,
        ctx: SearchContext,
        concept_query: ConceptQuery,
    ) -> Optional[list[LawArticle]]:
        """Vector results, or None when the vector path is unavailable."""
        try:
            return await asyncio.wait_for(
                self._vector_search(ctx, concept_query),
                timeout=self._settings.VECTOR_PATH_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                "Vector path timed out, degrading to keyword search",
                timeout_seconds=self._settings.VECTOR_PATH_TIMEOUT_SECONDS,
            )
        except (EmbeddingError, QdrantError, SearchError) as e:
            self.logger.warning(
                "Vector path failed, degrading to keyword search",
                error=e.message,
                error_type=type(e).__name__,
            )
        return None

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int(round((time.perf_counter() - start) * 1000))
