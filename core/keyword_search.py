"""
Atlas Search compound query construction and execution.

Statute scoping uses the statute code when it is known (exact, cheap),
otherwise a text match on law_name/aliases. Concept queries boost chapter
titles over article bodies, since chapter headings name the legal concept
an article belongs to.
"""

from typing import Any, Optional

from core.config import get_settings
from core.logger import LoggerMixin
from core.reference import lookup_pcode
from database.article_store import ArticleStore
from models.schema import LawArticle


class KeywordQueryBuilder:
    """Builds Atlas Search `compound` operator bodies."""

    LAW_CONCEPT_BOOSTS: tuple[tuple[str, Optional[float]], ...] = (
        ("chapter", 5),
        ("content", 3),
        ("category", None),
    )
    PURE_CONCEPT_BOOSTS: tuple[tuple[Any, Optional[float]], ...] = (
        (["law_name", "aliases"], 1.5),
        ("chapter", 3),
        ("content", None),
        ("category", 0.5),
    )

    def __init__(self, synonym_mapping: Optional[str] = None) -> None:
        self.synonym_mapping = synonym_mapping or get_settings().ATLAS_SYNONYM_MAPPING

    def _text(
        self,
        query: str,
        path: Any,
        boost: Optional[float] = None,
        synonyms: bool = True,
    ) -> dict[str, Any]:
        clause: dict[str, Any] = {"query": query, "path": path}
        if synonyms:
            clause["synonyms"] = self.synonym_mapping
        if boost is not None:
            clause["score"] = {"boost": {"value": boost}}
        return {"text": clause}

    def build_law_clause(self, law_name: str) -> dict[str, Any]:
        """
        Scope a compound query to one statute.

        Returns:
            dict: {'filter': [...]} on the statute code when tabled, else
            {'must': [...]} text match on law_name/aliases.
        """
        pcode = lookup_pcode(law_name)
        if pcode:
            return {"filter": [self._text(pcode, "pcode", synonyms=False)]}
        return {"must": [self._text(law_name, ["law_name", "aliases"])]}

    @staticmethod
    def with_nature(compound: dict[str, Any], nature: Optional[str]) -> dict[str, Any]:
        """Append an exact document-nature filter (e.g. 法律, 命令)."""
        if not nature:
            return compound
        filters = list(compound.get("filter", []))
        filters.append({"text": {"query": nature, "path": "nature"}})
        return {**compound, "filter": filters}

    def build_article_query(
        self,
        law_name: str,
        article_label: str,
        nature: Optional[str] = None,
    ) -> dict[str, Any]:
        """Statute clause plus a phrase match on the normalized article label."""
        compound = {
            **self.build_law_clause(law_name),
            "should": [{"phrase": {"query": article_label, "path": "article_no"}}],
        }
        return self.with_nature(compound, nature)

    def build_concept_query(
        self,
        concept: str,
        law_name: Optional[str] = None,
        nature: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Build the compound query for a concept search.

        Args:
            concept: Term to search for.
            law_name: Canonical statute scoping the search, if any.
            nature: Optional document-nature filter.

        Returns:
            dict: Compound body with minimumShouldMatch 1.
        """
        if law_name:
            compound: dict[str, Any] = {
                **self.build_law_clause(law_name),
                "should": [self._text(concept, path, boost) for path, boost in self.LAW_CONCEPT_BOOSTS],
            }
        else:
            compound = {
                "should": [self._text(concept, path, boost) for path, boost in self.PURE_CONCEPT_BOOSTS],
            }
        compound["minimumShouldMatch"] = 1
        return self.with_nature(compound, nature)

    @classmethod
    def strip_synonyms(cls, value: Any) -> Any:
        """Copy of a query tree with every 'synonyms' key removed."""
        if isinstance(value, list):
            return [cls.strip_synonyms(item) for item in value]
        if isinstance(value, dict):
            return {k: cls.strip_synonyms(v) for k, v in value.items() if k != "synonyms"}
        return value


class KeywordSearcher(LoggerMixin):
    """Runs keyword queries against the article store's Atlas Search index."""

    def __init__(
        self,
        article_store: ArticleStore,
        builder: Optional[KeywordQueryBuilder] = None,
    ) -> None:
        self.article_store = article_store
        self.builder = builder or KeywordQueryBuilder()

    async def search_article(
        self,
        law_name: str,
        article_label: str,
        limit: int,
        nature: Optional[str] = None,
    ) -> list[LawArticle]:
        """Ranked article-label search scoped to a statute; may be empty."""
        compound = self.builder.build_article_query(law_name, article_label, nature)
        return await self.article_store.aggregate_search(compound, limit)

    async def search_concept(
        self,
        concept: str,
        law_name: Optional[str],
        limit: int,
        nature: Optional[str] = None,
    ) -> list[LawArticle]:
        """
        Concept keyword search with a synonym-free retry.

        An empty result set is retried once with synonyms stripped.

        Raises:
            ArticleStoreError: If the article store fails.
        """
        compound = self.builder.build_concept_query(concept, law_name, nature)
        results = await self.article_store.aggregate_search(compound, limit)
        if results:
            return results

        self.logger.info(
            "Retrying keyword search without synonyms",
            concept=concept,
            law_name=law_name,
        )
        return await self.article_store.aggregate_search(
            self.builder.strip_synonyms(compound), limit
        )
