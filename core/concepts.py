"""Concept query classification: which statute scopes a query, and what term to search."""

import re
from typing import NamedTuple, Optional

from core.reference import CONCEPT_TO_LAW, SORTED_CONCEPTS, SORTED_LAW_NAMES, resolve_alias
from models.schema import ConceptQuery


class LawConcept(NamedTuple):
    """Statute name (canonical or as written) paired with a search term."""

    law_name: str
    concept: str


class ConceptExtractor:
    """Classifies free-text queries that carry no article citation."""

    # "<statute ending in 法|規則|條例|辦法|細則> <concept>", whitespace-separated
    LAW_CONCEPT_PATTERN = re.compile(
        r"^([\u4e00-\u9fff]+(?:法|規則|條例|辦法|細則))\s+(.+)$"
    )

    @staticmethod
    def extract_law_name(query: str) -> Optional[LawConcept]:
        """
        Split a known statute name or alias off the front of the query.

        Names are tried longest first so '民法總則施行法' wins over the
        shorter '民法'. The remainder must be non-empty.
        """
        trimmed = query.strip()
        for name in SORTED_LAW_NAMES:
            if trimmed.startswith(name) and len(trimmed) > len(name):
                concept = trimmed[len(name):].strip()
                if concept:
                    return LawConcept(name, concept)
        return None

    @staticmethod
    def rewrite_by_concept(query: str) -> Optional[LawConcept]:
        """
        Map a query onto the concept table.

        An exact key match is tried first, then the longest key contained in
        the query. The search term is the rule's canonical concept when it
        has one, otherwise the trimmed query.
        """
        trimmed = query.strip()
        rule = CONCEPT_TO_LAW.get(trimmed)
        if rule is None:
            key = next((k for k in SORTED_CONCEPTS if k in trimmed), None)
            if key is None:
                return None
            rule = CONCEPT_TO_LAW[key]
        return LawConcept(rule.law_name, rule.concept or trimmed)

    @classmethod
    def match_law_concept(cls, query: str) -> Optional[LawConcept]:
        """Match the '<statute> <concept>' shape; the statute is returned as written."""
        match = cls.LAW_CONCEPT_PATTERN.match(query.strip())
        if not match:
            return None
        return LawConcept(match.group(1), match.group(2).strip())

    @classmethod
    def classify(cls, query: str, law_name: Optional[str] = None) -> ConceptQuery:
        """
        Decide the statute scope and keyword term of a concept query.

        Precedence: explicit law_name, then '<statute> <concept>', then a
        statute-name prefix, then the concept table, then the bare query.
        The query counts as 'law_concept' only when the statute came from the
        caller or from the query text itself; a concept-table inference stays
        'pure_concept'.

        Args:
            query: Trimmed, non-empty query without an article citation.
            law_name: Optional statute restricting the search.

        Returns:
            ConceptQuery: Resolved statute (or None), keyword term and query type.
        """
        trimmed = query.strip()

        if law_name and law_name.strip():
            return ConceptQuery(
                law_name=resolve_alias(law_name.strip()),
                concept=trimmed,
                query_type="law_concept",
            )

        matched = cls.match_law_concept(trimmed) or cls.extract_law_name(trimmed)
        if matched:
            return ConceptQuery(
                law_name=resolve_alias(matched.law_name),
                concept=matched.concept,
                query_type="law_concept",
            )

        rewritten = cls.rewrite_by_concept(trimmed)
        if rewritten:
            return ConceptQuery(
                law_name=rewritten.law_name,
                concept=rewritten.concept,
                query_type="pure_concept",
            )

        return ConceptQuery(law_name=None, concept=trimmed, query_type="pure_concept")


extract_law_name = ConceptExtractor.extract_law_name
rewrite_by_concept = ConceptExtractor.rewrite_by_concept
classify_query = ConceptExtractor.classify
