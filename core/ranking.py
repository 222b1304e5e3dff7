"""
Fusion of keyword and vector result lists.

vector_first_merge is the production policy. keyword_first_merge and
reciprocal_rank_merge exist for offline comparison in evaluation/.
"""

from functools import partial
from typing import Callable, Sequence

from models.schema import LawArticle, Provenance, SearchResult

# (keyword results, vector results, limit) -> fused results
FusionPolicy = Callable[[Sequence[LawArticle], Sequence[LawArticle], int], list[SearchResult]]

PRIMARY_BASE_SCORE = 1.0
SECONDARY_BASE_SCORE = 0.5
POSITION_DECAY = 0.01


def _positional_score(base: float, position: int) -> float:
    return round(base - POSITION_DECAY * position, 2)


def _ordered_merge(
    primary: Sequence[LawArticle],
    secondary: Sequence[LawArticle],
    limit: int,
    primary_source: Provenance,
    secondary_source: Provenance,
) -> list[SearchResult]:
    if limit <= 0:
        return []

    secondary_ids = {article.id for article in secondary}
    merged: list[SearchResult] = []
    seen: set[str] = set()

    for position, article in enumerate(primary):
        if article.id in seen:
            continue
        seen.add(article.id)
        source = Provenance.BOTH if article.id in secondary_ids else primary_source
        merged.append(
            SearchResult.from_article(
                article, _positional_score(PRIMARY_BASE_SCORE, position), source
            )
        )

    for position, article in enumerate(secondary):
        if len(merged) >= limit:
            break
        if article.id in seen:
            continue
        seen.add(article.id)
        merged.append(
            SearchResult.from_article(
                article, _positional_score(SECONDARY_BASE_SCORE, position), secondary_source
            )
        )

    return merged[:limit]


def vector_first_merge(
    keyword: Sequence[LawArticle],
    vector: Sequence[LawArticle],
    limit: int,
) -> list[SearchResult]:
    """
    Vector hits first, keyword hits fill the remaining slots.

    Vector results score 1.0 - 0.01*position, keyword fillers 0.5 - 0.01*position
    (positions in their own input list). An id present in both lists keeps its
    vector position and score and is tagged 'both'. Output ids are unique and
    the length never exceeds limit.
    """
    return _ordered_merge(vector, keyword, limit, Provenance.VECTOR, Provenance.KEYWORD)


def keyword_first_merge(
    keyword: Sequence[LawArticle],
    vector: Sequence[LawArticle],
    limit: int,
) -> list[SearchResult]:
    """Mirror image of vector_first_merge: keyword hits lead, vector hits fill."""
    return _ordered_merge(keyword, vector, limit, Provenance.KEYWORD, Provenance.VECTOR)


def reciprocal_rank_merge(
    keyword: Sequence[LawArticle],
    vector: Sequence[LawArticle],
    limit: int,
    k: int = 60,
) -> list[SearchResult]:
    """
    Reciprocal rank fusion: each list contributes 1 / (k + rank) per id.

    Ties keep first-seen order, keyword before vector.
    """
    if limit <= 0:
        return []

    scores: dict[str, float] = {}
    articles: dict[str, LawArticle] = {}
    sources: dict[str, set[Provenance]] = {}

    for source, ranked in ((Provenance.KEYWORD, keyword), (Provenance.VECTOR, vector)):
        for rank, article in enumerate(ranked, start=1):
            scores[article.id] = scores.get(article.id, 0.0) + 1.0 / (k + rank)
            articles.setdefault(article.id, article)
            sources.setdefault(article.id, set()).add(source)

    ranked_ids = sorted(scores, key=lambda rid: scores[rid], reverse=True)[:limit]
    return [
        SearchResult.from_article(
            articles[rid],
            round(scores[rid], 6),
            Provenance.BOTH if len(sources[rid]) > 1 else next(iter(sources[rid])),
        )
        for rid in ranked_ids
    ]


def rrf_policy(k: int) -> FusionPolicy:
    """Reciprocal rank fusion bound to a constant k, usable as a FusionPolicy."""
    return partial(reciprocal_rank_merge, k=k)
