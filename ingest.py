"""Vector index builder for the law search engine.

This script populates the Qdrant collection used by the hybrid search path:
1. Stream statute articles from the MongoDB article store
2. Skip articles with empty or corrupted text
3. Embed article text in batches (document input type)
4. Upsert embeddings with the article payload into Qdrant
"""

import asyncio
import sys
from typing import Optional

from pydantic import BaseModel, Field

from core.config import get_settings
from core.embedding import EmbeddingService
from core.exceptions import IngestionError, LawSearchException
from core.logger import get_logger, setup_logging
from core.reference import resolve_alias
from database.article_store import ArticleStore
from database.vector_store import VectorDB
from models.schema import LawArticle

# Initialize logging
setup_logging()
logger = get_logger(__name__)


class IngestionStats(BaseModel):
    """Counters for one indexing run."""

    scanned: int = 0
    skipped: int = 0
    upserted: int = 0
    batches: int = 0
    skipped_ids: list[str] = Field(default_factory=list)


def is_indexable(article: LawArticle) -> bool:
    """Articles with no text or U+FFFD replacement characters are left out of the index."""
    return bool(article.content and article.content.strip()) and "\ufffd" not in article.content


async def index_batch(
    articles: list[LawArticle],
    embedding_service: EmbeddingService,
    db: VectorDB,
    stats: IngestionStats,
) -> None:
    """
    Embed and upsert one batch of articles.

    Args:
        articles: Articles streamed from the article store.
        embedding_service: EmbeddingService instance.
        db: VectorDB instance.
        stats: Counters updated in place.
    """
    stats.scanned += len(articles)
    indexable = [a for a in articles if is_indexable(a)]
    skipped = [a.id for a in articles if not is_indexable(a)]
    stats.skipped += len(skipped)
    stats.skipped_ids.extend(skipped)

    if not indexable:
        return

    vectors = await embedding_service.embed_texts(
        [a.embedding_text() for a in indexable],
        input_type="document",
    )
    stats.upserted += await db.upsert_articles(indexable, vectors)
    stats.batches += 1

    logger.info(
        "Indexed batch",
        batch=stats.batches,
        batch_size=len(indexable),
        total_upserted=stats.upserted,
    )


async def build_index(
    law_names: Optional[list[str]] = None,
    batch_size: Optional[int] = None,
    reindex: bool = False,
    article_store: Optional[ArticleStore] = None,
    embedding_service: Optional[EmbeddingService] = None,
    db: Optional[VectorDB] = None,
) -> IngestionStats:
    """
    Build (or extend) the article vector index.

    Args:
        law_names: Restrict indexing to these statutes (aliases allowed).
        batch_size: Articles per embedding request (default: EMBEDDING_BATCH_SIZE).
        reindex: Delete the collection first.

    Returns:
        IngestionStats: Counters for the run.

    Raises:
        IngestionError: If any store, embedding or Qdrant call fails.
    """
    settings = get_settings()
    article_store = article_store or ArticleStore()
    embedding_service = embedding_service or EmbeddingService()
    db = db or VectorDB()
    batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
    resolved = [resolve_alias(name) for name in law_names] if law_names else None
    stats = IngestionStats()

    logger.info(
        "🚀 Starting vector index build",
        collection=db.collection_name,
        laws=resolved or "all",
        batch_size=batch_size,
        reindex=reindex,
    )

    try:
        if reindex:
            logger.info("Deleting existing collection for re-indexing", collection=db.collection_name)
            await db.delete_collection()

        await db.ensure_collection()

        async for batch in article_store.iter_articles(resolved, batch_size=batch_size):
            await index_batch(batch, embedding_service, db, stats)

    except LawSearchException as e:
        logger.error(
            "❌ Index build failed",
            error=e.message,
            error_type=type(e).__name__,
            upserted=stats.upserted,
        )
        raise IngestionError(
            message="Vector index build failed",
            details={"upserted": stats.upserted, "cause": e.message, **e.details},
        ) from e
    finally:
        await article_store.close()
        await embedding_service.close()
        await db.close()

    if stats.skipped:
        logger.warning(
            "Skipped articles with empty or corrupted text",
            count=stats.skipped,
            ids=stats.skipped_ids[:20],
        )
    logger.info(
        "✅ Index build complete",
        scanned=stats.scanned,
        upserted=stats.upserted,
        skipped=stats.skipped,
    )
    return stats


async def main(args) -> None:
    """Run the index build and print a summary."""
    settings = get_settings()
    try:
        stats = await build_index(
            law_names=args.law,
            batch_size=args.batch_size,
            reindex=args.reindex,
        )
    except IngestionError as e:
        print(f"\n❌ Error: {e.message}\n")
        sys.exit(1)

    print("\n" + "=" * 60)
    print("✅ VECTOR INDEX BUILD COMPLETE!")
    print("=" * 60)
    print(f"\n☁️  Collection: {settings.QDRANT_COLLECTION_NAME}")
    print(f"📜 Articles scanned: {stats.scanned}")
    print(f"🔢 Vectors upserted: {stats.upserted}")
    print(f"⚠️  Skipped: {stats.skipped}")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Embed statute articles into the Qdrant vector index")
    parser.add_argument(
        "--reindex",
        action="store_true",
        help="Delete existing collection and re-index all articles",
    )
    parser.add_argument(
        "--law",
        action="append",
        metavar="NAME",
        help="Only index this statute (repeatable, aliases allowed)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Articles per embedding request (default: EMBEDDING_BATCH_SIZE)",
    )

    asyncio.run(main(parser.parse_args()))
