"""Smoke script to exercise the law search cascade against live services from the terminal."""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from core.logger import setup_logging
from core.retriever import LawSearchEngine

# Initialize logging
setup_logging()


def print_response(query: str, response, show: int = 3) -> None:
    """Pretty-print the top results of one search."""
    print(f"\n❓ Query: {query}")
    print(f"🧭 Strategy: {response.strategy.value}  ({response.elapsed_ms} ms, {len(response.results)} results)")
    print("-" * 60)

    for i, result in enumerate(response.results[:show], 1):
        print(f"  {i}. {result.law_name} {result.article_no}  [{result.provenance.value}]")
        print(f"     Chapter: {result.chapter or 'N/A'}")
        print(f"     Score: {result.score:.4f}")
        print(f"     Preview: {result.content_preview or ''}...")
        print()


async def main() -> None:
    """
    Run one query per strategy.

    Steps:
        1. Citation with a known statute code (direct lookup)
        2. Statute + concept (hybrid, or keyword fallback without an embedding key)
        3. Mentions inside running text
    """
    print("=" * 60)
    print("🧪 LAW SEARCH SMOKE TEST")
    print("=" * 60)

    print("\n📦 Initializing engine...")
    engine = LawSearchEngine()
    print("✓ Engine initialized")

    try:
        # ============================================
        # Step 1: Citation
        # ============================================
        print("\n🔍 Step 1: Citation lookup...")
        query = "民法第184條"
        print_response(query, await engine.search(query))

        # ============================================
        # Step 2: Concept
        # ============================================
        print("\n🔍 Step 2: Concept search...")
        query = "民法 侵權行為"
        print_response(query, await engine.search(query, limit=5))

        # ============================================
        # Step 3: Mentions
        # ============================================
        print("\n🔍 Step 3: Mentions in text...")
        text = "原告依民法第184條第1項前段及第195條第1項請求被告賠償。"
        mentions = await engine.lookup_mentions(text)
        print(f"✓ Found {len(mentions)} mentioned articles")
        for result in mentions:
            print(f"  - {result.id}: {result.law_name} {result.article_no}")

        print("\n" + "-" * 60)
        print("✅ Law Search Smoke Test Complete!")
        print("=" * 60)
    finally:
        await engine.close()


async def run_multiple_queries() -> None:
    """Run a spread of queries to see which strategy answers each."""
    queries = [
        "消保法第7條",
        "民法第191條之2",
        "勞動基準法 資遣",
        "過失傷害",
        "公司欠薪水怎麼辦",
    ]

    engine = LawSearchEngine()
    try:
        for query in queries:
            print(f"\n{'=' * 60}")
            print_response(query, await engine.search(query, limit=3))
    finally:
        await engine.close()


if __name__ == "__main__":
    # Run the main smoke test
    asyncio.run(main())

    # Uncomment to run the multiple query sweep
    # asyncio.run(run_multiple_queries())
